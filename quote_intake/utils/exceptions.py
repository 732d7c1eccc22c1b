"""
Exception hierarchy for the quote intake pipeline.

Every error the pipeline surfaces to a reviewer carries a ``user_message``:
a short, actionable sentence suitable for the CLI. The underlying exception
(SDK error, HTTP error, parser error) is kept on ``original_error`` for logs.

Provenance notes (normalization, overrides, merges) are informational and are
appended to ``QuoteRecord.parsing_notes``; they are never raised.
"""

from typing import Optional


class IntakeError(Exception):
    """Base exception for all intake pipeline errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error

    @property
    def user_message(self) -> str:
        return str(self)


class ValidationError(IntakeError):
    """Raised when the caller supplies no usable input source."""
    pass


class EmailParseError(IntakeError):
    """Raised when structured MIME parsing of an email file fails."""
    pass


class PdfEncodingError(IntakeError):
    """Raised when one of the PDF files cannot be read or encoded."""
    pass


class ExtractionError(IntakeError):
    """Raised when the extraction model call fails or returns nothing."""
    pass


class QuotaExceededError(ExtractionError):
    """Raised when the request exceeds the model's token or quota limits."""
    pass


class ExtractionAuthError(ExtractionError):
    """Raised when the extraction service rejects the API key."""
    pass


class ExtractionNetworkError(ExtractionError):
    """Raised when the extraction service cannot be reached."""
    pass


class SummarizationError(IntakeError):
    """Raised when pre-summarizing a long email body fails."""
    pass


class SubmissionError(IntakeError):
    """Raised when the quote submission request fails at the transport level."""
    pass


class SubmissionAuthError(SubmissionError):
    """Raised when the quote API rejects the client credentials or the access token."""
    pass
