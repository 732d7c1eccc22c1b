"""
Summarization gate for long email bodies.

Bodies longer than the threshold are condensed by one schema-constrained model
call before the main extraction. The same call pre-extracts whatever quote
fields the email states outright, which the orchestrator later merges into its
result.
"""

import json
import logging
from dataclasses import dataclass

from .extraction_client import TextPart
from .extraction_schema import EMAIL_SUMMARY_SCHEMA, schema_copy
from .prompts import build_summary_prompt
from .quote_record import QuoteRecord
from ..utils.exceptions import (
    ExtractionAuthError,
    ExtractionError,
    QuotaExceededError,
    SummarizationError,
)


logger = logging.getLogger(__name__)

EMAIL_SUMMARY_THRESHOLD = 10000


def should_summarize(body_text: str, threshold: int = EMAIL_SUMMARY_THRESHOLD) -> bool:
    """True when the body is strictly longer than threshold characters"""
    return len(body_text or "") > threshold


@dataclass(frozen=True)
class EmailSummary:
    """Condensed email text plus the fields confidently extracted from it"""
    summary_text: str
    partial_record: QuoteRecord


class EmailSummarizer:
    """Summarizes long emails through the extraction client"""

    def __init__(self, client, threshold: int = EMAIL_SUMMARY_THRESHOLD):
        """
        Args:
            client: Object exposing generate_json(parts, schema) -> str
            threshold: Body length above which summarization applies
        """
        self.client = client
        self.threshold = threshold
        self.logger = logging.getLogger("EmailSummarizer")

    def should_summarize(self, body_text: str) -> bool:
        return should_summarize(body_text, self.threshold)

    def summarize(self, body_text: str) -> EmailSummary:
        """
        Summarize an email body and pre-extract quote fields

        Raises:
            SummarizationError: Empty body, failed model call or unusable response
        """
        if not body_text or not body_text.strip():
            raise SummarizationError("Email body is empty")

        self.logger.info("Summarizing email body (%d chars)", len(body_text))

        try:
            response_text = self.client.generate_json(
                [TextPart(text=build_summary_prompt(body_text))],
                schema_copy(EMAIL_SUMMARY_SCHEMA),
            )
        except QuotaExceededError as e:
            raise SummarizationError(
                "Email is too large to summarize. Please try with a shorter email "
                "or remove some content.",
                original_error=e,
            ) from e
        except ExtractionAuthError as e:
            raise SummarizationError(
                "API error during summarization. Please check your API key and try again.",
                original_error=e,
            ) from e
        except ExtractionError as e:
            raise SummarizationError(f"Failed to summarize email: {e}", original_error=e) from e

        if not response_text:
            raise SummarizationError("Failed to summarize email: no response from the model")

        try:
            result = json.loads(response_text)
        except json.JSONDecodeError as e:
            raise SummarizationError(
                f"Failed to summarize email: response was not valid JSON ({e})",
                original_error=e,
            ) from e
        if not isinstance(result, dict):
            raise SummarizationError("Failed to summarize email: unexpected response shape")

        summary_text = str(result.pop("summary", "") or "")
        result.pop("parsing_notes", None)
        partial = QuoteRecord.from_dict(result)

        self.logger.info(
            "Summary produced (%d chars), %d field(s) still unknown",
            len(summary_text), len(partial.unknown_fields()),
        )
        return EmailSummary(summary_text=summary_text, partial_record=partial)
