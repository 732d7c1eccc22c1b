"""
Intake Session
The request-scoped workflow around one quote: load an email, collect PDFs,
analyze, and hand the record to the reviewer.

Loading an email never raises for malformed input. When structured parsing
fails the raw-text fallback is used and a warning is recorded for the user;
only if nothing can be salvaged is the email cleared.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from .email_data import EmailAttachment, EmailExtraction, EmailMetadata
from .email_parser import EmailParser
from .extraction_orchestrator import QuoteExtractor, SenderMetadata
from .quote_record import QuoteRecord
from .raw_fallback import RawTextFallback
from ..utils.exceptions import EmailParseError, PdfEncodingError, ValidationError
from ..utils.sanitization import sanitize_for_logging


logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
MAX_PDF_WORKERS = 4


@dataclass
class PdfSource:
    """A PDF queued for analysis, either uploaded directly or taken from the email"""
    filename: str
    path: Optional[Path] = None
    content: Optional[bytes] = None
    from_email: bool = False

    def read(self) -> bytes:
        if self.content is not None:
            data = self.content
        elif self.path is not None:
            data = self.path.read_bytes()
        else:
            raise PdfEncodingError(f"No content for {self.filename}")
        if not data:
            raise PdfEncodingError(f"{self.filename} is empty")
        if not data.lstrip()[:4].startswith(PDF_MAGIC):
            logger.warning(
                "%s does not start with a PDF header; sending as-is",
                sanitize_for_logging(self.filename),
            )
        return data


def parse_email_file(
    raw: Union[bytes, str],
    parser: Optional[EmailParser] = None,
    fallback: Optional[RawTextFallback] = None,
) -> EmailExtraction:
    """
    Parse an uploaded email without raising for malformed input

    When structured parsing fails the raw-text fallback recovers the body,
    sender and subject, and a warning is attached. An extraction with an
    empty body and no metadata means nothing could be salvaged.
    """
    parser = parser or EmailParser()
    fallback = fallback or parser.fallback
    try:
        return parser.parse(raw)
    except EmailParseError as e:
        logger.warning("Structured email parse failed: %s", e)
        parse_error = e

    raw_text = EmailParser.raw_to_text(raw)
    body, strategy = fallback.extract_body(raw_text)
    metadata = EmailMetadata(
        subject=fallback.extract_subject(raw_text),
        sender_email=fallback.extract_sender(raw_text),
    )
    if not body and metadata == EmailMetadata():
        return EmailExtraction(body_text="", degraded=True)

    logger.info("Salvaged %d chars of email body via %s", len(body), strategy or "no strategy")
    return EmailExtraction(
        body_text=body,
        metadata=metadata,
        warnings=(
            f"{parse_error.user_message} The email text was recovered with a simpler "
            f"method and may be incomplete; attachments could not be read.",
        ),
        degraded=True,
    )


class IntakeSession:
    """Holds the sources for one analyze action"""

    def __init__(
        self,
        extractor: QuoteExtractor,
        parser: Optional[EmailParser] = None,
        fallback: Optional[RawTextFallback] = None,
        max_workers: int = MAX_PDF_WORKERS,
    ):
        self.extractor = extractor
        self.parser = parser or EmailParser()
        self.fallback = fallback or RawTextFallback()
        self.max_workers = max_workers

        self.email: Optional[EmailExtraction] = None
        self.email_filename: Optional[str] = None
        self.pdfs: List[PdfSource] = []
        self.warnings: List[str] = []
        self.logger = logging.getLogger("IntakeSession")

    # ------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------

    def load_email(self, raw: Union[bytes, str], filename: str = "email.eml") -> EmailExtraction:
        """
        Parse an uploaded email, replacing any email loaded before

        PDF attachments are queued for analysis unless a PDF with the same
        filename is already queued.
        """
        if self.email is not None:
            self.remove_email()

        extraction = parse_email_file(raw, self.parser, self.fallback)

        self.warnings.extend(extraction.warnings)
        if extraction.is_empty and extraction.metadata == EmailMetadata():
            self.logger.error(
                "Could not extract anything from %s", sanitize_for_logging(filename)
            )
            self.warnings.append(
                "Could not read anything useful from the email file. "
                "Please try a different file or upload the PDF applications directly."
            )
            return extraction

        self.email = extraction
        self.email_filename = filename
        for attachment in extraction.attachments:
            self._queue_attachment(attachment)
        return extraction

    def remove_email(self) -> None:
        """Forget the current email and the PDFs that came from it"""
        self.email = None
        self.email_filename = None
        self.pdfs = [pdf for pdf in self.pdfs if not pdf.from_email]

    # ------------------------------------------------------------------
    # PDFs
    # ------------------------------------------------------------------

    def add_pdf(self, filename: str, content: Optional[bytes] = None,
                path: Optional[Union[str, Path]] = None) -> bool:
        """
        Queue a PDF; returns False when one with the same name is already queued
        """
        if self._has_pdf(filename):
            self.logger.info("Skipping duplicate PDF %s", sanitize_for_logging(filename))
            return False
        self.pdfs.append(PdfSource(
            filename=filename,
            path=Path(path) if path is not None else None,
            content=content,
        ))
        return True

    def add_pdf_file(self, path: Union[str, Path]) -> bool:
        path = Path(path)
        return self.add_pdf(path.name, path=path)

    def remove_pdf(self, filename: str) -> None:
        self.pdfs = [pdf for pdf in self.pdfs if pdf.filename != filename]

    def _queue_attachment(self, attachment: EmailAttachment) -> None:
        if self._has_pdf(attachment.filename):
            return
        self.pdfs.append(PdfSource(
            filename=attachment.filename,
            content=attachment.content,
            from_email=True,
        ))

    def _has_pdf(self, filename: str) -> bool:
        return any(pdf.filename == filename for pdf in self.pdfs)

    def read_pdfs(self) -> List[bytes]:
        """
        Read every queued PDF concurrently

        Results keep queue order. Any failure fails the whole batch.

        Raises:
            PdfEncodingError: A PDF could not be read
        """
        if not self.pdfs:
            return []

        workers = max(1, min(self.max_workers, len(self.pdfs)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(pdf.read) for pdf in self.pdfs]
            blobs = []
            for pdf, future in zip(self.pdfs, futures):
                try:
                    blobs.append(future.result())
                except PdfEncodingError:
                    raise
                except OSError as e:
                    raise PdfEncodingError(
                        f"Failed to read {pdf.filename}: {e}", original_error=e
                    ) from e
        return blobs

    # ------------------------------------------------------------------
    # Analyze
    # ------------------------------------------------------------------

    @property
    def email_body(self) -> str:
        return self.email.body_text if self.email else ""

    def analyze(self) -> QuoteRecord:
        """
        Run extraction over everything queued

        Raises:
            ValidationError: No PDFs and no email text
            PdfEncodingError: A PDF could not be read
            ExtractionError: The extraction call failed
        """
        if not self.pdfs and not self.email_body.strip():
            raise ValidationError(
                "Please upload at least one PDF OR an Email file to analyze."
            )

        blobs = self.read_pdfs()
        metadata = SenderMetadata()
        if self.email is not None:
            metadata = SenderMetadata(
                sender_email=self.email.metadata.sender_email,
                subject=self.email.metadata.subject,
            )

        self.logger.info(
            "Analyzing %d PDF(s) and %d chars of email text",
            len(blobs), len(self.email_body),
        )
        return self.extractor.extract(
            blobs,
            email_body=self.email_body,
            body_is_summary=False,
            metadata=metadata,
        )
