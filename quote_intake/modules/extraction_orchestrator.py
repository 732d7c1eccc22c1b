"""
Extraction Orchestrator
Combines PDF applications, email text and email header metadata into one
QuoteRecord.

Post-processing runs in a fixed order, each step recording what it changed
in ``parsing_notes``:

    1. the email sender overrides any broker_email the model produced
    2. fields pre-extracted from a long email's summary fill the gaps
    3. agg_limit is snapped to an allowed tier
    4. retention is snapped to an allowed tier (silently)
    5. insured_contact.preferred_method defaults to "Email"
"""

import json
import logging
from dataclasses import dataclass, fields
from typing import Optional, Sequence

from .extraction_client import build_parts
from .extraction_schema import QUOTE_RECORD_SCHEMA, schema_copy
from .field_normalizer import normalize_agg_limit, normalize_retention
from .prompts import build_email_context, build_extraction_prompt
from .quote_record import DEFAULT_PREFERRED_METHOD, GROUP_TYPES, QuoteRecord
from .summarizer import EmailSummarizer, EmailSummary
from ..utils.exceptions import ExtractionError, SummarizationError, ValidationError
from ..utils.sanitization import sanitize_for_logging


logger = logging.getLogger(__name__)

NO_INPUT_MESSAGE = "No content provided. Please upload PDF applications OR an Email file."
SUMMARY_MERGE_NOTE = "Email was summarized due to length, key fields were pre-extracted"


@dataclass(frozen=True)
class SenderMetadata:
    """The header hints passed alongside the email body"""
    sender_email: Optional[str] = None
    subject: Optional[str] = None


class QuoteExtractor:
    """Runs the summarize / extract / reconcile / normalize pipeline"""

    def __init__(self, client, summarizer: Optional[EmailSummarizer] = None):
        """
        Args:
            client: Object exposing generate_json(parts, schema) -> str
            summarizer: Summarization gate; defaults to one sharing the client
        """
        self.client = client
        self.summarizer = summarizer or EmailSummarizer(client)
        self.logger = logging.getLogger("QuoteExtractor")

    def extract(
        self,
        pdf_blobs: Sequence[bytes],
        email_body: str = "",
        body_is_summary: bool = False,
        metadata: Optional[SenderMetadata] = None,
    ) -> QuoteRecord:
        """
        Extract a quote record from PDFs and/or email text

        Args:
            pdf_blobs: PDF file contents, in upload order (may be empty)
            email_body: Clean email body or an existing summary (may be empty)
            body_is_summary: True when email_body is already a summary
            metadata: Sender address and subject from the email headers

        Returns:
            The reconciled and normalized QuoteRecord

        Raises:
            ValidationError: Neither PDFs nor email text were supplied
            ExtractionError: The model call failed or returned nothing usable
        """
        email_body = email_body or ""
        has_body = bool(email_body.strip())
        if not pdf_blobs and not has_body:
            raise ValidationError(NO_INPUT_MESSAGE)

        metadata = metadata or SenderMetadata()
        email_content = email_body
        is_summary = body_is_summary
        summary: Optional[EmailSummary] = None

        if has_body and not body_is_summary and self.summarizer.should_summarize(email_body):
            try:
                summary = self.summarizer.summarize(email_body)
            except SummarizationError as e:
                self.logger.warning(
                    "Failed to summarize email, using full content: %s", e
                )
            else:
                if summary.summary_text.strip():
                    email_content = summary.summary_text
                    is_summary = True

        text_blocks = []
        if email_content.strip():
            text_blocks.append(build_email_context(
                email_content,
                is_summary=is_summary,
                sender_email=metadata.sender_email,
                subject=metadata.subject,
            ))
        text_blocks.append(build_extraction_prompt())

        response_text = self.client.generate_json(
            build_parts(pdf_blobs, text_blocks),
            schema_copy(QUOTE_RECORD_SCHEMA),
        )
        if not response_text:
            raise ExtractionError("No text response from the extraction model")

        try:
            raw = json.loads(response_text)
        except json.JSONDecodeError as e:
            raise ExtractionError(
                f"Extraction model returned invalid JSON: {e}", original_error=e
            ) from e
        if not isinstance(raw, dict):
            raise ExtractionError("Extraction model returned an unexpected response shape")

        record = QuoteRecord.from_dict(raw)
        self.reconcile(record, metadata, summary)

        self.logger.info(
            "Extraction complete: %d field(s) unknown, %d note(s)",
            len(record.unknown_fields()), len(record.parsing_notes),
        )
        return record

    def reconcile(
        self,
        record: QuoteRecord,
        metadata: SenderMetadata,
        summary: Optional[EmailSummary] = None,
    ) -> QuoteRecord:
        """Apply the ordered post-processing steps to a freshly extracted record"""
        sender = metadata.sender_email
        if sender:
            if record.broker_email and record.broker_email != sender:
                self.logger.info(
                    "Overriding extracted broker email %s with sender %s",
                    sanitize_for_logging(record.broker_email),
                    sanitize_for_logging(sender),
                )
            record.broker_email = sender
            record.add_note(f"Broker email extracted from email sender (From header): {sender}")

        if summary is not None:
            merge_summary_fields(record, summary.partial_record, keep_broker_email=bool(sender))
            record.add_note(SUMMARY_MERGE_NOTE)

        if record.agg_limit is not None:
            record.agg_limit = normalize_agg_limit(record.agg_limit, record.parsing_notes)

        record.retention = normalize_retention(record.retention)

        if record.insured_contact.preferred_method is None:
            record.insured_contact.preferred_method = DEFAULT_PREFERRED_METHOD

        return record


def merge_summary_fields(
    record: QuoteRecord,
    partial: QuoteRecord,
    keep_broker_email: bool = False,
) -> None:
    """
    Merge fields pre-extracted from an email summary into record

    Scalars only fill fields the record still has as unknown. Groups merge
    member by member, and a known summary member replaces the record's value
    because the summary saw the whole email. broker_email is left alone when
    the sender header already set it.
    """
    for f in fields(QuoteRecord):
        name = f.name
        if name == "parsing_notes":
            continue
        if name == "broker_email" and keep_broker_email:
            continue

        summary_value = getattr(partial, name)
        if name in GROUP_TYPES:
            target = getattr(record, name)
            for member in fields(summary_value):
                member_value = getattr(summary_value, member.name)
                if member_value is not None:
                    setattr(target, member.name, member_value)
        elif summary_value is not None and getattr(record, name) is None:
            setattr(record, name, summary_value)
