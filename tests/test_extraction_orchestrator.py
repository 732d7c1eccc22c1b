"""
Tests for the extraction orchestrator: input validation, the summarization
gate, sender override, summary merge and tier normalization.
"""

import json
import unittest
from unittest.mock import MagicMock

from quote_intake.modules.extraction_client import PdfPart, TextPart
from quote_intake.modules.extraction_orchestrator import (
    NO_INPUT_MESSAGE,
    SUMMARY_MERGE_NOTE,
    QuoteExtractor,
    SenderMetadata,
    merge_summary_fields,
)
from quote_intake.modules.quote_record import QuoteRecord
from quote_intake.modules.summarizer import EmailSummarizer, EmailSummary
from quote_intake.utils.exceptions import (
    ExtractionError,
    SummarizationError,
    ValidationError,
)


PDF = b"%PDF-1.4 fake"


def _model_output(**overrides):
    data = {
        "broker_email": "model@guess.com",
        "insured_name": "Acme Corp",
        "insured_location": {"address_city": "Austin", "address_state": "TX"},
        "claims": {"claims_count": 0},
        "website": {"has_website": True, "domainName": "acme.com"},
        "insured_contact": {"first_name": "Ann"},
        "agg_limit": 1000000,
        "retention": 10000,
        "parsing_notes": ["Insured name found in PDF"],
    }
    data.update(overrides)
    return json.dumps(data)


class TestExtract(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.client.generate_json.return_value = _model_output()
        self.extractor = QuoteExtractor(self.client)

    def test_no_input_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.extractor.extract([], email_body="   ")
        self.assertEqual(str(ctx.exception), NO_INPUT_MESSAGE)
        self.client.generate_json.assert_not_called()

    def test_pdf_only(self):
        record = self.extractor.extract([PDF])

        parts, _schema = self.client.generate_json.call_args[0]
        self.assertIsInstance(parts[0], PdfPart)
        self.assertEqual(parts[0].data, PDF)
        self.assertIsInstance(parts[-1], TextPart)
        self.assertEqual(len(parts), 2)

        self.assertEqual(record.insured_name, "Acme Corp")
        self.assertEqual(record.broker_email, "model@guess.com")
        self.assertEqual(record.insured_contact.preferred_method, "Email")

    def test_sender_overrides_broker_email(self):
        record = self.extractor.extract(
            [PDF],
            email_body="Please quote Acme.",
            metadata=SenderMetadata(sender_email="agent@brokerage.com", subject="Acme"),
        )
        self.assertEqual(record.broker_email, "agent@brokerage.com")
        self.assertIn(
            "Broker email extracted from email sender (From header): agent@brokerage.com",
            record.parsing_notes,
        )
        # Model notes are kept ahead of the provenance notes
        self.assertEqual(record.parsing_notes[0], "Insured name found in PDF")

    def test_email_context_block(self):
        self.extractor.extract(
            [],
            email_body="Please quote Acme.",
            metadata=SenderMetadata(sender_email="agent@brokerage.com", subject="Acme"),
        )
        parts, _schema = self.client.generate_json.call_args[0]
        context = parts[0].text
        self.assertIn("EMAIL BODY (clean content)", context)
        self.assertIn("Please quote Acme.", context)
        self.assertIn("- Sender Email (From header): agent@brokerage.com", context)
        self.assertIn("- Subject: Acme", context)

    def test_agg_limit_clamped_with_note(self):
        self.client.generate_json.return_value = _model_output(agg_limit=5000000)
        record = self.extractor.extract([PDF])
        self.assertEqual(record.agg_limit, 3000000)
        self.assertEqual(
            [n for n in record.parsing_notes if "exceeds maximum" in n],
            ["Aggregate limit requested ($5,000,000) exceeds maximum allowed. Set to $3,000,000."],
        )

    def test_unknown_agg_limit_stays_unknown(self):
        self.client.generate_json.return_value = _model_output(agg_limit=None)
        record = self.extractor.extract([PDF])
        self.assertIsNone(record.agg_limit)

    def test_retention_discarded_silently(self):
        self.client.generate_json.return_value = _model_output(retention=100000000)
        record = self.extractor.extract([PDF])
        self.assertIsNone(record.retention)
        self.assertFalse(any("etention" in n for n in record.parsing_notes))

    def test_preferred_method_kept_when_known(self):
        self.client.generate_json.return_value = _model_output(
            insured_contact={"preferred_method": "phone"}
        )
        record = self.extractor.extract([PDF])
        self.assertEqual(record.insured_contact.preferred_method, "Phone")

    def test_empty_response(self):
        self.client.generate_json.return_value = ""
        with self.assertRaises(ExtractionError):
            self.extractor.extract([PDF])

    def test_invalid_json(self):
        self.client.generate_json.return_value = "not json"
        with self.assertRaises(ExtractionError):
            self.extractor.extract([PDF])

    def test_non_object_json(self):
        self.client.generate_json.return_value = "[1, 2]"
        with self.assertRaises(ExtractionError):
            self.extractor.extract([PDF])

    def test_client_error_propagates(self):
        self.client.generate_json.side_effect = ExtractionError("boom")
        with self.assertRaises(ExtractionError):
            self.extractor.extract([PDF])


class TestSummarizationGate(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.client.generate_json.return_value = _model_output(insured_name=None, revenue=None)
        self.summarizer = MagicMock(spec=EmailSummarizer)
        self.extractor = QuoteExtractor(self.client, self.summarizer)
        self.long_body = "x" * 10001

    def test_short_body_not_summarized(self):
        self.summarizer.should_summarize.return_value = False
        self.extractor.extract([], email_body="short")
        self.summarizer.summarize.assert_not_called()

    def test_existing_summary_not_resummarized(self):
        self.summarizer.should_summarize.return_value = True
        self.extractor.extract([], email_body=self.long_body, body_is_summary=True)
        self.summarizer.summarize.assert_not_called()
        parts, _ = self.client.generate_json.call_args[0]
        self.assertIn("EMAIL SUMMARY (extracted from long email)", parts[0].text)

    def test_summary_replaces_body_and_fields_merge(self):
        self.summarizer.should_summarize.return_value = True
        self.summarizer.summarize.return_value = EmailSummary(
            summary_text="Acme wants $2M.",
            partial_record=QuoteRecord.from_dict({
                "insured_name": "Acme Corp",
                "revenue": 5000000,
                "insured_location": {"address_city": "Dallas"},
            }),
        )

        record = self.extractor.extract([PDF], email_body=self.long_body)

        parts, _ = self.client.generate_json.call_args[0]
        context = parts[1].text
        self.assertIn("EMAIL SUMMARY (extracted from long email)", context)
        self.assertIn("Acme wants $2M.", context)
        self.assertNotIn(self.long_body, context)

        self.assertEqual(record.insured_name, "Acme Corp")
        self.assertEqual(record.revenue, 5000000)
        self.assertEqual(record.insured_location.address_city, "Dallas")
        self.assertEqual(record.insured_location.address_state, "TX")
        self.assertIn(SUMMARY_MERGE_NOTE, record.parsing_notes)

    def test_summarize_failure_falls_back_to_full_body(self):
        self.summarizer.should_summarize.return_value = True
        self.summarizer.summarize.side_effect = SummarizationError("quota")

        record = self.extractor.extract([], email_body=self.long_body)

        parts, _ = self.client.generate_json.call_args[0]
        self.assertIn("EMAIL BODY (clean content)", parts[0].text)
        self.assertIn(self.long_body, parts[0].text)
        self.assertNotIn(SUMMARY_MERGE_NOTE, record.parsing_notes)

    def test_empty_summary_uses_full_body(self):
        self.summarizer.should_summarize.return_value = True
        self.summarizer.summarize.return_value = EmailSummary("  ", QuoteRecord())
        self.extractor.extract([], email_body=self.long_body)
        parts, _ = self.client.generate_json.call_args[0]
        self.assertIn("EMAIL BODY (clean content)", parts[0].text)


class TestMergeSummaryFields(unittest.TestCase):

    def test_scalars_fill_unknowns_only(self):
        record = QuoteRecord(insured_name="From PDF", revenue=None)
        partial = QuoteRecord(insured_name="From summary", revenue=100)
        merge_summary_fields(record, partial)
        self.assertEqual(record.insured_name, "From PDF")
        self.assertEqual(record.revenue, 100)

    def test_broker_email_kept_when_sender_known(self):
        record = QuoteRecord(broker_email="sender@brokerage.com")
        partial = QuoteRecord(broker_email="other@x.com")
        merge_summary_fields(record, partial, keep_broker_email=True)
        self.assertEqual(record.broker_email, "sender@brokerage.com")

    def test_group_members_from_summary_win(self):
        record = QuoteRecord.from_dict({"website": {"has_website": False, "domainName": "old.com"}})
        partial = QuoteRecord.from_dict({"website": {"has_website": True}})
        merge_summary_fields(record, partial)
        self.assertTrue(record.website.has_website)
        self.assertEqual(record.website.domainName, "old.com")

    def test_notes_not_merged(self):
        record = QuoteRecord(parsing_notes=["a"])
        merge_summary_fields(record, QuoteRecord(parsing_notes=["b"]))
        self.assertEqual(record.parsing_notes, ["a"])


if __name__ == "__main__":
    unittest.main()
