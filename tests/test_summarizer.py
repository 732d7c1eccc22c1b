"""
Tests for the long-email summarization gate
"""

import json
import unittest
from unittest.mock import MagicMock

from quote_intake.modules.extraction_client import TextPart
from quote_intake.modules.summarizer import (
    EMAIL_SUMMARY_THRESHOLD,
    EmailSummarizer,
    should_summarize,
)
from quote_intake.utils.exceptions import (
    ExtractionAuthError,
    ExtractionError,
    QuotaExceededError,
    SummarizationError,
)


class TestThreshold(unittest.TestCase):

    def test_boundaries(self):
        self.assertEqual(EMAIL_SUMMARY_THRESHOLD, 10000)
        self.assertFalse(should_summarize("x" * 9999))
        self.assertFalse(should_summarize("x" * 10000))
        self.assertTrue(should_summarize("x" * 10001))

    def test_empty(self):
        self.assertFalse(should_summarize(""))
        self.assertFalse(should_summarize(None))

    def test_custom_threshold(self):
        summarizer = EmailSummarizer(MagicMock(), threshold=5)
        self.assertTrue(summarizer.should_summarize("abcdef"))
        self.assertFalse(summarizer.should_summarize("abcde"))


class TestSummarize(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.summarizer = EmailSummarizer(self.client)

    def test_summary_and_partial_record(self):
        self.client.generate_json.return_value = json.dumps({
            "summary": "Acme Corp wants a $1M cyber quote.",
            "insured_name": "Acme Corp",
            "agg_limit": 1000000,
            "insured_location": None,
            "parsing_notes": ["ignored"],
        })

        summary = self.summarizer.summarize("long body " * 2000)

        self.assertEqual(summary.summary_text, "Acme Corp wants a $1M cyber quote.")
        self.assertEqual(summary.partial_record.insured_name, "Acme Corp")
        self.assertEqual(summary.partial_record.agg_limit, 1000000)
        self.assertEqual(summary.partial_record.parsing_notes, [])
        self.assertIsNone(summary.partial_record.insured_location.address_city)

    def test_prompt_contains_body(self):
        self.client.generate_json.return_value = json.dumps({"summary": "s"})
        self.summarizer.summarize("THE ORIGINAL BODY")

        parts, schema = self.client.generate_json.call_args[0]
        self.assertEqual(len(parts), 1)
        self.assertIsInstance(parts[0], TextPart)
        self.assertIn("THE ORIGINAL BODY", parts[0].text)
        self.assertIn("summary", schema["properties"])

    def test_empty_body_rejected(self):
        with self.assertRaises(SummarizationError):
            self.summarizer.summarize("   ")
        self.client.generate_json.assert_not_called()

    def test_quota_error_message(self):
        self.client.generate_json.side_effect = QuotaExceededError("quota")
        with self.assertRaises(SummarizationError) as ctx:
            self.summarizer.summarize("body")
        self.assertIn("too large to summarize", str(ctx.exception))
        self.assertIsInstance(ctx.exception.original_error, QuotaExceededError)

    def test_auth_error_message(self):
        self.client.generate_json.side_effect = ExtractionAuthError("bad key")
        with self.assertRaises(SummarizationError) as ctx:
            self.summarizer.summarize("body")
        self.assertIn("check your API key", str(ctx.exception))

    def test_other_error_message(self):
        self.client.generate_json.side_effect = ExtractionError("boom")
        with self.assertRaises(SummarizationError) as ctx:
            self.summarizer.summarize("body")
        self.assertEqual(str(ctx.exception), "Failed to summarize email: boom")

    def test_empty_response(self):
        self.client.generate_json.return_value = ""
        with self.assertRaises(SummarizationError):
            self.summarizer.summarize("body")

    def test_invalid_json(self):
        self.client.generate_json.return_value = "{not json"
        with self.assertRaises(SummarizationError):
            self.summarizer.summarize("body")


if __name__ == "__main__":
    unittest.main()
