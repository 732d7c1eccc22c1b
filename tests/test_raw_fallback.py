"""
Tests for the raw-text fallback chain used when MIME parsing fails
"""

import unittest

from quote_intake.modules.raw_fallback import (
    BODY_STRATEGIES,
    RAW_BODY_LIMIT,
    FallbackStrategy,
    RawTextFallback,
    strip_html,
)


class TestBodyStrategies(unittest.TestCase):

    def setUp(self):
        self.fallback = RawTextFallback()

    def test_strategy_order(self):
        self.assertEqual(
            [s.name for s in BODY_STRATEGIES],
            ["text_plain_section", "text_html_section", "first_blank_line_section", "raw_tail"],
        )

    def test_plain_section_up_to_boundary(self):
        raw = (
            "From: a@b.com\n"
            "Content-Type: multipart/mixed; boundary=X\n\n"
            "--X\n"
            "Content-Type: text/plain; charset=utf-8\n\n"
            "Insured: Acme Corp\nRevenue: $5M\n"
            "--X\n"
            "Content-Type: text/html\n\n"
            "<p>ignored</p>\n"
            "--X--\n"
        )
        body, strategy = self.fallback.extract_body(raw)
        self.assertEqual(strategy, "text_plain_section")
        self.assertEqual(body, "Insured: Acme Corp\nRevenue: $5M")

    def test_html_section_stripped(self):
        raw = (
            "From: a@b.com\n\n"
            "--X\n"
            "Content-Type: text/html\n\n"
            "<div>Hello <b>broker</b></div>\n"
            "--X--\n"
        )
        body, strategy = self.fallback.extract_body(raw)
        self.assertEqual(strategy, "text_html_section")
        self.assertEqual(body, "Hello broker")

    def test_first_blank_line_section(self):
        raw = "From: a@b.com\nSubject: hi\n\nJust the body\n--boundary\nmore"
        body, strategy = self.fallback.extract_body(raw)
        self.assertEqual(strategy, "first_blank_line_section")
        self.assertEqual(body, "Just the body")

    def test_crlf_normalized(self):
        raw = "From: a@b.com\r\nSubject: hi\r\n\r\nWindows body\r\n"
        body, strategy = self.fallback.extract_body(raw)
        self.assertEqual(body, "Windows body")

    def test_raw_tail_without_blank_line(self):
        raw = "no headers at all, just text"
        body, strategy = self.fallback.extract_body(raw)
        self.assertEqual(strategy, "raw_tail")
        self.assertEqual(body, raw)

    def test_raw_tail_is_truncated(self):
        raw = "x" * (RAW_BODY_LIMIT + 500)
        body, _ = self.fallback.extract_body(raw)
        self.assertEqual(len(body), RAW_BODY_LIMIT)

    def test_nothing_recoverable(self):
        self.assertEqual(self.fallback.extract_body(""), ("", None))
        self.assertEqual(self.fallback.extract_body("   \n  "), ("", None))

    def test_custom_strategies(self):
        fallback = RawTextFallback([FallbackStrategy("upper", lambda raw: raw.upper())])
        self.assertEqual(fallback.extract_body("abc"), ("ABC", "upper"))


class TestHeaderLines(unittest.TestCase):

    def test_sender_from_line(self):
        raw = 'Subject: x\nFrom: "Agent" <agent@brokerage.com>\n\nbody'
        self.assertEqual(RawTextFallback.extract_sender(raw), "agent@brokerage.com")

    def test_sender_from_return_path(self):
        raw = "Return-Path: <bounce@brokerage.com>\nSubject: x\n\nbody"
        self.assertEqual(RawTextFallback.extract_sender(raw), "bounce@brokerage.com")

    def test_no_sender(self):
        self.assertIsNone(RawTextFallback.extract_sender("Subject: x\n\nbody"))

    def test_subject(self):
        raw = "From: a@b.com\nSubject:  Renewal for Acme  \n\nbody"
        self.assertEqual(RawTextFallback.extract_subject(raw), "Renewal for Acme")

    def test_no_subject(self):
        self.assertIsNone(RawTextFallback.extract_subject("From: a@b.com\n\nbody"))


def test_strip_html_collapses_whitespace():
    assert strip_html("<p>a</p>\n\n<p>b   c</p>") == "a b c"
