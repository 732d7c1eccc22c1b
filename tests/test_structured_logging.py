"""
Tests for structured logging and the console formatter
"""

import json
import logging
import sys
import unittest

from quote_intake.utils.colors import Colors
from quote_intake.utils.logging_utils import ColoredFormatter, setup_logging
from quote_intake.utils.structured_logging import JSONFormatter


def _record(msg="Test message", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
        func="test_function",
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter(unittest.TestCase):

    def setUp(self):
        self.formatter = JSONFormatter()

    def test_basic_json_format(self):
        data = json.loads(self.formatter.format(_record()))
        self.assertIn("timestamp", data)
        self.assertEqual(data["level"], "INFO")
        self.assertEqual(data["logger"], "test_logger")
        self.assertEqual(data["message"], "Test message")
        self.assertEqual(data["function"], "test_function")
        self.assertEqual(data["line"], 42)

    def test_exception_included(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            exc_info = sys.exc_info()
        data = json.loads(self.formatter.format(_record(level=logging.ERROR, exc_info=exc_info)))
        self.assertIn("ValueError: Test error", data["exception"])

    def test_sensitive_extra_fields_redacted(self):
        """
        SECURITY STORY: client secrets and bearer tokens must never reach the
        log file, even when a caller attaches them as context.
        """
        record = _record(extra_fields={
            "environment": "test",
            "client_secret": "s3cret",
            "access_token": "tok",
            "api_key": "AIza...",
        })
        data = json.loads(self.formatter.format(record))
        self.assertEqual(data["environment"], "test")
        self.assertEqual(data["client_secret"], "[REDACTED]")
        self.assertEqual(data["access_token"], "[REDACTED]")
        self.assertEqual(data["api_key"], "[REDACTED]")


class TestColoredFormatter(unittest.TestCase):

    def setUp(self):
        self.formatter = ColoredFormatter("%(levelname)s %(message)s")

    def test_level_coloured(self):
        output = self.formatter.format(_record(level=logging.WARNING, msg="careful"))
        self.assertIn(Colors.YELLOW, output)

    def test_extraction_complete_highlighted(self):
        output = self.formatter.format(_record(msg="Extraction complete: 0 field(s) unknown"))
        self.assertIn(f"{Colors.GREEN}Extraction complete", output)

    def test_original_record_untouched(self):
        record = _record(msg="Quote approved: Q-1")
        self.formatter.format(record)
        self.assertEqual(record.msg, "Quote approved: Q-1")
        self.assertEqual(record.levelname, "INFO")


class TestSetupLogging(unittest.TestCase):

    def tearDown(self):
        logging.basicConfig(level=logging.WARNING, force=True)

    def test_level_applied(self):
        logger = setup_logging("DEBUG")
        self.assertEqual(logger.name, "quote_intake")
        self.assertEqual(logging.getLogger().level, logging.DEBUG)

    def test_invalid_level_defaults_to_info(self):
        with self.assertLogs("quote_intake", level="WARNING") as logs:
            setup_logging("LOUD")
        self.assertEqual(logging.getLogger().level, logging.INFO)
        self.assertIn("Invalid log level", logs.output[0])

    def test_json_file_handler(self):
        import tempfile
        from pathlib import Path

        with tempfile.TemporaryDirectory() as tmp:
            log_file = Path(tmp) / "logs" / "intake.log"
            logger = setup_logging("INFO", str(log_file), "json")
            logger.info("hello file")
            for handler in logging.getLogger().handlers:
                handler.flush()
            line = log_file.read_text().strip().splitlines()[-1]
            self.assertEqual(json.loads(line)["message"], "hello file")
            for handler in list(logging.getLogger().handlers):
                handler.close()
                logging.getLogger().removeHandler(handler)


if __name__ == "__main__":
    unittest.main()
