"""
Raw-text fallback extraction for email files that the MIME parser cannot handle.

Each strategy is a named function over the raw file text. Strategies are tried
in order and the first non-empty result wins, so the chain degrades from
"found the plain-text part" down to "everything after the headers".
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..utils.sanitization import sanitize_for_logging


logger = logging.getLogger(__name__)

RAW_BODY_LIMIT = 50000

EMAIL_ADDRESS_PATTERN = re.compile(r"[\w\.+-]+@[\w\.-]+\.\w+")
HTML_TAG_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")

# A section ends at the next MIME boundary line, the next Content-Type header
# or the end of the file
_SECTION_END = r"(?=\n--|\nContent-Type:|\Z)"

TEXT_PLAIN_SECTION = re.compile(
    r"Content-Type:\s*text/plain.*?\n\n(.*?)" + _SECTION_END, re.I | re.S
)
TEXT_HTML_SECTION = re.compile(
    r"Content-Type:\s*text/html.*?\n\n(.*?)" + _SECTION_END, re.I | re.S
)
FIRST_BLANK_LINE_SECTION = re.compile(r"\n\n(.*?)(?=\n--|\Z)", re.S)

FROM_LINE = re.compile(r"^From:[ \t]*(.+)$", re.I | re.M)
RETURN_PATH_LINE = re.compile(r"^Return-Path:[ \t]*<?([^<>\s]+@[^<>\s]+)>?[ \t]*$", re.I | re.M)
SUBJECT_LINE = re.compile(r"^Subject:[ \t]*(.+)$", re.I | re.M)


@dataclass(frozen=True)
class FallbackStrategy:
    """A named body-extraction strategy"""
    name: str
    extract: Callable[[str], str]


def strip_html(html: str) -> str:
    """Replace tags with spaces and collapse whitespace"""
    return WHITESPACE_PATTERN.sub(" ", HTML_TAG_PATTERN.sub(" ", html)).strip()


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _text_plain_section(raw: str) -> str:
    match = TEXT_PLAIN_SECTION.search(raw)
    return match.group(1).strip() if match else ""


def _text_html_section(raw: str) -> str:
    match = TEXT_HTML_SECTION.search(raw)
    return strip_html(match.group(1)) if match else ""


def _first_blank_line_section(raw: str) -> str:
    match = FIRST_BLANK_LINE_SECTION.search(raw)
    return match.group(1).strip() if match else ""


def _raw_tail(raw: str) -> str:
    header_end = raw.find("\n\n")
    if header_end > 0:
        return raw[header_end + 2:][:RAW_BODY_LIMIT]
    return raw[:RAW_BODY_LIMIT]


BODY_STRATEGIES: List[FallbackStrategy] = [
    FallbackStrategy("text_plain_section", _text_plain_section),
    FallbackStrategy("text_html_section", _text_html_section),
    FallbackStrategy("first_blank_line_section", _first_blank_line_section),
    FallbackStrategy("raw_tail", _raw_tail),
]


class RawTextFallback:
    """
    Regex-based extraction over the unparsed file text

    Used when structured parsing fails, and to fill in a sender or subject the
    structured parse could not find.
    """

    def __init__(self, strategies: Optional[List[FallbackStrategy]] = None):
        self.strategies = strategies if strategies is not None else BODY_STRATEGIES

    def extract_body(self, raw_text: str) -> Tuple[str, Optional[str]]:
        """
        Run the body strategies in order

        Returns:
            Tuple of (body, strategy name); ("", None) when nothing matched
        """
        raw = normalize_newlines(raw_text or "")
        for strategy in self.strategies:
            try:
                body = strategy.extract(raw)
            except re.error as e:
                logger.warning("Fallback strategy %s failed: %s", strategy.name, e)
                continue
            if body and body.strip():
                logger.info(
                    "Recovered email body with fallback strategy %s (%d chars)",
                    strategy.name, len(body)
                )
                return body, strategy.name
        return "", None

    @staticmethod
    def extract_sender(raw_text: str) -> Optional[str]:
        """Find a sender address on a raw From: or Return-Path: line"""
        raw = normalize_newlines(raw_text or "")

        from_match = FROM_LINE.search(raw)
        if from_match:
            address = EMAIL_ADDRESS_PATTERN.search(from_match.group(1))
            if address:
                logger.debug(
                    "Sender found on raw From line: %s",
                    sanitize_for_logging(address.group(0))
                )
                return address.group(0)

        return_path = RETURN_PATH_LINE.search(raw)
        if return_path:
            return return_path.group(1)
        return None

    @staticmethod
    def extract_subject(raw_text: str) -> Optional[str]:
        """Find the subject on a raw Subject: line"""
        match = SUBJECT_LINE.search(normalize_newlines(raw_text or ""))
        if match:
            subject = match.group(1).strip()
            return subject or None
        return None
