"""
Email Parser Module
Turns an uploaded .eml file into an EmailExtraction: clean body text, PDF
attachments and sender/subject/date metadata.

PATTERN RECOGNITION: Parsing happens in two stages. The stdlib parser output
is first converted into a small MimeLeaf/MimeComposite tree, and every
extraction step (body, attachments) is then a plain recursive walk over that
tree instead of probing Message objects for whichever attribute happens to
be set.

Malformed files raise EmailParseError from ``parse``; callers that must
always get a body (the intake session) fall back to RawTextFallback.
"""

import base64
import binascii
import email
import logging
from datetime import timezone
from email import errors as email_errors
from email.header import decode_header, make_header
from email.message import Message
from email.utils import getaddresses, parsedate_to_datetime
from typing import Dict, List, Optional, Union
from urllib.parse import unquote

from .email_data import (
    EmailAttachment,
    EmailExtraction,
    EmailMetadata,
    MimeComposite,
    MimeLeaf,
    MimeNode,
)
from .raw_fallback import EMAIL_ADDRESS_PATTERN, RawTextFallback, strip_html
from ..utils.config import ParserConfig
from ..utils.exceptions import EmailParseError
from ..utils.sanitization import sanitize_filename, sanitize_for_logging


logger = logging.getLogger(__name__)

MAX_MIME_PARTS = 100
DEFAULT_ATTACHMENT_NAME = "attachment.pdf"

# Defects after which the stdlib parser leaves the multipart body as one
# opaque string; the tree would not reflect the real structure
FATAL_DEFECTS = (
    email_errors.StartBoundaryNotFoundDefect,
    email_errors.NoBoundaryInMultipartDefect,
    email_errors.MultipartInvariantViolationDefect,
)

SENDER_HEADERS = ("from", "return-path", "reply-to", "sender")

# Headers that name recipients or message ids rather than the sender
NON_SENDER_HEADERS = {
    "to", "cc", "bcc", "delivered-to", "x-original-to",
    "message-id", "in-reply-to", "references",
}


class EmailParser:
    """
    Parses raw .eml content into EmailExtraction objects

    MAINTENANCE WISDOM: Parsing is kept free of I/O so tests can feed it
    synthetic messages built with email.mime.
    """

    def __init__(
        self,
        max_body_size: int = 1024 * 1024,
        max_attachment_bytes: int = 25 * 1024 * 1024,
        max_total_attachment_bytes: int = 100 * 1024 * 1024,
        max_attachment_count: int = 10,
        fallback: Optional[RawTextFallback] = None,
    ):
        """
        Initialize email parser

        Args:
            max_body_size: Maximum characters kept from the body text
            max_attachment_bytes: Attachments larger than this are skipped
            max_total_attachment_bytes: Maximum total attachment bytes per email
            max_attachment_count: Maximum number of PDF attachments per email
            fallback: Raw-text extractor used for sender/subject gaps
        """
        self.max_body_size = max_body_size
        self.max_attachment_bytes = max_attachment_bytes
        self.max_total_attachment_bytes = max_total_attachment_bytes
        self.max_attachment_count = max_attachment_count
        self.fallback = fallback or RawTextFallback()
        self.logger = logging.getLogger("EmailParser")

    @classmethod
    def from_config(cls, config: ParserConfig) -> "EmailParser":
        return cls(
            max_body_size=config.max_body_size,
            max_attachment_bytes=config.max_attachment_bytes,
            max_total_attachment_bytes=config.max_total_attachment_bytes,
            max_attachment_count=config.max_attachment_count,
        )

    def parse(self, raw: Union[bytes, str]) -> EmailExtraction:
        """
        Parse raw email content

        Args:
            raw: File content exactly as uploaded

        Returns:
            EmailExtraction with body, PDF attachments and metadata

        Raises:
            EmailParseError: If the MIME structure cannot be parsed
        """
        raw_text = self.raw_to_text(raw)
        if isinstance(raw, str):
            # message_from_string would re-encode 8-bit text leaves as
            # raw-unicode-escape on decode
            raw = raw.encode("utf-8", "surrogateescape")
        try:
            msg = email.message_from_bytes(raw)
        except Exception as e:
            raise EmailParseError(
                "Invalid email file format. Please ensure the file is a valid .eml file.",
                original_error=e,
            ) from e

        self._check_structure(msg)

        try:
            tree = self._build_tree(msg)
        except (ValueError, LookupError, TypeError) as e:
            raise EmailParseError(f"Failed to parse email file: {e}", original_error=e) from e

        headers = self._extract_headers(msg)
        warnings: List[str] = []

        sender = self._extract_sender(msg, headers)
        if not sender:
            sender = self.fallback.extract_sender(raw_text)

        subject = self._decode_header_value(msg.get("Subject", "")).strip()
        if not subject:
            subject = self.fallback.extract_subject(raw_text) or ""

        body = self.extract_body(tree)
        degraded = False
        if not body.strip():
            body, strategy = self.fallback.extract_body(raw_text)
            if strategy:
                degraded = True
                warnings.append(
                    "No readable text part was found in the email; the body was "
                    "recovered from the raw file and may contain formatting noise."
                )

        if len(body) > self.max_body_size:
            self.logger.warning(
                "Body text truncated to %d characters", self.max_body_size
            )
            body = body[:self.max_body_size]

        metadata = EmailMetadata(
            subject=subject or None,
            sender_email=sender,
            sender_display_name=self._extract_display_name(msg),
            to_address=self._extract_to(msg),
            date_iso=self._extract_date(msg),
        )
        attachments = self.extract_attachments(tree)

        self.logger.info(
            "Parsed email from %s: %d chars of body, %d PDF attachment(s)",
            sanitize_for_logging(sender or "unknown sender"),
            len(body),
            len(attachments),
        )

        return EmailExtraction(
            body_text=body,
            attachments=tuple(attachments),
            metadata=metadata,
            warnings=tuple(warnings),
            degraded=degraded,
        )

    # ------------------------------------------------------------------
    # Tree construction
    # ------------------------------------------------------------------

    @staticmethod
    def _check_structure(msg: Message) -> None:
        for part in msg.walk():
            for defect in getattr(part, "defects", []):
                if isinstance(defect, FATAL_DEFECTS):
                    raise EmailParseError(
                        "Invalid email file format: the MIME boundaries are broken.",
                        original_error=defect,
                    )

    def _build_tree(self, msg: Message) -> MimeNode:
        """Convert a parsed Message into a MimeNode tree, walking at most MAX_MIME_PARTS parts"""
        counter = [0]
        return self._to_node(msg, counter)

    def _to_node(self, part: Message, counter: List[int]) -> MimeNode:
        counter[0] += 1
        content_type = part.get_content_type()

        if part.is_multipart():
            children = []
            for child in part.get_payload():
                if counter[0] >= MAX_MIME_PARTS:
                    self.logger.warning(
                        "Email exceeds max MIME parts (%d); ignoring remaining parts",
                        MAX_MIME_PARTS,
                    )
                    break
                children.append(self._to_node(child, counter))
            return MimeComposite(content_type=content_type, children=tuple(children))

        params: Dict[str, str] = {}
        filename = self._resolve_filename(part)
        if filename:
            params["filename"] = filename

        transfer_encoding = str(part.get("Content-Transfer-Encoding", "")).strip().lower()
        if transfer_encoding or part.get_content_maintype() == "text":
            content: Union[bytes, str] = part.get_payload(decode=True) or b""
        else:
            # No declared transfer encoding: keep the payload text so that
            # undeclared base64 can still be recognised later
            content = part.get_payload() or ""

        return MimeLeaf(
            content_type=content_type,
            disposition=part.get_content_disposition() or "",
            params=params,
            charset=part.get_content_charset(),
            content=content,
        )

    def _resolve_filename(self, part: Message) -> Optional[str]:
        """Filename from Content-Disposition, else the Content-Type name parameter"""
        raw_name = part.get_param("filename", header="content-disposition")
        if not raw_name:
            raw_name = part.get_param("name")
        if not raw_name:
            return None
        name = email.utils.collapse_rfc2231_value(raw_name)
        name = self._decode_header_value(unquote(name))
        return sanitize_filename(name, default=DEFAULT_ATTACHMENT_NAME)

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def extract_body(self, node: MimeNode) -> str:
        """
        Best-effort plain-text body for a MIME tree

        Order: a top-level text/plain part, a top-level text/html part
        (stripped), then depth-first searches for any text/plain leaf, any
        text/html leaf, and finally any non-attachment leaf.
        """
        if isinstance(node, MimeLeaf):
            if self._is_attachment_like(node):
                return ""
            text = self._leaf_text(node)
            if node.content_type == "text/html":
                return strip_html(text)
            return text

        leaves = list(self._iter_leaves(node))
        body_leaves = [leaf for leaf in leaves if not self._is_attachment_like(leaf)]

        for leaf in body_leaves:
            if leaf.content_type == "text/plain":
                text = self._leaf_text(leaf)
                if text.strip():
                    return text

        for leaf in body_leaves:
            if leaf.content_type == "text/html":
                text = strip_html(self._leaf_text(leaf))
                if text:
                    return text

        for leaf in body_leaves:
            text = self._leaf_text(leaf)
            if text.strip():
                return text

        return ""

    def _leaf_text(self, leaf: MimeLeaf) -> str:
        if isinstance(leaf.content, bytes):
            return self._decode_bytes(leaf.content, leaf.charset)
        return leaf.content

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def extract_attachments(self, node: MimeNode) -> List[EmailAttachment]:
        """Collect PDF attachments from the tree, enforcing count and size limits"""
        attachments: List[EmailAttachment] = []
        total_size = 0

        for leaf in self._iter_leaves(node):
            if not self._is_attachment_like(leaf):
                continue

            filename = leaf.params.get("filename") or DEFAULT_ATTACHMENT_NAME
            safe_filename = sanitize_for_logging(filename)
            if not self._is_pdf(leaf, filename):
                self.logger.debug("Skipping non-PDF attachment %s", safe_filename)
                continue

            if len(attachments) >= self.max_attachment_count:
                self.logger.warning(
                    "Max attachment count (%d) reached; skipping remaining attachments",
                    self.max_attachment_count,
                )
                break

            data = self._attachment_bytes(leaf, safe_filename)
            if data is None:
                continue

            if self.max_attachment_bytes > 0 and len(data) > self.max_attachment_bytes:
                self.logger.warning(
                    "Attachment %s exceeds max size (%d bytes); skipping",
                    safe_filename, self.max_attachment_bytes,
                )
                continue

            if (self.max_total_attachment_bytes > 0
                    and total_size + len(data) > self.max_total_attachment_bytes):
                self.logger.warning(
                    "Max total attachment size (%d) exceeded; skipping attachment %s",
                    self.max_total_attachment_bytes, safe_filename,
                )
                continue

            attachments.append(EmailAttachment(filename=filename, content=data))
            total_size += len(data)

        return attachments

    def _attachment_bytes(self, leaf: MimeLeaf, safe_filename: str) -> Optional[bytes]:
        """Attachment content as bytes; base64 text is decoded"""
        content = leaf.content
        if isinstance(content, bytes):
            return content if content else None

        if not content:
            self.logger.warning("No content found for attachment %s", safe_filename)
            return None

        if content.lstrip().startswith("%PDF"):
            return content.encode("ascii", errors="surrogateescape")

        try:
            return base64.b64decode("".join(content.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            self.logger.warning(
                "Failed to decode base64 attachment data for %s: %s", safe_filename, e
            )
            return None

    @staticmethod
    def _is_attachment_like(leaf: MimeLeaf) -> bool:
        if leaf.is_attachment:
            return True
        if leaf.content_type == "application/pdf":
            return True
        filename = leaf.params.get("filename", "")
        return (leaf.content_type == "application/octet-stream"
                and filename.lower().endswith(".pdf"))

    @staticmethod
    def _is_pdf(leaf: MimeLeaf, filename: str) -> bool:
        return leaf.content_type == "application/pdf" or filename.lower().endswith(".pdf")

    def _iter_leaves(self, node: MimeNode):
        if isinstance(node, MimeLeaf):
            yield node
            return
        for child in node.children:
            yield from self._iter_leaves(child)

    # ------------------------------------------------------------------
    # Headers and metadata
    # ------------------------------------------------------------------

    def _extract_headers(self, msg: Message) -> Dict[str, List[str]]:
        """All headers, decoded, keyed by lowercase name"""
        headers: Dict[str, List[str]] = {}
        for key, value in msg.items():
            headers.setdefault(key.lower(), []).append(self._decode_header_value(value))
        return headers

    def _extract_sender(self, msg: Message, headers: Dict[str, List[str]]) -> Optional[str]:
        """
        Sender address, by priority: From, Return-Path, Reply-To, Sender,
        then any other header value holding an address
        """
        for name in SENDER_HEADERS:
            for value in headers.get(name, []):
                address = self._first_address(value)
                if address:
                    return address

        for name, values in headers.items():
            if name in NON_SENDER_HEADERS or name in SENDER_HEADERS:
                continue
            for value in values:
                match = EMAIL_ADDRESS_PATTERN.search(value)
                if match:
                    self.logger.debug("Sender address found in %s header", name)
                    return match.group(0)
        return None

    @staticmethod
    def _first_address(header_value: str) -> Optional[str]:
        for _name, address in getaddresses([header_value]):
            if address and "@" in address:
                return address.strip("<>")
        match = EMAIL_ADDRESS_PATTERN.search(header_value or "")
        return match.group(0) if match else None

    def _extract_display_name(self, msg: Message) -> Optional[str]:
        from_header = msg.get("From", "")
        if not from_header:
            return None
        for name, _address in getaddresses([str(from_header)]):
            name_clean = self._decode_header_value(name).strip().strip("\"'")
            if name_clean:
                return name_clean
        return None

    def _extract_to(self, msg: Message) -> Optional[str]:
        values = [str(v) for v in msg.get_all("To", [])]
        if not values:
            return None
        addresses = [address for _name, address in getaddresses(values) if address]
        return ", ".join(addresses) or None

    @staticmethod
    def _extract_date(msg: Message) -> Optional[str]:
        """Date header as an ISO-8601 string, or None when absent or unparseable"""
        date_str = msg.get("Date")
        if not date_str:
            return None
        try:
            parsed = parsedate_to_datetime(str(date_str))
        except (TypeError, ValueError, IndexError):
            return None
        if parsed is None:
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc)
        return parsed.isoformat()

    # ------------------------------------------------------------------
    # Decoding helpers
    # ------------------------------------------------------------------

    @staticmethod
    def raw_to_text(raw: Union[bytes, str]) -> str:
        """Raw upload as text for the regex fallbacks"""
        if isinstance(raw, bytes):
            return raw.decode("utf-8", errors="replace")
        return raw or ""

    @staticmethod
    def _decode_header_value(value) -> str:
        """
        Decode an RFC 2047 encoded header value, falling back to the raw value
        """
        if not value:
            return ""
        try:
            return str(make_header(decode_header(str(value))))
        except (email_errors.HeaderParseError, UnicodeError, LookupError, ValueError):
            return str(value)

    @staticmethod
    def _decode_bytes(data: bytes, charset: Optional[str]) -> str:
        """
        Decode bytes to string with charset fallback

        Malformed sequences are replaced rather than raising.
        """
        encoding = charset or "utf-8"
        try:
            return data.decode(encoding, errors="replace")
        except LookupError:
            return data.decode("utf-8", errors="replace")
