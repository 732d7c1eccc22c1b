"""
Email Data Model
Dataclasses for parsed email content and the MIME node tree it is built from
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class MimeLeaf:
    """A single non-container MIME part"""
    content_type: str
    disposition: str = ""
    params: Dict[str, str] = field(default_factory=dict)
    charset: Optional[str] = None
    # Decoded bytes when the transfer encoding was understood, otherwise the
    # raw (possibly base64) payload string
    content: Union[bytes, str] = b""

    @property
    def is_attachment(self) -> bool:
        return "attachment" in self.disposition.lower()


@dataclass(frozen=True)
class MimeComposite:
    """A multipart container and its ordered children"""
    content_type: str
    children: Tuple["MimeNode", ...] = ()


MimeNode = Union[MimeLeaf, MimeComposite]


@dataclass(frozen=True)
class EmailAttachment:
    """A PDF attachment recovered from an email"""
    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class EmailMetadata:
    """Header metadata; every field is None when it could not be determined"""
    subject: Optional[str] = None
    sender_email: Optional[str] = None
    sender_display_name: Optional[str] = None
    to_address: Optional[str] = None
    date_iso: Optional[str] = None


@dataclass(frozen=True)
class EmailExtraction:
    """
    Result of parsing one uploaded email file

    Built once per upload and never mutated; loading another email or removing
    the current one replaces it wholesale.
    """
    body_text: str
    attachments: Tuple[EmailAttachment, ...] = ()
    metadata: EmailMetadata = field(default_factory=EmailMetadata)
    warnings: Tuple[str, ...] = ()
    degraded: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.body_text.strip() and not self.attachments
