"""
Sanitization Utility Module
Cleans untrusted text (email subjects, filenames, sender addresses) before it
reaches log files or the terminal.
"""

import re
import unicodedata

ANSI_ESCAPE_PATTERN = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')


def sanitize_for_logging(text: str, max_length: int = 255) -> str:
    """
    Sanitize text for safe logging to prevent log injection (CRLF) and
    terminal manipulation.

    Args:
        text: The input string to sanitize.
        max_length: Maximum allowed length (truncates if longer).

    Returns:
        Sanitized string safe for logging.
    """
    if not text:
        return ""

    text = unicodedata.normalize('NFKC', str(text))
    text = text.replace('\n', '\\n').replace('\r', '\\r')
    text = ANSI_ESCAPE_PATTERN.sub('', text)

    # Drop remaining control characters (ASCII 0-31 except tab)
    text = "".join(ch for ch in text if ch == '\t' or ord(ch) >= 32)

    if len(text) > max_length:
        text = text[:max_length] + "..."

    return text


def mask_secret(value: str, visible: int = 4) -> str:
    """
    Mask a credential for display, keeping only its last few characters.

    Example:
        >>> mask_secret("abcdef123456")
        '********3456'
    """
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


def sanitize_filename(filename: str, default: str = "attachment.pdf") -> str:
    """
    Reduce an attachment filename to its basename

    Path components and control characters are dropped; everything else,
    including brackets and punctuation, is kept as sent.

    Example:
        >>> sanitize_filename("../../etc/app (1).pdf")
        'app (1).pdf'
    """
    if not filename:
        return default

    filename = filename.replace("\\", "/").split("/")[-1]
    sanitized = "".join(
        ch for ch in filename if unicodedata.category(ch) != "Cc"
    ).strip()

    if sanitized in ("", ".", ".."):
        return default
    return sanitized[:255]
