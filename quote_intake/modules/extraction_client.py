"""
Gemini adapter for schema-constrained extraction.

The rest of the pipeline talks to the model through ``generate_json``: a list
of content parts (PDF blobs and text blocks) plus a response schema in, JSON
text out. Calls are made once; retrying is left to the reviewer.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from google import genai
from google.genai import types

from ..utils.exceptions import (
    ExtractionAuthError,
    ExtractionError,
    ExtractionNetworkError,
    QuotaExceededError,
)
from ..utils.sanitization import sanitize_for_logging


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
PDF_MIME_TYPE = "application/pdf"

QUOTA_MESSAGE = (
    "Content too large (token limit exceeded). "
    "Please try removing some PDF files or use a shorter email."
)
AUTH_MESSAGE = "API authentication error. Please check your API key and try again."
NETWORK_MESSAGE = "Network error. Please check your internet connection and try again."

_QUOTA_MARKERS = ("token", "limit", "quota", "resource_exhausted", "429")
_AUTH_MARKERS = (
    "api key", "api_key", "apikey", "authentication", "unauthenticated",
    "permission_denied", "401", "403",
)
_NETWORK_MARKERS = ("network", "timeout", "timed out", "connection", "fetch", "unreachable")


@dataclass(frozen=True)
class PdfPart:
    """A PDF document sent inline to the model"""
    data: bytes


@dataclass(frozen=True)
class TextPart:
    """A plain text block"""
    text: str


ContentPart = Union[PdfPart, TextPart]


def classify_extraction_error(error: Exception) -> ExtractionError:
    """
    Map an SDK or transport error onto the extraction error taxonomy

    Errors that are already ExtractionErrors are returned unchanged. Anything
    unrecognised keeps its original message.
    """
    if isinstance(error, ExtractionError):
        return error

    if isinstance(error, (TimeoutError, ConnectionError)):
        return ExtractionNetworkError(NETWORK_MESSAGE, original_error=error)

    message = str(error)
    lowered = message.lower()
    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return QuotaExceededError(QUOTA_MESSAGE, original_error=error)
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return ExtractionAuthError(AUTH_MESSAGE, original_error=error)
    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return ExtractionNetworkError(NETWORK_MESSAGE, original_error=error)

    return ExtractionError(message or "Failed to process documents: Unknown error occurred",
                           original_error=error)


class GeminiExtractionClient:
    """Wrapper around the google-genai client for JSON-mode generation"""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.0,
        client: Optional[Any] = None,
    ):
        """
        Initialize the extraction client

        Args:
            api_key: Gemini API key
            model: Model name
            temperature: Sampling temperature; 0 keeps extraction deterministic
            client: Pre-built genai.Client (tests inject a mock here)
        """
        self.model = model
        self.temperature = temperature
        if client is not None:
            self.client = client
        else:
            try:
                self.client = genai.Client(api_key=api_key)
            except Exception as e:
                raise ExtractionAuthError(AUTH_MESSAGE, original_error=e) from e
        self.logger = logging.getLogger("GeminiExtractionClient")

    def generate_json(self, parts: Sequence[ContentPart], schema: Dict[str, Any]) -> str:
        """
        Run one schema-constrained generation

        Args:
            parts: PDF and text parts, in prompt order
            schema: Response schema

        Returns:
            The response text (JSON); empty string when the model returned nothing

        Raises:
            ExtractionError: Classified failure of the model call
        """
        contents = [self._to_sdk_part(part) for part in parts]
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            temperature=self.temperature,
        )

        pdf_count = sum(1 for part in parts if isinstance(part, PdfPart))
        self.logger.info(
            "Calling %s with %d PDF part(s) and %d text part(s)",
            self.model, pdf_count, len(parts) - pdf_count,
        )

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            self.logger.error("Extraction call failed: %s", sanitize_for_logging(str(e)))
            raise classify_extraction_error(e) from e

        text = getattr(response, "text", None)
        if not text:
            self.logger.warning("Empty response from %s", self.model)
            return ""
        return text

    @staticmethod
    def _to_sdk_part(part: ContentPart) -> types.Part:
        if isinstance(part, PdfPart):
            return types.Part.from_bytes(data=part.data, mime_type=PDF_MIME_TYPE)
        return types.Part.from_text(text=part.text)


def build_parts(pdf_blobs: Sequence[bytes], text_blocks: List[str]) -> List[ContentPart]:
    """PDF parts first, then non-empty text blocks, preserving order"""
    parts: List[ContentPart] = [PdfPart(data=blob) for blob in pdf_blobs]
    parts.extend(TextPart(text=text) for text in text_blocks if text and text.strip())
    return parts
