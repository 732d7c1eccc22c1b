"""
Quote Submission Client
Sends a reviewed QuoteRecord to the quoting API.

Authentication uses the OAuth client-credentials flow. Tokens are cached per
environment until five minutes before they expire, and the cache entry for an
environment is dropped whenever the client switches to another one.

Submissions are never retried automatically: a repeated POST can create a
duplicate quote.
"""

import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple, Union

import requests

from .quote_record import QuoteRecord
from ..utils.config import SubmissionConfig, validate_submission_config
from ..utils.exceptions import SubmissionAuthError, SubmissionError
from ..utils.sanitization import mask_secret, sanitize_for_logging


TOKEN_EXPIRY_MARGIN_SECONDS = 300

SCOPE_HINT = (
    "This error indicates your client credentials do not have the requested scope "
    "configured on the API server. Either ask your API administrator to enable the "
    "scope, leave K2_CYBER_SCOPE empty if no scope is required, or set K2_CYBER_SCOPE "
    "to the scope you were given."
)

_URL_SCHEME_PATTERN = re.compile(r"^https?://", re.I)

_STRING_FIELDS = ("broker_email", "insured_name", "insured_taxid")
_STRING_GROUPS = ("insured_location", "insured_contact")


# ----------------------------------------------------------------------
# Payload transform
# ----------------------------------------------------------------------

def ensure_url_scheme(url: Optional[str]) -> str:
    """Prefix https:// when a domain has no scheme; blank input gives ''"""
    if not url or not url.strip():
        return ""
    trimmed = url.strip()
    if _URL_SCHEME_PATTERN.match(trimmed):
        return trimmed
    return f"https://{trimmed}"


def transform_payload(record: QuoteRecord) -> Dict[str, Any]:
    """
    Shape a record for the submission API

    - parsing_notes are dropped
    - unknown strings in the broker, insured, location and contact fields
      become ""
    - website carries has_website, plus domainName (with a scheme) only when
      has_website is true and a domain is known

    Numeric fields pass through unchanged.
    """
    payload = record.to_dict()
    payload.pop("parsing_notes", None)

    for name in _STRING_FIELDS:
        if payload[name] is None:
            payload[name] = ""

    for group in _STRING_GROUPS:
        payload[group] = {
            key: ("" if value is None else value)
            for key, value in payload[group].items()
        }

    has_website = bool(record.website.has_website)
    website: Dict[str, Any] = {"has_website": has_website}
    domain = ensure_url_scheme(record.website.domainName)
    if has_website and domain:
        website["domainName"] = domain
    payload["website"] = website

    return payload


# ----------------------------------------------------------------------
# Token cache
# ----------------------------------------------------------------------

class TokenCache:
    """
    Bearer tokens keyed by environment

    Entries are considered expired TOKEN_EXPIRY_MARGIN_SECONDS before the
    expiry the token endpoint reported.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, environment: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(environment)
            if entry is None:
                return None
            token, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[environment]
                return None
            return token

    def put(self, environment: str, token: str, expires_in: Union[int, float]) -> None:
        expires_at = self._clock() + float(expires_in) - TOKEN_EXPIRY_MARGIN_SECONDS
        with self._lock:
            self._entries[environment] = (token, expires_at)

    def invalidate(self, environment: str) -> None:
        with self._lock:
            self._entries.pop(environment, None)

    def __contains__(self, environment: str) -> bool:
        return self.get(environment) is not None


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------

@dataclass
class ApprovedQuote:
    """A quote the API accepted"""
    quote_id: str
    quote_status: str
    checkout_link: str
    policy_term: Dict[str, Any] = field(default_factory=dict)
    coverage_details: Dict[str, Any] = field(default_factory=dict)
    product_name: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    status = "approved"

    @classmethod
    def from_response(cls, body: Dict[str, Any]) -> "ApprovedQuote":
        data = body.get("data") or {}
        product = data.get("product_details") or {}
        return cls(
            quote_id=str(data.get("quote_id", "")),
            quote_status=str(data.get("quote_status", "")),
            checkout_link=str(data.get("checkout_link", "")),
            policy_term=data.get("policy_term") or {},
            coverage_details=data.get("coverage_details") or {},
            product_name=product.get("product_name"),
            raw=body,
        )

    def coverage_limits(self) -> Dict[str, Any]:
        """Only the *_limit entries of the coverage details"""
        return {
            key: value for key, value in self.coverage_details.items()
            if key.endswith("_limit")
        }


@dataclass
class DeclinedQuote:
    """A business rejection: fix the record and resubmit"""
    status: str
    message: str
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, body: Dict[str, Any], status_code: int) -> "DeclinedQuote":
        error = body.get("error") or {}
        message = error.get("message") if isinstance(error, dict) else str(error)
        return cls(
            status=str(body.get("status") or "declined"),
            message=message or body.get("message") or f"Quote request rejected (HTTP {status_code})",
            raw=body,
        )


SubmissionResult = Union[ApprovedQuote, DeclinedQuote]


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------

class QuoteSubmissionClient:
    """Authenticated client for the quote submission endpoint"""

    def __init__(
        self,
        config: SubmissionConfig,
        session: Optional[requests.Session] = None,
        token_cache: Optional[TokenCache] = None,
    ):
        self.config = config
        self.session = session or requests.Session()
        self.token_cache = token_cache or TokenCache()
        self.logger = logging.getLogger("QuoteSubmissionClient")

    def switch_environment(self, config: SubmissionConfig) -> None:
        """Use another environment; the old environment's token is discarded"""
        if config.environment != self.config.environment:
            self.token_cache.invalidate(self.config.environment)
            self.logger.info(
                "Switched submission environment %s -> %s",
                self.config.environment, config.environment,
            )
        self.config = config

    def get_access_token(self) -> str:
        """
        Return a cached bearer token or fetch a new one

        Raises:
            ConfigurationError: Credentials for the environment are missing
            SubmissionAuthError: The token endpoint rejected the request
        """
        validate_submission_config(self.config)
        environment = self.config.environment

        cached = self.token_cache.get(environment)
        if cached:
            self.logger.debug("Using cached access token for %s", environment)
            return cached

        form = {
            "grant_type": "client_credentials",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        if self.config.scope:
            form["scope"] = self.config.scope

        self.logger.info(
            "Requesting access token for %s environment (client %s)",
            environment, mask_secret(self.config.client_id or ""),
        )
        try:
            response = self.session.post(
                self.config.token_url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise SubmissionAuthError(f"Authentication error: {e}", original_error=e) from e

        if not response.ok:
            error_text = response.text or ""
            message = f"Failed to obtain access token: {response.status_code} {error_text}".strip()
            if "invalid_scope" in error_text or "scopes not found" in error_text:
                message = f"{message}\n\n{SCOPE_HINT}"
            raise SubmissionAuthError(message)

        try:
            token_data = response.json()
            token = token_data["access_token"]
            expires_in = float(token_data.get("expires_in", 0))
        except (ValueError, KeyError, TypeError) as e:
            raise SubmissionAuthError(
                f"Authentication error: malformed token response ({e})", original_error=e
            ) from e

        self.token_cache.put(environment, token, expires_in)
        self.logger.info(
            "Access token obtained for %s", environment,
            extra={"extra_fields": {
                "environment": environment,
                "expires_in": expires_in,
                "access_token": token,
            }},
        )
        return token

    def submit(self, record: QuoteRecord) -> SubmissionResult:
        """
        Submit a quote request once

        Returns:
            ApprovedQuote on success, DeclinedQuote when the API rejects the request

        Raises:
            ConfigurationError: Missing credentials
            SubmissionAuthError: Token exchange failed or the token was rejected
            SubmissionError: Transport failure or unreadable response
        """
        token = self.get_access_token()
        payload = transform_payload(record)

        self.logger.info(
            "Submitting quote for %s to %s",
            sanitize_for_logging(record.insured_name or "unknown insured"),
            self.config.environment,
        )
        try:
            response = self.session.post(
                self.config.submit_url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {token}",
                },
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise SubmissionError(f"Failed to submit quote: {e}", original_error=e) from e

        if response.status_code in (401, 403):
            # Token revoked server-side; the next attempt must re-authenticate
            self.token_cache.invalidate(self.config.environment)
            raise SubmissionAuthError(
                f"Quote API rejected the access token (HTTP {response.status_code}); "
                "check the API credentials and submit again."
            )

        try:
            body = response.json()
        except ValueError as e:
            raise SubmissionError(
                f"Failed to submit quote: unreadable response (HTTP {response.status_code})",
                original_error=e,
            ) from e
        if not isinstance(body, dict):
            raise SubmissionError(
                f"Failed to submit quote: unexpected response (HTTP {response.status_code})"
            )

        if response.ok:
            approved = ApprovedQuote.from_response(body)
            self.logger.info(
                "Quote approved: %s (%s)", approved.quote_id, approved.quote_status,
                extra={"extra_fields": {
                    "environment": self.config.environment,
                    "http_status": response.status_code,
                    "quote_id": approved.quote_id,
                }},
            )
            return approved

        if response.status_code >= 500:
            raise SubmissionError(
                f"Failed to submit quote: server error (HTTP {response.status_code})"
            )

        declined = DeclinedQuote.from_response(body, response.status_code)
        self.logger.warning(
            "Quote %s: %s", declined.status, sanitize_for_logging(declined.message),
            extra={"extra_fields": {
                "environment": self.config.environment,
                "http_status": response.status_code,
            }},
        )
        return declined
