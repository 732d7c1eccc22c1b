"""
Configuration Management Module
Handles loading and validation of environment variables and settings
"""

import os
import logging
from typing import Optional
from dataclasses import dataclass
from dotenv import load_dotenv


logger = logging.getLogger(__name__)

SUBMISSION_ENVIRONMENTS = {
    "test": "https://api-test.k2cyber.co",
    "prod": "https://api.k2cyber.co",
}


class ConfigurationError(ValueError):
    """Raised when configuration is missing or invalid"""
    pass


@dataclass
class ExtractionConfig:
    """Configuration for the extraction model"""
    api_key: str
    model: str
    temperature: float
    summary_threshold: int


@dataclass
class ParserConfig:
    """Limits applied while parsing uploaded email files"""
    max_body_size: int
    max_attachment_bytes: int
    max_total_attachment_bytes: int
    max_attachment_count: int


@dataclass
class SubmissionConfig:
    """Configuration for the downstream quote submission API"""
    environment: str
    client_id: Optional[str]
    client_secret: Optional[str]
    scope: Optional[str]
    base_url: str
    timeout: int

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/auth/token"

    @property
    def submit_url(self) -> str:
        return f"{self.base_url}/quote/firstcyber/submit"


@dataclass
class SystemConfig:
    """Configuration for system settings"""
    log_level: str
    log_file: Optional[str]
    log_format: str


class Config:
    """Main configuration class"""

    def __init__(self, env_file: str = ".env"):
        """
        Initialize configuration from environment file

        Args:
            env_file: Path to environment file (default: .env)
        """
        load_dotenv(env_file)

        self.extraction = self._load_extraction_config()
        self.parser = self._load_parser_config()
        self.submission = self.load_submission_config()
        self.system = self._load_system_config()

    def _load_extraction_config(self) -> ExtractionConfig:
        """Load extraction model configuration"""
        return ExtractionConfig(
            api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", ""),
            model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            temperature=self._get_float("EXTRACTION_TEMPERATURE", 0.0),
            summary_threshold=self._get_int("EMAIL_SUMMARY_THRESHOLD", 10000),
        )

    def _load_parser_config(self) -> ParserConfig:
        """Load email parser limits"""
        return ParserConfig(
            max_body_size=self._get_int("MAX_BODY_SIZE", 1024 * 1024),
            max_attachment_bytes=self._get_int("MAX_ATTACHMENT_BYTES", 25 * 1024 * 1024),
            max_total_attachment_bytes=self._get_int(
                "MAX_TOTAL_ATTACHMENT_BYTES", 100 * 1024 * 1024
            ),
            max_attachment_count=self._get_int("MAX_ATTACHMENT_COUNT", 10),
        )

    @classmethod
    def load_submission_config(cls, environment: Optional[str] = None) -> SubmissionConfig:
        """
        Load submission API configuration for an environment

        Credentials are looked up per environment (K2_CYBER_CLIENT_ID_TEST vs
        K2_CYBER_CLIENT_ID_PROD) so a test key can never be sent to production.

        Args:
            environment: "test" or "prod"; defaults to K2_CYBER_ENV, then "prod"
        """
        env = (environment or os.getenv("K2_CYBER_ENV", "prod")).strip().lower()
        suffix = "TEST" if env == "test" else "PROD"
        base_url = os.getenv("K2_CYBER_BASE_URL") or SUBMISSION_ENVIRONMENTS.get(env, "")
        scope = os.getenv("K2_CYBER_SCOPE", "").strip()

        return SubmissionConfig(
            environment=env,
            client_id=os.getenv(f"K2_CYBER_CLIENT_ID_{suffix}"),
            client_secret=os.getenv(f"K2_CYBER_CLIENT_SECRET_{suffix}"),
            scope=scope or None,
            base_url=base_url.rstrip("/"),
            timeout=cls._get_int("SUBMISSION_TIMEOUT", 30),
        )

    def _load_system_config(self) -> SystemConfig:
        """Load system configuration"""
        return SystemConfig(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
            log_format=os.getenv("LOG_FORMAT", "text").strip().lower(),
        )

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        """Read an integer environment variable, falling back on bad input"""
        raw = os.getenv(key)
        if raw is None or raw.strip() == "":
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Invalid integer for %s (%r); using %d", key, raw, default)
            return default

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        """Read a float environment variable, falling back on bad input"""
        raw = os.getenv(key)
        if raw is None or raw.strip() == "":
            return default
        try:
            return float(raw)
        except ValueError:
            logger.warning("Invalid number for %s (%r); using %s", key, raw, default)
            return default

    def validate(self, require_submission: bool = False) -> bool:
        """
        Validate configuration

        Args:
            require_submission: Also require submission credentials

        Returns:
            True if configuration is valid

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.extraction.api_key:
            raise ConfigurationError(
                "No extraction API key configured. Set GEMINI_API_KEY in your .env file."
            )

        if self.extraction.summary_threshold <= 0:
            raise ConfigurationError("EMAIL_SUMMARY_THRESHOLD must be a positive integer")

        if self.system.log_format not in ("text", "json"):
            raise ConfigurationError(
                f"Unknown LOG_FORMAT '{self.system.log_format}'; use 'text' or 'json'"
            )

        if require_submission:
            validate_submission_config(self.submission)

        return True


def validate_submission_config(config: SubmissionConfig) -> None:
    """Raise ConfigurationError unless the submission settings are usable"""
    if config.environment not in SUBMISSION_ENVIRONMENTS:
        raise ConfigurationError(
            f"Unknown K2_CYBER_ENV '{config.environment}'; use 'test' or 'prod'"
        )

    if not config.client_id or not config.client_secret:
        suffix = config.environment.upper()
        env_name = "test" if config.environment == "test" else "production"
        raise ConfigurationError(
            f"Quote API {env_name} credentials not configured. "
            f"Set K2_CYBER_CLIENT_ID_{suffix} and K2_CYBER_CLIENT_SECRET_{suffix} "
            f"in your .env file."
        )
