#!/usr/bin/env python3
"""
Configuration Management for the Settlement Reconciler

Handles environment-based configuration with secure defaults and validation.
Supports multiple environments (development, test, production) with appropriate
logging for each.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_LENDER_LABEL = "Indifi Capital"

DEFAULT_SEARCH_SUBJECTS = [
    "Payment Received in virtual account",
    "Payment release successful",
    "Payment release succesfull",
]


class Environment(Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


@dataclass
class StoreConfig:
    """Fact store settings."""

    db_path: Path


@dataclass
class EmailConfig:
    """Mailbox settings for notification fetching."""

    imap_server: str = "imap.gmail.com"
    imap_port: int = 993
    username: str | None = None
    password: str | None = None
    folder: str = "INBOX"
    search_subjects: list[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_SUBJECTS))
    page_size: int = 100
    max_pages: int = 20
    days_back: int = 120


@dataclass
class ExtractionConfig:
    """
    Thresholds applied by the fact extractor.

    The defaults were tuned against sample notifications rather than derived
    from a business rule, so each one can be overridden from the environment.
    """

    min_credit_amount: int = 500
    min_deduction_amount: int = 1
    min_reference_length: int = 6
    # All-letter candidates are usually label words caught as values
    reference_requires_digit: bool = True


@dataclass
class ReportConfig:
    """Reporting settings."""

    timezone: str = "Asia/Kolkata"
    # Releases whose bank account names this holder are credited to the lender
    lender_account_label: str = DEFAULT_LENDER_LABEL


@dataclass
class Config:
    """
    Main configuration class for the reconciler.

    Loads configuration from environment variables with secure defaults
    and validation for each environment type.
    """

    environment: Environment
    data_dir: Path

    # Component configurations
    store: StoreConfig
    email: EmailConfig
    extraction: ExtractionConfig
    reports: ReportConfig

    # Application settings
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "Config":
        """Create configuration from environment variables."""
        env = Environment(os.getenv("SETTLEMENTS_ENV", "development"))

        if env == Environment.TEST:
            default_test_dir = Path(tempfile.gettempdir()) / "test_settlements"
            data_dir = Path(os.getenv("SETTLEMENTS_DATA_DIR", str(default_test_dir)))
        else:
            data_dir = Path(os.getenv("SETTLEMENTS_DATA_DIR", "./data")).expanduser().resolve()

        data_dir.mkdir(parents=True, exist_ok=True)

        store = StoreConfig(
            db_path=Path(os.getenv("SETTLEMENTS_DB_PATH", str(data_dir / "settlements.db"))),
        )

        email = EmailConfig(
            imap_server=os.getenv("EMAIL_IMAP_SERVER", "imap.gmail.com"),
            imap_port=int(os.getenv("EMAIL_IMAP_PORT", "993")),
            username=os.getenv("EMAIL_USERNAME"),
            password=os.getenv("EMAIL_PASSWORD"),
            folder=os.getenv("EMAIL_FOLDER", "INBOX"),
            search_subjects=_parse_list(os.getenv("EMAIL_SEARCH_SUBJECTS", ""), delimiter="|")
            or list(DEFAULT_SEARCH_SUBJECTS),
            page_size=int(os.getenv("EMAIL_PAGE_SIZE", "100")),
            max_pages=int(os.getenv("EMAIL_MAX_PAGES", "20")),
            days_back=clamp_days(int(os.getenv("EMAIL_DAYS_BACK", "120"))),
        )

        extraction = ExtractionConfig(
            min_credit_amount=int(os.getenv("MIN_CREDIT_AMOUNT", "500")),
            min_deduction_amount=int(os.getenv("MIN_DEDUCTION_AMOUNT", "1")),
            min_reference_length=int(os.getenv("MIN_REFERENCE_LENGTH", "6")),
            reference_requires_digit=os.getenv("REFERENCE_REQUIRE_DIGIT", "true").lower() == "true",
        )

        reports = ReportConfig(
            timezone=os.getenv("APP_TZ") or "Asia/Kolkata",
            lender_account_label=os.getenv("LENDER_ACCOUNT_LABEL") or DEFAULT_LENDER_LABEL,
        )

        return cls(
            environment=env,
            data_dir=data_dir,
            store=store,
            email=email,
            extraction=extraction,
            reports=reports,
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> list:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.data_dir.exists():
            errors.append(f"data_dir does not exist: {self.data_dir}")

        if self.environment == Environment.PRODUCTION and not self.email.username:
            errors.append("EMAIL_USERNAME is required in production")

        if self.email.username and not self.email.password:
            errors.append("EMAIL_PASSWORD is required when EMAIL_USERNAME is provided")

        if self.email.imap_port <= 0 or self.email.imap_port > 65535:
            errors.append("Email IMAP port must be 1-65535")
        if self.email.page_size <= 0:
            errors.append("EMAIL_PAGE_SIZE must be positive")
        if self.email.max_pages <= 0:
            errors.append("EMAIL_MAX_PAGES must be positive")

        if self.extraction.min_credit_amount < 0 or self.extraction.min_deduction_amount < 0:
            errors.append("Materiality floors must be non-negative")
        if self.extraction.min_reference_length < 1:
            errors.append("MIN_REFERENCE_LENGTH must be at least 1")
        if not self.reports.lender_account_label.strip():
            errors.append("LENDER_ACCOUNT_LABEL must not be blank")

        return errors

    def setup_logging(self) -> None:
        """Configure logging based on configuration."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.environment == Environment.DEVELOPMENT:
            format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        else:
            format_str = "%(asctime)s - %(levelname)s - %(message)s"

        logging.basicConfig(level=level, format=format_str, datefmt="%Y-%m-%d %H:%M:%S")

        # imaplib and openpyxl are chatty at DEBUG
        if self.environment == Environment.PRODUCTION:
            logging.getLogger("imaplib").setLevel(logging.WARNING)
            logging.getLogger("openpyxl").setLevel(logging.WARNING)

    def get_sensitive_fields(self) -> list:
        """Get list of field names that contain sensitive data."""
        return [
            "email.password",
            "email.username",
        ]

    def to_dict(self, include_sensitive: bool = False) -> dict[str, Any]:
        """Convert configuration to dictionary, optionally excluding sensitive data."""
        result: dict[str, Any] = {}

        for field_name, field_value in self.__dict__.items():
            if hasattr(field_value, "__dict__") and not isinstance(field_value, (Path, Enum)):
                nested_dict: dict[str, Any] = {}
                for nested_name, nested_value in field_value.__dict__.items():
                    full_field_name = f"{field_name}.{nested_name}"

                    if not include_sensitive and full_field_name in self.get_sensitive_fields():
                        nested_dict[nested_name] = "***REDACTED***"
                    elif isinstance(nested_value, Path):
                        nested_dict[nested_name] = str(nested_value)
                    else:
                        nested_dict[nested_name] = nested_value

                result[field_name] = nested_dict
            elif isinstance(field_value, Path):
                result[field_name] = str(field_value)
            elif isinstance(field_value, Enum):
                result[field_name] = field_value.value
            else:
                result[field_name] = field_value

        return result


def clamp_days(days: int) -> int:
    """Clamp a backfill window to 1..3650 days."""
    return max(1, min(3650, days))


def _parse_list(value: str, delimiter: str = ",") -> list:
    """Parse delimited string into list, handling empty values."""
    if not value:
        return []
    return [item.strip() for item in value.split(delimiter) if item.strip()]


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_environment()

        errors = _config.validate()
        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

        _config.setup_logging()

    return _config


def reload_config() -> Config:
    """Reload configuration from environment (useful for testing)."""
    global _config
    _config = None
    return get_config()
