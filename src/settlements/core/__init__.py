"""
Core Utilities Package

Shared building blocks used across the reconciler.

This package provides:
- Configuration management for environment-specific settings
- Amount parsing and integer-paise money handling
- Timestamp normalization and reporting date ranges
- Domain models for messages, payment facts and settlements
- The shared error taxonomy
"""

from .config import (
    Config,
    EmailConfig,
    Environment,
    ExtractionConfig,
    ReportConfig,
    StoreConfig,
    get_config,
    reload_config,
)
from .currency import format_paise, parse_amount, rupees_to_paise
from .dates import FinancialDate, get_timezone, parse_report_range
from .errors import ConflictError, RangeError, SettlementsError, UpstreamFailure
from .models import (
    FactKind,
    GrandTotals,
    PaymentFact,
    PaymentFactDraft,
    RawMessage,
    ReconciliationResult,
    SettlementWindow,
)
from .money import Money, sum_money

__all__ = [
    # Configuration
    "Config",
    "EmailConfig",
    "Environment",
    "ExtractionConfig",
    "ReportConfig",
    "StoreConfig",
    "get_config",
    "reload_config",
    # Currency
    "Money",
    "format_paise",
    "parse_amount",
    "rupees_to_paise",
    "sum_money",
    # Dates
    "FinancialDate",
    "get_timezone",
    "parse_report_range",
    # Errors
    "ConflictError",
    "RangeError",
    "SettlementsError",
    "UpstreamFailure",
    # Models
    "FactKind",
    "GrandTotals",
    "PaymentFact",
    "PaymentFactDraft",
    "RawMessage",
    "ReconciliationResult",
    "SettlementWindow",
]
