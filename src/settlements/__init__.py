"""
Settlement Reconciler - Virtual Account Settlement Ledger

Ingests transactional notification emails (virtual account credits, bank
releases and EMI deductions), extracts typed payment facts with ordered
pattern tables, stores them, and reconstructs the settlement ledger by
pooling credits until a bank release closes the window.

Domain Packages:
- core: Configuration, errors, amount parsing, money, dates, models
- mail: IMAP fetching and MIME/HTML body flattening
- extraction: Pattern tables, fact extractor, re-extraction pass
- ingest: Deduplication and the ingestion pipeline
- store: SQLite fact store
- reconcile: Settlement reconstruction
- reports: Day buckets, range totals and exports
- cli: Command-line interface

Example Usage:
    from settlements.extraction import FactExtractor
    from settlements.reconcile import reconstruct
    from settlements.store import FactStore
"""

__version__ = "0.1.0"
__author__ = "Settlements Maintainers"

from .core.config import Environment, get_config
from .core.currency import format_paise, parse_amount
from .core.models import FactKind, PaymentFact, RawMessage, SettlementWindow
from .core.money import Money

__all__ = [
    # Core currency functions
    "parse_amount",
    "format_paise",
    "Money",
    # Core models
    "FactKind",
    "PaymentFact",
    "RawMessage",
    "SettlementWindow",
    # Configuration
    "get_config",
    "Environment",
]
