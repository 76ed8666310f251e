"""
Pytest Configuration and Shared Fixtures

Provides common test fixtures and configuration for the entire test suite.
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from settlements.core import config as config_module
from settlements.core.models import FactKind, PaymentFact
from settlements.core.money import Money


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch, tmp_path):
    """Point every test at its own data directory and fact store."""
    # Ensure tests don't use real data or a real mailbox
    monkeypatch.setenv("SETTLEMENTS_ENV", "test")
    monkeypatch.setenv("SETTLEMENTS_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("SETTLEMENTS_DB_PATH", str(tmp_path / "data" / "settlements.db"))
    monkeypatch.setenv("APP_TZ", "Asia/Kolkata")
    for name in (
        "EMAIL_USERNAME",
        "EMAIL_PASSWORD",
        "EMAIL_SEARCH_SUBJECTS",
        "MIN_CREDIT_AMOUNT",
        "MIN_DEDUCTION_AMOUNT",
        "MIN_REFERENCE_LENGTH",
        "REFERENCE_REQUIRE_DIGIT",
        "LENDER_ACCOUNT_LABEL",
        "LOG_LEVEL",
        "DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)

    # Drop any configuration cached by a previous test
    monkeypatch.setattr(config_module, "_config", None)


@pytest.fixture
def make_fact():
    """Factory for PaymentFact objects with rupee amounts."""

    def _make(
        kind: FactKind,
        received_at: datetime,
        amount: str | int | None = None,
        external_id: str | None = None,
        transaction_ref: str | None = None,
        deduction: str | int | None = None,
        bank_account: str | None = None,
    ) -> PaymentFact:
        money = Money.from_rupees(amount) if amount is not None else None
        fact = PaymentFact(
            external_id=external_id or f"<{kind.value}-{received_at.isoformat()}@test>",
            received_at=received_at,
            kind=kind,
            transaction_ref=transaction_ref,
            bank_account=bank_account,
        )
        if kind == FactKind.VIRTUAL_CREDIT:
            fact.virtual_amount = money
        elif kind == FactKind.RELEASE_TO_BANK:
            fact.bank_credit = money
        elif kind == FactKind.EMI_DEDUCTION_EXPLICIT:
            fact.indifi_deduction = money
        if deduction is not None:
            fact.indifi_deduction = Money.from_rupees(deduction)
        return fact

    return _make


@pytest.fixture
def utc():
    """Build aware UTC datetimes tersely: utc(2024, 4, 5, 10)."""

    def _utc(*args: int) -> datetime:
        return datetime(*args, tzinfo=timezone.utc)

    return _utc


# Test markers for categorizing tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests for complete workflows")
    config.addinivalue_line("markers", "currency: Tests for amount parsing and money precision")
    config.addinivalue_line("markers", "extraction: Tests for fact extraction from notification text")
    config.addinivalue_line("markers", "reconcile: Tests for settlement reconstruction")
    config.addinivalue_line("markers", "store: Tests for the SQLite fact store")
