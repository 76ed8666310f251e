#!/usr/bin/env python3
"""
Core Data Models for the Settlement Reconciler

Raw mailbox messages, extracted payment facts and the derived settlement
ledger. These models give the pipeline explicit, typed record shapes instead
of ad hoc dictionaries.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from .money import Money


class FactKind(Enum):
    """Classification of a notification email."""

    VIRTUAL_CREDIT = "virtual_credit"
    RELEASE_TO_BANK = "release_to_bank"
    EMI_DEDUCTION_EXPLICIT = "emi_deduction_explicit"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RawMessage:
    """A single mailbox message, flattened to subject and plain text."""

    external_id: str
    subject: str
    body_text: str
    received_at: datetime


@dataclass
class PaymentFactDraft:
    """
    Extraction output for one (subject, body) pair.

    Carries no identity; the ingestion pipeline combines it with the
    originating RawMessage to build a PaymentFact.
    """

    kind: FactKind = FactKind.UNKNOWN
    virtual_amount: Money | None = None
    bank_credit: Money | None = None
    indifi_deduction: Money | None = None
    transaction_ref: str | None = None
    virtual_code: str | None = None
    bank_account: str | None = None


@dataclass
class PaymentFact:
    """
    Persisted payment fact, one per unique mailbox message.

    Amount fields are None when the extractor found nothing above the
    materiality floor. `virtual_code` and `bank_account` are auxiliary fields
    that only some notification formats carry.
    """

    external_id: str
    received_at: datetime
    kind: FactKind

    # Amounts
    virtual_amount: Money | None = None
    bank_credit: Money | None = None
    indifi_deduction: Money | None = None

    # References
    transaction_ref: str | None = None
    virtual_code: str | None = None
    bank_account: str | None = None

    # Audit
    raw_subject: str = ""
    raw_body: str = ""

    # Assigned by the store
    id: int | None = None

    @classmethod
    def from_draft(cls, draft: PaymentFactDraft, message: RawMessage) -> "PaymentFact":
        """Combine an extraction draft with its source message."""
        return cls(
            external_id=message.external_id,
            received_at=message.received_at,
            kind=draft.kind,
            virtual_amount=draft.virtual_amount,
            bank_credit=draft.bank_credit,
            indifi_deduction=draft.indifi_deduction,
            transaction_ref=draft.transaction_ref,
            virtual_code=draft.virtual_code,
            bank_account=draft.bank_account,
            raw_subject=message.subject,
            raw_body=message.body_text,
        )

    def with_id(self, fact_id: int) -> "PaymentFact":
        """Return a copy carrying the store-assigned id."""
        return replace(self, id=fact_id)

    def to_dict(self, include_raw: bool = False) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization (amounts in rupees)."""
        result: dict[str, Any] = {
            "id": self.id,
            "external_id": self.external_id,
            "received_at": self.received_at.isoformat(),
            "kind": self.kind.value,
            "virtual_amount": _rupees(self.virtual_amount),
            "bank_credit": _rupees(self.bank_credit),
            "indifi_deduction": _rupees(self.indifi_deduction),
            "transaction_ref": self.transaction_ref,
            "virtual_code": self.virtual_code,
            "bank_account": self.bank_account,
            "raw_subject": self.raw_subject,
        }
        if include_raw:
            result["raw_body"] = self.raw_body
        return result


@dataclass
class SettlementWindow:
    """
    One closed settlement: the credits pooled since the previous release and
    the bank release that closed them.

    `inferred_deduction` is always max(0, total_virtual - bank_credit);
    `explicit_deduction` is set only when a dedicated deduction notification
    fell inside the window and takes precedence for aggregation.
    """

    window_start: datetime
    window_end: datetime
    credits_count: int
    total_virtual: Money
    bank_credit: Money
    inferred_deduction: Money
    release_at: datetime
    explicit_deduction: Money | None = None
    release_ref: str | None = None
    release_account: str | None = None

    @property
    def effective_deduction(self) -> Money:
        """Deduction used for totals: explicit when known, otherwise inferred."""
        if self.explicit_deduction is not None:
            return self.explicit_deduction
        return self.inferred_deduction

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "credits_count": self.credits_count,
            "total_virtual": self.total_virtual.to_float(),
            "bank_credit": self.bank_credit.to_float(),
            "inferred_deduction": self.inferred_deduction.to_float(),
            "explicit_deduction": _rupees(self.explicit_deduction),
            "release_ref": self.release_ref,
            "release_account": self.release_account,
            "release_at": self.release_at.isoformat(),
        }


@dataclass
class GrandTotals:
    """Range-wide totals; only `total_deduction` is scoped to emitted settlements."""

    total_virtual: Money = field(default_factory=Money.zero)
    total_bank: Money = field(default_factory=Money.zero)
    total_explicit_deduction: Money = field(default_factory=Money.zero)
    total_deduction: Money = field(default_factory=Money.zero)

    def to_dict(self) -> dict[str, float]:
        return {
            "total_virtual": self.total_virtual.to_float(),
            "total_bank": self.total_bank.to_float(),
            "total_explicit_deduction": self.total_explicit_deduction.to_float(),
            "total_deduction": self.total_deduction.to_float(),
        }


@dataclass
class ReconciliationResult:
    """Output of a settlement reconstruction over one fact range."""

    settlements: list[SettlementWindow] = field(default_factory=list)
    unmatched_credits: list[PaymentFact] = field(default_factory=list)
    unmatched_releases: list[PaymentFact] = field(default_factory=list)
    grand: GrandTotals = field(default_factory=GrandTotals)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the report payload shape."""
        return {
            "grand": self.grand.to_dict(),
            "settlements": [s.to_dict() for s in self.settlements],
            "unmatched": {
                "virtual_credits": [f.to_dict() for f in self.unmatched_credits],
                "releases": [f.to_dict() for f in self.unmatched_releases],
            },
        }


def _rupees(amount: Money | None) -> float | None:
    return amount.to_float() if amount is not None else None
