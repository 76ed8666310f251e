#!/usr/bin/env python3
"""
Report Aggregator Module

Day-bucketed and range-wide summaries over payment facts or reconstructed
settlement windows. Days are calendar days in the reporting timezone, and
days without activity are left out rather than zero-filled.

Released amounts are also split by recipient: releases into an account held
by the lender, and releases into the merchant's own account.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from ..core.config import DEFAULT_LENDER_LABEL
from ..core.dates import FinancialDate, ensure_utc, get_timezone
from ..core.models import FactKind, PaymentFact, SettlementWindow
from ..core.money import Money

logger = logging.getLogger(__name__)


@dataclass
class DailyBucket:
    """
    Totals for one calendar day.

    For fact buckets, `deduction` is the explicit deduction total when the
    day had any explicit deduction notice, otherwise max(0, inferred_gap).
    For settlement buckets it is the sum of each window's effective deduction.

    `released_to_lender` and `released_to_merchant` split `total_bank` by the
    account each release went to.
    """

    day: date
    total_virtual: Money = field(default_factory=Money.zero)
    total_bank: Money = field(default_factory=Money.zero)
    released_to_lender: Money = field(default_factory=Money.zero)
    released_to_merchant: Money = field(default_factory=Money.zero)
    total_explicit_deduction: Money = field(default_factory=Money.zero)
    deduction: Money = field(default_factory=Money.zero)
    credits_count: int = 0
    releases_count: int = 0
    deductions_count: int = 0
    settlements_count: int = 0

    @property
    def inferred_gap(self) -> Money:
        """Signed difference between credited and released amounts."""
        return self.total_virtual - self.total_bank

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "total_virtual": self.total_virtual.to_float(),
            "total_bank": self.total_bank.to_float(),
            "released_to_lender": self.released_to_lender.to_float(),
            "released_to_merchant": self.released_to_merchant.to_float(),
            "total_explicit_deduction": self.total_explicit_deduction.to_float(),
            "inferred_gap": self.inferred_gap.to_float(),
            "deduction": self.deduction.to_float(),
            "credits_count": self.credits_count,
            "releases_count": self.releases_count,
            "deductions_count": self.deductions_count,
            "settlements_count": self.settlements_count,
        }


@dataclass
class RangeTotals:
    """Range-wide totals straight from the facts, without windowing."""

    total_virtual: Money = field(default_factory=Money.zero)
    total_bank: Money = field(default_factory=Money.zero)
    total_explicit_deduction: Money = field(default_factory=Money.zero)
    credits_count: int = 0
    releases_count: int = 0
    deductions_count: int = 0

    @property
    def deduction(self) -> Money:
        return max(self.total_virtual - self.total_bank, Money.zero())

    def to_dict(self) -> dict[str, Any]:
        return {
            "totals": {
                "virtual": self.total_virtual.to_float(),
                "bank": self.total_bank.to_float(),
                "explicit_deduction": self.total_explicit_deduction.to_float(),
                "deduction": self.deduction.to_float(),
            },
            "counts": {
                "virtual_credits": self.credits_count,
                "releases": self.releases_count,
                "explicit_deductions": self.deductions_count,
            },
        }


def _resolve_zone(tz: ZoneInfo | str | None) -> ZoneInfo:
    if isinstance(tz, ZoneInfo):
        return tz
    return get_timezone(tz)


def _in_range(moment: datetime, start: datetime | None, end: datetime | None) -> bool:
    moment = ensure_utc(moment)
    if start is not None and moment < ensure_utc(start):
        return False
    return not (end is not None and moment > ensure_utc(end))


def is_lender_account(account: str | None, lender_label: str) -> bool:
    """True when a release's destination account names the lender."""
    if not account:
        return False
    return lender_label.casefold() in account.casefold()


def _add_release(bucket: DailyBucket, amount: Money, account: str | None, lender_label: str) -> None:
    bucket.total_bank += amount
    if is_lender_account(account, lender_label):
        bucket.released_to_lender += amount
    else:
        bucket.released_to_merchant += amount


def _add_fact(bucket: DailyBucket, fact: PaymentFact, lender_label: str) -> None:
    if fact.kind == FactKind.VIRTUAL_CREDIT:
        bucket.total_virtual += fact.virtual_amount or Money.zero()
        bucket.credits_count += 1
    elif fact.kind == FactKind.RELEASE_TO_BANK:
        _add_release(bucket, fact.bank_credit or Money.zero(), fact.bank_account, lender_label)
        bucket.releases_count += 1
    elif fact.kind == FactKind.EMI_DEDUCTION_EXPLICIT:
        bucket.total_explicit_deduction += fact.indifi_deduction or Money.zero()
        bucket.deductions_count += 1


def _add_settlement(bucket: DailyBucket, window: SettlementWindow, lender_label: str) -> None:
    bucket.total_virtual += window.total_virtual
    _add_release(bucket, window.bank_credit, window.release_account, lender_label)
    if window.explicit_deduction is not None:
        bucket.total_explicit_deduction += window.explicit_deduction
    bucket.deduction += window.effective_deduction
    bucket.credits_count += window.credits_count
    bucket.releases_count += 1
    bucket.settlements_count += 1


def bucket_by_day(
    items: Iterable[PaymentFact | SettlementWindow],
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    tz: ZoneInfo | str | None = None,
    lender_label: str | None = None,
) -> list[DailyBucket]:
    """
    Group facts or settlement windows by calendar day.

    Facts are placed by their receipt time; settlement windows by their
    release time. Unknown facts and items outside [range_start, range_end]
    are ignored.

    Args:
        items: PaymentFact or SettlementWindow objects (not mixed)
        range_start: Inclusive lower bound, or None
        range_end: Inclusive upper bound, or None
        tz: Reporting timezone (ZoneInfo or name; default Asia/Kolkata)
        lender_label: Account holder name marking releases to the lender,
            matched case-insensitively (default "Indifi Capital")

    Returns:
        Non-empty day buckets, ascending by date
    """
    zone = _resolve_zone(tz)
    label = lender_label or DEFAULT_LENDER_LABEL
    buckets: dict[date, DailyBucket] = {}

    for item in items:
        if isinstance(item, SettlementWindow):
            moment = item.release_at
        elif item.kind == FactKind.UNKNOWN:
            continue
        else:
            moment = item.received_at

        if not _in_range(moment, range_start, range_end):
            continue

        day = FinancialDate.from_datetime(moment, zone).date
        bucket = buckets.setdefault(day, DailyBucket(day=day))
        if isinstance(item, SettlementWindow):
            _add_settlement(bucket, item, label)
        else:
            _add_fact(bucket, item, label)

    for bucket in buckets.values():
        if bucket.settlements_count == 0:
            if bucket.deductions_count > 0:
                bucket.deduction = bucket.total_explicit_deduction
            else:
                bucket.deduction = max(bucket.inferred_gap, Money.zero())

    logger.debug(f"Bucketed items into {len(buckets)} active days")
    return [buckets[day] for day in sorted(buckets)]


def summarize_range(facts: Iterable[PaymentFact]) -> RangeTotals:
    """Sum credited, released and explicitly deducted amounts over a fact range."""
    totals = RangeTotals()
    for fact in facts:
        if fact.kind == FactKind.VIRTUAL_CREDIT:
            totals.total_virtual += fact.virtual_amount or Money.zero()
            totals.credits_count += 1
        elif fact.kind == FactKind.RELEASE_TO_BANK:
            totals.total_bank += fact.bank_credit or Money.zero()
            totals.releases_count += 1
        elif fact.kind == FactKind.EMI_DEDUCTION_EXPLICIT:
            totals.total_explicit_deduction += fact.indifi_deduction or Money.zero()
            totals.deductions_count += 1
    return totals


def total_buckets(buckets: Sequence[DailyBucket]) -> dict[str, float]:
    """Column totals across day buckets."""
    return {
        "total_virtual": sum(b.total_virtual.to_paise() for b in buckets) / 100,
        "total_bank": sum(b.total_bank.to_paise() for b in buckets) / 100,
        "released_to_lender": sum(b.released_to_lender.to_paise() for b in buckets) / 100,
        "released_to_merchant": sum(b.released_to_merchant.to_paise() for b in buckets) / 100,
        "deduction": sum(b.deduction.to_paise() for b in buckets) / 100,
    }
