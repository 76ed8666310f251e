#!/usr/bin/env python3
"""
Settlement Reconstructor Module

Rebuilds the settlement ledger from a stream of payment facts. Virtual
account credits accumulate in an open window until a bank release closes
it; the difference between what was credited and what was released is the
deduction taken on the way.

The reconstruction is a pure function of its input: the open window lives
only inside one call, so overlapping ranges can be reconstructed
independently and concurrently.
"""

import logging
from collections.abc import Iterable

from ..core.dates import ensure_utc
from ..core.models import (
    FactKind,
    GrandTotals,
    PaymentFact,
    ReconciliationResult,
    SettlementWindow,
)
from ..core.money import Money, sum_money

logger = logging.getLogger(__name__)

# Within one timestamp, credits and deductions belong to the window that a
# simultaneous release closes
_KIND_RANK = {
    FactKind.VIRTUAL_CREDIT: 0,
    FactKind.EMI_DEDUCTION_EXPLICIT: 0,
    FactKind.RELEASE_TO_BANK: 1,
    FactKind.UNKNOWN: 2,
}


def _ordering_key(fact: PaymentFact) -> tuple:
    return (ensure_utc(fact.received_at), _KIND_RANK[fact.kind], fact.external_id)


def order_facts(facts: Iterable[PaymentFact]) -> list[PaymentFact]:
    """
    Order facts for reconstruction.

    Ascending by receipt time; ties go credits and deductions first, then
    releases, then by external id, so every permutation that keeps the
    receipt-time order reconstructs identically.
    """
    return sorted(facts, key=_ordering_key)


def reconstruct(facts: Iterable[PaymentFact]) -> ReconciliationResult:
    """
    Group facts into settlement windows in a single forward pass.

    - virtual credits and explicit deductions join the open window
    - a release closes the open window; a release with neither credits nor
      an explicit deduction before it is reported as unmatched
    - unknown facts are ignored
    - credits still open at the end are reported as unmatched

    Args:
        facts: Payment facts for one date range, in any order

    Returns:
        ReconciliationResult with settlements, unmatched items and grand totals
    """
    ordered = order_facts(facts)
    result = ReconciliationResult()
    bucket: list[PaymentFact] = []

    for fact in ordered:
        if fact.kind in (FactKind.VIRTUAL_CREDIT, FactKind.EMI_DEDUCTION_EXPLICIT):
            bucket.append(fact)
        elif fact.kind == FactKind.RELEASE_TO_BANK:
            window = _close_window(bucket, fact)
            if window is None:
                result.unmatched_releases.append(fact)
            else:
                result.settlements.append(window)
            bucket = []

    result.unmatched_credits = [f for f in bucket if f.kind == FactKind.VIRTUAL_CREDIT]
    result.grand = _grand_totals(ordered, result.settlements)

    logger.debug(
        f"Reconstructed {len(result.settlements)} settlements from {len(ordered)} facts "
        f"({len(result.unmatched_credits)} pending credits, {len(result.unmatched_releases)} orphan releases)"
    )
    return result


def _close_window(bucket: list[PaymentFact], release: PaymentFact) -> SettlementWindow | None:
    """Build the settlement a release closes, or None if nothing preceded it."""
    credits = [f for f in bucket if f.kind == FactKind.VIRTUAL_CREDIT]
    explicit_facts = [f for f in bucket if f.kind == FactKind.EMI_DEDUCTION_EXPLICIT]

    if not credits and not explicit_facts:
        return None

    if len(explicit_facts) > 1:
        logger.warning(
            f"{len(explicit_facts)} explicit deductions before release {release.external_id}; using the first"
        )
    explicit = explicit_facts[0].indifi_deduction if explicit_facts else None

    total_virtual = sum_money(f.virtual_amount for f in credits)
    bank_credit = release.bank_credit or Money.zero()
    inferred = max(total_virtual - bank_credit, Money.zero())

    window_start = bucket[0].received_at if bucket else release.received_at

    return SettlementWindow(
        window_start=window_start,
        window_end=release.received_at,
        credits_count=len(credits),
        total_virtual=total_virtual,
        bank_credit=bank_credit,
        inferred_deduction=inferred,
        release_at=release.received_at,
        explicit_deduction=explicit,
        release_ref=release.transaction_ref,
        release_account=release.bank_account,
    )


def _grand_totals(facts: list[PaymentFact], settlements: list[SettlementWindow]) -> GrandTotals:
    """Range-wide sums per kind plus the deduction total over emitted settlements."""
    return GrandTotals(
        total_virtual=sum_money(f.virtual_amount for f in facts if f.kind == FactKind.VIRTUAL_CREDIT),
        total_bank=sum_money(f.bank_credit for f in facts if f.kind == FactKind.RELEASE_TO_BANK),
        total_explicit_deduction=sum_money(
            f.indifi_deduction for f in facts if f.kind == FactKind.EMI_DEDUCTION_EXPLICIT
        ),
        total_deduction=sum_money(s.effective_deduction for s in settlements),
    )
