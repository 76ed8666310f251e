#!/usr/bin/env python3
"""
Re-extraction Maintenance Pass

Re-runs the fact extractor over the retained raw subject and body of stored
facts whose fields are missing or clearly wrong, so that pattern
improvements reach rows ingested before them. A re-derivation only fills
gaps and corrects bad values; it never clears a value that was extracted
before and never touches a row's identity.
"""

import logging
from dataclasses import dataclass
from typing import Any

from ..core.models import FactKind, PaymentFact
from ..core.money import Money
from .extractor import FactExtractor

logger = logging.getLogger(__name__)

AMOUNT_FIELDS = ("virtual_amount", "bank_credit", "indifi_deduction")

# Amount fields a kind must leave empty
_GATED_OUT = {
    FactKind.VIRTUAL_CREDIT: ("bank_credit",),
    FactKind.RELEASE_TO_BANK: ("virtual_amount",),
    FactKind.EMI_DEDUCTION_EXPLICIT: ("virtual_amount", "bank_credit"),
    FactKind.UNKNOWN: (),
}


@dataclass
class ReparseResult:
    """Outcome of one maintenance pass."""

    scanned: int = 0
    updated: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"scanned": self.scanned, "updated": self.updated}


def rederive(fact: PaymentFact, extractor: FactExtractor) -> dict[str, Any]:
    """
    Work out which fields of a stored fact a fresh extraction should change.

    Rules:
    - an `unknown` kind is replaced when the text now classifies, unless
      the stored amounts would break the new kind's gating
    - missing amounts, references and auxiliary fields are filled
    - stored amounts below the current floor are replaced by a fresh value
    - references shorter than the current minimum are replaced
    - nothing is ever replaced by None

    Args:
        fact: Stored fact, including raw subject and body
        extractor: Extractor carrying the current patterns and thresholds

    Returns:
        Mapping of field name to new value; empty when nothing changes
    """
    draft = extractor.extract(fact.raw_subject, fact.raw_body)
    updates: dict[str, Any] = {}

    kind = fact.kind
    if fact.kind == FactKind.UNKNOWN and draft.kind != FactKind.UNKNOWN:
        blocking = [name for name in _GATED_OUT[draft.kind] if getattr(fact, name) is not None]
        if blocking:
            logger.info(f"Fact {fact.id} now reads as {draft.kind.value} but carries {', '.join(blocking)}; kept unknown")
        else:
            kind = draft.kind
            updates["kind"] = kind

    # Amounts from a draft of a different kind were gated for that kind, not ours
    if draft.kind == kind:
        for name in AMOUNT_FIELDS:
            if name in _GATED_OUT[kind]:
                continue
            current: Money | None = getattr(fact, name)
            fresh: Money | None = getattr(draft, name)
            if fresh is None or fresh == current:
                continue
            if current is None or _below_floor(name, current, extractor):
                updates[name] = fresh

    current_ref = fact.transaction_ref
    if draft.transaction_ref is not None and draft.transaction_ref != current_ref:
        if current_ref is None or len(current_ref) < extractor.config.min_reference_length:
            updates["transaction_ref"] = draft.transaction_ref

    for name in ("virtual_code", "bank_account"):
        if getattr(fact, name) is None and getattr(draft, name) is not None:
            updates[name] = getattr(draft, name)

    return updates


def _below_floor(name: str, amount: Money, extractor: FactExtractor) -> bool:
    if name == "indifi_deduction":
        return amount < extractor.min_deduction
    return amount < extractor.min_credit


def reparse_store(store, extractor: FactExtractor, limit: int = 1000) -> ReparseResult:
    """
    Run the maintenance pass over up to `limit` incomplete facts.

    Every scanned fact is stamped afterwards, so a following pass starts with
    the facts this one did not reach.

    Args:
        store: FactStore providing find_incomplete(), update() and mark_reparsed()
        extractor: Extractor to re-run
        limit: Maximum number of rows scanned in one pass

    Returns:
        ReparseResult with scanned and updated counts
    """
    candidates = store.find_incomplete(limit=limit, min_reference_length=extractor.config.min_reference_length)
    result = ReparseResult(scanned=len(candidates))

    for fact in candidates:
        updates = rederive(fact, extractor)
        if not updates:
            continue
        store.update(fact.id, updates)
        result.updated += 1
        logger.debug(f"Re-derived fact {fact.id}: {sorted(updates)}")

    store.mark_reparsed(fact.id for fact in candidates)
    logger.info(f"Reparse scanned {result.scanned} facts, updated {result.updated}")
    return result
