#!/usr/bin/env python3
"""
Ingestion Deduplicator

Drops messages that are already represented by a stored fact, so they are
neither re-extracted nor re-inserted.
"""

from collections.abc import Iterable

from ..core.models import RawMessage


def filter_new(raw_messages: Iterable[RawMessage], existing_ids: set[str]) -> list[RawMessage]:
    """
    Keep only messages whose external id is not already known.

    Input order is preserved. A message id repeated within the batch is
    kept once, at its first occurrence.

    Args:
        raw_messages: Candidate messages
        existing_ids: External ids that already have facts

    Returns:
        New messages in input order
    """
    seen = set(existing_ids)
    fresh = []
    for message in raw_messages:
        if message.external_id in seen:
            continue
        seen.add(message.external_id)
        fresh.append(message)
    return fresh
