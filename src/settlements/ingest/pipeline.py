#!/usr/bin/env python3
"""
Ingestion Pipeline

Moves notification emails into the fact store: deduplicate against stored
message ids, extract a fact from each new message, insert it. Ingestion is
idempotent; a message that is already stored (including one inserted
concurrently by another poller) is counted as skipped, never as a failure.

Per-message failures are collected and reported so one bad email cannot
abort a batch.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..core.errors import ConflictError, UpstreamFailure
from ..core.models import PaymentFact, RawMessage
from ..extraction.extractor import FactExtractor
from .dedup import filter_new

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 20


@dataclass(frozen=True)
class IngestionError:
    """A message that could not be ingested, with the reason."""

    external_id: str
    reason: str


@dataclass
class IngestionResult:
    """Counts and per-message failures of one ingestion run."""

    inserted: int = 0
    skipped: int = 0
    errors: list[IngestionError] = field(default_factory=list)
    pages: int = 0

    def merge(self, other: "IngestionResult") -> None:
        """Fold another result into this one."""
        self.inserted += other.inserted
        self.skipped += other.skipped
        self.errors.extend(other.errors)
        self.pages += other.pages

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "pages": self.pages,
            "errors": [{"external_id": e.external_id, "reason": e.reason} for e in self.errors],
        }


def ingest_messages(messages: Iterable[RawMessage], store, extractor: FactExtractor) -> IngestionResult:
    """
    Extract and store facts for a batch of raw messages.

    Args:
        messages: Raw messages in mailbox order
        store: FactStore (or anything with existing_external_ids/insert)
        extractor: Fact extractor

    Returns:
        IngestionResult for the batch
    """
    batch = list(messages)
    result = IngestionResult()

    existing = store.existing_external_ids(m.external_id for m in batch)
    fresh = filter_new(batch, existing)
    result.skipped = len(batch) - len(fresh)

    for message in fresh:
        try:
            draft = extractor.extract(message.subject, message.body_text)
            store.insert(PaymentFact.from_draft(draft, message))
            result.inserted += 1
        except ConflictError:
            logger.debug(f"Message {message.external_id} was stored concurrently; skipping")
            result.skipped += 1
        except Exception as e:
            logger.warning(f"Failed to ingest message {message.external_id}: {e}")
            result.errors.append(IngestionError(external_id=message.external_id, reason=str(e)))

    logger.info(f"Ingested {result.inserted} new facts ({result.skipped} skipped, {len(result.errors)} failed)")
    return result


def sync_mailbox(
    source,
    store,
    extractor: FactExtractor,
    since: date,
    max_pages: int | None = DEFAULT_MAX_PAGES,
    query: str | None = None,
) -> IngestionResult:
    """
    Page through the mailbox, newest first, and ingest every notification
    not yet stored.

    Each page of message ids is checked against the store using headers
    only; full messages are downloaded only for ids the store lacks. Only
    pages that needed a download count toward `max_pages`, so pages that
    are already stored never use up the cap and a later run reaches the
    older backlog.

    Args:
        source: MailFetcher (connected or not; connected on demand)
        store: FactStore
        extractor: Fact extractor
        since: Earliest receipt date to search from
        max_pages: Cap on downloading pages for this run (None for the default)
        query: Raw IMAP search expression replacing the subject filters

    Returns:
        IngestionResult summed over all processed pages; `pages` counts the
        pages that needed a download

    Raises:
        UpstreamFailure: If the mailbox cannot be reached
    """
    page_cap = max_pages or DEFAULT_MAX_PAGES
    opened_here = source.connection is None
    if opened_here and not source.connect():
        raise UpstreamFailure("Cannot connect to the mailbox; check EMAIL_* settings")

    result = IngestionResult()
    try:
        uids = list(reversed(source.search(since, query)))
        for stubs in source.iter_header_pages(uids):
            if result.pages >= page_cap:
                logger.info(f"Stopped after {page_cap} pages; run sync again to continue")
                break
            result.merge(_ingest_page(stubs, source, store, extractor))
    finally:
        if opened_here:
            source.disconnect()

    return result


def _ingest_page(stubs, source, store, extractor: FactExtractor) -> IngestionResult:
    """Fetch and ingest the messages of one header page that the store lacks."""
    existing = store.existing_external_ids(stub.external_id for stub in stubs)

    wanted = []
    seen = set(existing)
    for stub in stubs:
        if stub.external_id in seen:
            continue
        seen.add(stub.external_id)
        wanted.append(stub)

    page = IngestionResult(skipped=len(stubs) - len(wanted), pages=1 if wanted else 0)
    messages = []
    for stub in wanted:
        try:
            message = source.fetch_message(stub.uid)
        except Exception as e:
            logger.warning(f"Failed to fetch message UID {stub.uid}: {e}")
            page.errors.append(IngestionError(external_id=stub.external_id, reason=str(e)))
            continue
        if message is None:
            page.errors.append(IngestionError(external_id=stub.external_id, reason="Message could not be fetched"))
            continue
        messages.append(message)

    page.merge(ingest_messages(messages, store, extractor))
    return page


def check_mailbox(source, since: date, query: str | None = None) -> dict[str, Any]:
    """
    Confirm the mailbox is reachable and count matching notifications.

    Nothing is downloaded or stored; the connection is always closed again.

    Args:
        source: MailFetcher (not yet connected)
        since: Earliest receipt date to search from
        query: Raw IMAP search expression replacing the subject filters

    Returns:
        Dict with ok, found (matching message count), folder and since

    Raises:
        UpstreamFailure: If the mailbox cannot be reached
    """
    if not source.connect():
        raise UpstreamFailure("Cannot connect to the mailbox; check EMAIL_* settings")

    try:
        uids = source.search(since, query)
    finally:
        source.disconnect()

    logger.info(f"Mailbox reachable; {len(uids)} matching messages since {since.isoformat()}")
    return {"ok": True, "found": len(uids), "folder": source.config.folder, "since": since.isoformat()}
