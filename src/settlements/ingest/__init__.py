"""
Ingestion Package

Deduplication of mailbox messages and the pipeline that turns them into
stored payment facts.
"""

from .dedup import filter_new
from .pipeline import IngestionError, IngestionResult, check_mailbox, ingest_messages, sync_mailbox

__all__ = [
    "IngestionError",
    "IngestionResult",
    "check_mailbox",
    "filter_new",
    "ingest_messages",
    "sync_mailbox",
]
