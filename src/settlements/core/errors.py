#!/usr/bin/env python3
"""
Error Types

Exceptions shared across the settlement reconciler.

Extraction misses are not errors: a pattern that does not match leaves the
corresponding field as None and nothing is raised.
"""


class SettlementsError(Exception):
    """Base class for all reconciler errors."""


class ConflictError(SettlementsError):
    """Raised when a fact with the same external message id is already stored."""

    def __init__(self, external_id: str):
        super().__init__(f"Fact already ingested for message {external_id!r}")
        self.external_id = external_id


class RangeError(SettlementsError, ValueError):
    """Raised for a missing or malformed reporting date range."""


class UpstreamFailure(SettlementsError):
    """Raised when the mailbox or the fact store cannot be reached."""
