"""
Fact Store Package

SQLite persistence for extracted payment facts.
"""

from .fact_store import UPDATABLE_FIELDS, FactStore

__all__ = ["FactStore", "UPDATABLE_FIELDS"]
