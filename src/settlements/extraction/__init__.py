"""
Fact Extraction Package

Pattern-table driven extraction of payment facts from notification text,
plus the maintenance pass that re-runs extraction over stored facts.
"""

from .extractor import FactExtractor
from .reparse import ReparseResult, rederive, reparse_store

__all__ = [
    "FactExtractor",
    "ReparseResult",
    "rederive",
    "reparse_store",
]
