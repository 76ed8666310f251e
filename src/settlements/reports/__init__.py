"""
Reporting Package

Day buckets, range totals and tabular exports built on top of the
settlement reconstruction.
"""

from .aggregator import DailyBucket, RangeTotals, bucket_by_day, summarize_range, total_buckets
from .exporters import (
    EXPORT_FORMATS,
    EXPORT_KINDS,
    daily_frame,
    default_filename,
    settlements_frame,
    statement_frame,
    totals_frame,
    write_report,
)

__all__ = [
    "DailyBucket",
    "EXPORT_FORMATS",
    "EXPORT_KINDS",
    "RangeTotals",
    "bucket_by_day",
    "daily_frame",
    "default_filename",
    "settlements_frame",
    "statement_frame",
    "summarize_range",
    "total_buckets",
    "totals_frame",
    "write_report",
]
