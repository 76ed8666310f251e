#!/usr/bin/env python3
"""
Report Exporters

Tabular projections of settlements, raw facts, range totals and day buckets
as pandas DataFrames, and writers for CSV, XLSX and JSON output.

CSV uses minimal quoting: only fields containing a comma, quote or newline
are quoted, with embedded quotes doubled.
"""

import csv
import logging
from collections.abc import Sequence
from pathlib import Path

import pandas as pd
from openpyxl.utils import get_column_letter

from ..core.models import PaymentFact, ReconciliationResult
from .aggregator import DailyBucket, RangeTotals

logger = logging.getLogger(__name__)

EXPORT_KINDS = ("settlements", "statement", "totals", "daily")
EXPORT_FORMATS = ("csv", "xlsx", "json")

SETTLEMENT_COLUMNS = [
    "Window Start",
    "Window End",
    "Credits Count",
    "Total Virtual (INR)",
    "Released to Bank (INR)",
    "Deduction (INR)",
    "Release Ref",
]

TOTALS_COLUMNS = [
    "From",
    "To",
    "Total Virtual (INR)",
    "Total Released to Bank (INR)",
    "Deduction (INR)",
    "Virtual Credits (count)",
    "Releases (count)",
]

STATEMENT_COLUMNS = [
    "received_at",
    "kind",
    "transaction_ref",
    "virtual_amount",
    "indifi_deduction",
    "bank_credit",
    "computed_net_to_bank",
    "virtual_code",
    "bank_account",
    "raw_subject",
]

DAILY_COLUMNS = [
    "Date",
    "Virtual (INR)",
    "Released to Bank (INR)",
    "Released to Lender (INR)",
    "Released to Merchant (INR)",
    "Explicit Deduction (INR)",
    "Inferred Gap (INR)",
    "Deduction (INR)",
    "Virtual Credits (count)",
    "Releases (count)",
]


def settlements_frame(result: ReconciliationResult) -> pd.DataFrame:
    """One row per settlement window, deduction preferring the explicit figure."""
    rows = [
        [
            window.window_start.isoformat(),
            window.window_end.isoformat(),
            window.credits_count,
            window.total_virtual.to_float(),
            window.bank_credit.to_float(),
            window.effective_deduction.to_float(),
            window.release_ref or "",
        ]
        for window in result.settlements
    ]
    return pd.DataFrame(rows, columns=SETTLEMENT_COLUMNS)


def statement_frame(facts: Sequence[PaymentFact]) -> pd.DataFrame:
    """One row per stored fact, in receipt order."""
    rows = []
    for fact in facts:
        data = fact.to_dict()
        data["computed_net_to_bank"] = data["bank_credit"] or 0.0
        rows.append([data[column] for column in STATEMENT_COLUMNS])
    return pd.DataFrame(rows, columns=STATEMENT_COLUMNS)


def totals_frame(totals: RangeTotals, from_label: str, to_label: str) -> pd.DataFrame:
    """Single-row frame of range totals."""
    row = [
        from_label,
        to_label,
        totals.total_virtual.to_float(),
        totals.total_bank.to_float(),
        totals.deduction.to_float(),
        totals.credits_count,
        totals.releases_count,
    ]
    return pd.DataFrame([row], columns=TOTALS_COLUMNS)


def daily_frame(buckets: Sequence[DailyBucket]) -> pd.DataFrame:
    """One row per active day."""
    rows = [
        [
            bucket.day.isoformat(),
            bucket.total_virtual.to_float(),
            bucket.total_bank.to_float(),
            bucket.released_to_lender.to_float(),
            bucket.released_to_merchant.to_float(),
            bucket.total_explicit_deduction.to_float(),
            bucket.inferred_gap.to_float(),
            bucket.deduction.to_float(),
            bucket.credits_count,
            bucket.releases_count,
        ]
        for bucket in buckets
    ]
    return pd.DataFrame(rows, columns=DAILY_COLUMNS)


def default_filename(kind: str, from_label: str, to_label: str | None, fmt: str) -> str:
    """File name for an export, e.g. settlements_2024-01-01_to_today.csv."""
    return f"{kind}_{from_label}_to_{to_label or 'today'}.{fmt}"


def write_report(frame: pd.DataFrame, path: Path | str, fmt: str, sheet_name: str = "Report") -> Path:
    """
    Write a report frame to disk.

    Args:
        frame: Report rows
        path: Output file
        fmt: One of csv, xlsx, json
        sheet_name: Worksheet title for xlsx output

    Returns:
        The path written

    Raises:
        ValueError: For an unsupported format
    """
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "csv":
        frame.to_csv(output, index=False, quoting=csv.QUOTE_MINIMAL, float_format="%.2f", lineterminator="\n")
    elif fmt == "xlsx":
        _write_xlsx(frame, output, sheet_name)
    elif fmt == "json":
        frame.to_json(output, orient="records", indent=2, force_ascii=False)
    else:
        raise ValueError(f"Unsupported export format: {fmt}")

    logger.info(f"Wrote {len(frame)} rows to {output}")
    return output


def _write_xlsx(frame: pd.DataFrame, output: Path, sheet_name: str) -> None:
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        frame.to_excel(writer, index=False, sheet_name=sheet_name)
        worksheet = writer.sheets[sheet_name]
        for index, column in enumerate(frame.columns, start=1):
            values = [str(column)] + [str(v) for v in frame[column].tolist()]
            worksheet.column_dimensions[get_column_letter(index)].width = min(60, max(len(v) for v in values) + 2)
