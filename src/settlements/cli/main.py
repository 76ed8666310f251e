#!/usr/bin/env python3
"""
Main CLI Entry Point for the Settlement Reconciler

Commands for syncing notification emails into the fact store, repairing
stored facts, and reporting reconstructed settlements over a date range.
"""

import logging
import os
from datetime import date, timedelta
from pathlib import Path

import click

from ..core.config import Config, clamp_days, get_config, reload_config
from ..core.dates import get_timezone, parse_report_range
from ..core.errors import SettlementsError
from ..core.json_utils import format_json
from ..extraction import FactExtractor, reparse_store
from ..ingest import check_mailbox, sync_mailbox
from ..mail import MailFetcher
from ..reconcile import reconstruct
from ..reports import (
    EXPORT_FORMATS,
    EXPORT_KINDS,
    bucket_by_day,
    daily_frame,
    default_filename,
    settlements_frame,
    statement_frame,
    summarize_range,
    total_buckets,
    totals_frame,
    write_report,
)
from ..store import FactStore

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--config-env",
    type=click.Choice(["development", "test", "production"]),
    help="Override environment configuration",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_env: str | None, verbose: bool, debug: bool) -> None:
    """
    Settlement Reconciler - virtual account credits versus bank releases

    Ingests payment notification emails, extracts payment facts and
    reconstructs the settlement ledger with the deduction taken on each
    release.
    """
    ctx.ensure_object(dict)

    if config_env:
        os.environ["SETTLEMENTS_ENV"] = config_env
    if debug:
        os.environ["LOG_LEVEL"] = "DEBUG"

    try:
        config = reload_config() if (config_env or debug) else get_config()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("settlements").setLevel(logging.DEBUG)

    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["config"] = config

    if verbose:
        click.echo(f"Environment: {config.environment.value}")
        click.echo(f"Fact store: {config.store.db_path}")

    if debug:
        click.echo("Debug logging enabled")


def _store(ctx: click.Context) -> FactStore:
    return FactStore(ctx.obj["config"].store.db_path)


def _extractor(ctx: click.Context) -> FactExtractor:
    return FactExtractor(ctx.obj["config"].extraction)


def _fail(ctx: click.Context, output_format: str, message: str) -> None:
    """Report a failed request: a JSON failure payload or a click error."""
    if output_format == "json":
        click.echo(format_json({"ok": False, "error": message}))
        ctx.exit(1)
    raise click.ClickException(message)


def _load_range(ctx: click.Context, from_date: str | None, to_date: str | None):
    """Resolve the reporting range and return (start, end, facts)."""
    config: Config = ctx.obj["config"]
    tz = get_timezone(config.reports.timezone)
    start, end = parse_report_range(from_date, to_date, tz)
    facts = _store(ctx).query(start, end)
    return start, end, facts


@main.command()
def version() -> None:
    """Show version information."""
    from settlements import __author__, __version__

    click.echo(f"Settlement Reconciler v{__version__}")
    click.echo(f"Author: {__author__}")


@main.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show current configuration (credentials redacted)."""
    config_obj: Config = ctx.obj["config"]

    click.echo("Current Configuration:")
    click.echo(f"  Environment: {config_obj.environment.value}")
    click.echo(f"  Data Directory: {config_obj.data_dir}")
    click.echo(f"  Fact Store: {config_obj.store.db_path}")
    click.echo(f"  IMAP Server: {config_obj.email.imap_server}:{config_obj.email.imap_port}")
    click.echo(f"  Mailbox User: {'***REDACTED***' if config_obj.email.username else 'not set'}")
    click.echo(f"  Folder: {config_obj.email.folder}")
    click.echo(f"  Search Subjects: {', '.join(config_obj.email.search_subjects)}")
    click.echo(f"  Min Credit Amount: {config_obj.extraction.min_credit_amount}")
    click.echo(f"  Min Deduction Amount: {config_obj.extraction.min_deduction_amount}")
    click.echo(f"  Min Reference Length: {config_obj.extraction.min_reference_length}")
    click.echo(f"  Reference Requires Digit: {config_obj.extraction.reference_requires_digit}")
    click.echo(f"  Report Timezone: {config_obj.reports.timezone}")
    click.echo(f"  Lender Account Label: {config_obj.reports.lender_account_label}")
    click.echo(f"  Debug Mode: {config_obj.debug}")
    click.echo(f"  Log Level: {config_obj.log_level}")


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show fact store status."""
    try:
        info = _store(ctx).status()
    except SettlementsError as e:
        raise click.ClickException(str(e)) from e

    click.echo("Fact Store Status:")
    click.echo(f"  Exists: {info['exists']}")
    click.echo(f"  Facts: {info['item_count'] if info['item_count'] is not None else 0}")
    click.echo(f"  Size: {info['size_bytes'] or 0} bytes")
    click.echo(f"  Last Modified: {info['last_modified'] or 'never'}")
    click.echo(f"  {info['summary']}")


@main.command()
@click.option("--days", type=int, help="Days to search back (default: EMAIL_DAYS_BACK)")
@click.option("--query", help="Raw IMAP search expression replacing the subject filters")
@click.option("--max-pages", type=int, help="Maximum header pages to process (default: EMAIL_MAX_PAGES)")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text")
@click.pass_context
def sync(
    ctx: click.Context, days: int | None, query: str | None, max_pages: int | None, output_format: str
) -> None:
    """
    Fetch new notification emails and store their payment facts.

    Example:
      settlements sync --days 30 --max-pages 5
    """
    config: Config = ctx.obj["config"]
    if not config.email.username or not config.email.password:
        _fail(ctx, output_format, "Email credentials not configured; set EMAIL_USERNAME and EMAIL_PASSWORD")

    since = date.today() - timedelta(days=clamp_days(days or config.email.days_back))
    try:
        result = sync_mailbox(
            MailFetcher(config.email),
            _store(ctx),
            _extractor(ctx),
            since=since,
            max_pages=max_pages or config.email.max_pages,
            query=query,
        )
    except SettlementsError as e:
        _fail(ctx, output_format, str(e))
        return

    if output_format == "json":
        click.echo(format_json(result.to_dict()))
        return

    click.echo(f"Inserted: {result.inserted}")
    click.echo(f"Skipped: {result.skipped}")
    click.echo(f"Pages: {result.pages}")
    if result.errors:
        click.echo(f"Failed: {len(result.errors)}", err=True)
        for error in result.errors:
            click.echo(f"  {error.external_id}: {error.reason}", err=True)


@main.command()
@click.option("--days", type=int, help="Days to search back (default: EMAIL_DAYS_BACK)")
@click.option("--query", help="Raw IMAP search expression replacing the subject filters")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text")
@click.pass_context
def ping(ctx: click.Context, days: int | None, query: str | None, output_format: str) -> None:
    """
    Check mailbox access and count matching notifications without syncing.

    Example:
      settlements ping --days 7
    """
    config: Config = ctx.obj["config"]
    if not config.email.username or not config.email.password:
        _fail(ctx, output_format, "Email credentials not configured; set EMAIL_USERNAME and EMAIL_PASSWORD")

    since = date.today() - timedelta(days=clamp_days(days or config.email.days_back))
    try:
        report = check_mailbox(MailFetcher(config.email), since=since, query=query)
    except SettlementsError as e:
        _fail(ctx, output_format, str(e))
        return

    if output_format == "json":
        click.echo(format_json(report))
        return

    click.echo(f"Mailbox reachable: {config.email.imap_server} ({report['folder']})")
    click.echo(f"Matching messages since {report['since']}: {report['found']}")


@main.command()
@click.option("--limit", type=int, default=1000, show_default=True, help="Maximum facts to scan")
@click.pass_context
def reparse(ctx: click.Context, limit: int) -> None:
    """Re-run extraction over stored facts with missing or suspect fields."""
    try:
        result = reparse_store(_store(ctx), _extractor(ctx), limit=limit)
    except SettlementsError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Scanned: {result.scanned}")
    click.echo(f"Updated: {result.updated}")


@main.command()
@click.option("--from", "from_date", help="Start date (YYYY-MM-DD), default 1970-01-01")
@click.option("--to", "to_date", help="End date inclusive (YYYY-MM-DD), default today")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text")
@click.pass_context
def summary(ctx: click.Context, from_date: str | None, to_date: str | None, output_format: str) -> None:
    """
    Reconstruct settlements for a date range.

    Examples:
      settlements summary --from 2024-04-01 --to 2024-04-30
      settlements summary --format json
    """
    try:
        start, end, facts = _load_range(ctx, from_date, to_date)
    except SettlementsError as e:
        _fail(ctx, output_format, str(e))
        return

    result = reconstruct(facts)
    totals = summarize_range(facts)

    if output_format == "json":
        payload = {"ok": True, "from": start.date().isoformat(), "to": end.date().isoformat()}
        payload.update(result.to_dict())
        payload["range"] = totals.to_dict()
        click.echo(format_json(payload))
        return

    grand = result.grand
    click.echo(f"Settlements {start.date()} to {end.date()}")
    click.echo(f"  Total credited (virtual): {grand.total_virtual}")
    click.echo(f"  Total released to bank:   {grand.total_bank}")
    click.echo(f"  Explicit deductions:      {grand.total_explicit_deduction}")
    click.echo(f"  Total deduction:          {grand.total_deduction}")
    click.echo()

    for window in result.settlements:
        marker = " (explicit)" if window.explicit_deduction is not None else ""
        click.echo(
            f"  {window.release_at.date()}  {window.credits_count} credits  "
            f"{window.total_virtual} -> {window.bank_credit}  "
            f"deduction {window.effective_deduction}{marker}  ref {window.release_ref or '-'}"
        )

    if result.unmatched_credits:
        click.echo(f"\nPending credits awaiting release: {len(result.unmatched_credits)}")
    if result.unmatched_releases:
        click.echo(f"Releases without matching credits: {len(result.unmatched_releases)}")
        for fact in result.unmatched_releases:
            click.echo(f"  {fact.received_at.date()}  {fact.bank_credit}  ref {fact.transaction_ref or '-'}")


@main.command()
@click.option("--from", "from_date", help="Start date (YYYY-MM-DD), default 1970-01-01")
@click.option("--to", "to_date", help="End date inclusive (YYYY-MM-DD), default today")
@click.option("--by", type=click.Choice(["facts", "settlements"]), default="facts", help="Bucket raw facts or settlements")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text")
@click.pass_context
def daily(ctx: click.Context, from_date: str | None, to_date: str | None, by: str, output_format: str) -> None:
    """Show per-day totals for a date range."""
    try:
        start, end, facts = _load_range(ctx, from_date, to_date)
    except SettlementsError as e:
        _fail(ctx, output_format, str(e))
        return

    items = reconstruct(facts).settlements if by == "settlements" else facts
    reports = ctx.obj["config"].reports
    buckets = bucket_by_day(items, start, end, reports.timezone, reports.lender_account_label)

    if output_format == "json":
        payload = {
            "ok": True,
            "from": start.date().isoformat(),
            "to": end.date().isoformat(),
            "totals": total_buckets(buckets),
            "rows": [bucket.to_dict() for bucket in buckets],
        }
        click.echo(format_json(payload))
        return

    if not buckets:
        click.echo("No activity in range")
        return

    for bucket in buckets:
        click.echo(
            f"{bucket.day.isoformat()}  virtual {bucket.total_virtual}  bank {bucket.total_bank}  "
            f"(lender {bucket.released_to_lender}, merchant {bucket.released_to_merchant})  "
            f"deduction {bucket.deduction}"
        )


@main.command()
@click.argument("kind", type=click.Choice(EXPORT_KINDS))
@click.option("--from", "from_date", help="Start date (YYYY-MM-DD), default 1970-01-01")
@click.option("--to", "to_date", help="End date inclusive (YYYY-MM-DD), default today")
@click.option("--format", "output_format", type=click.Choice(EXPORT_FORMATS), default="csv")
@click.option("--output", help="Output file (default: <kind>_<from>_to_<to>.<format>)")
@click.pass_context
def export(
    ctx: click.Context,
    kind: str,
    from_date: str | None,
    to_date: str | None,
    output_format: str,
    output: str | None,
) -> None:
    """
    Export settlements, raw facts, range totals or day buckets.

    Examples:
      settlements export settlements --from 2024-04-01 --to 2024-04-30
      settlements export statement --format xlsx --output statement.xlsx
    """
    try:
        start, end, facts = _load_range(ctx, from_date, to_date)
    except SettlementsError as e:
        _fail(ctx, output_format, str(e))
        return

    from_label = from_date or "1970-01-01"
    to_label = to_date or end.date().isoformat()

    if kind == "settlements":
        frame = settlements_frame(reconstruct(facts))
    elif kind == "statement":
        frame = statement_frame(facts)
    elif kind == "totals":
        frame = totals_frame(summarize_range(facts), from_label, to_label)
    else:
        reports = ctx.obj["config"].reports
        frame = daily_frame(bucket_by_day(facts, start, end, reports.timezone, reports.lender_account_label))

    path = Path(output) if output else Path(default_filename(kind, from_label, to_date, output_format))
    write_report(frame, path, output_format, sheet_name=kind.capitalize())
    click.echo(f"Exported {len(frame)} rows to {path}")


if __name__ == "__main__":
    main()
