#!/usr/bin/env python3
"""
Integration tests for CLI Main Entry Point

Tests end-to-end CLI command execution against a real fact store.
Focuses on meaningful workflows, not trivial code coverage.
"""

import json

import pytest
from click.testing import CliRunner
from openpyxl import load_workbook

from settlements.cli.main import main
from settlements.core.models import FactKind
from settlements.store import FactStore

V = FactKind.VIRTUAL_CREDIT
R = FactKind.RELEASE_TO_BANK


class StubFetcher:
    """MailFetcher replacement whose search finds three messages."""

    reachable = True

    def __init__(self, config):
        self.config = config

    def connect(self):
        return self.reachable

    def search(self, since, query=None):
        return ["3", "5", "9"]

    def disconnect(self):
        pass


@pytest.fixture
def seeded_store(make_fact, utc):
    """Two credits settled by one release in April, plus a pending credit."""
    store = FactStore()
    store.insert(make_fact(V, utc(2024, 4, 1, 6), 1000))
    store.insert(make_fact(V, utc(2024, 4, 1, 8), 2000))
    store.insert(make_fact(R, utc(2024, 4, 2, 6), 2700, transaction_ref="HDFCR520240402"))
    store.insert(make_fact(V, utc(2024, 4, 3, 6), 500))
    return store


@pytest.mark.integration
class TestCLIMainIntegration:
    """Test main CLI entry point with real command execution."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()

    def test_help_command_lists_all_subcommands(self):
        """Help lists every subcommand."""
        result = self.runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "Settlement Reconciler" in result.output
        for command in ["sync", "ping", "reparse", "summary", "daily", "export", "status", "config", "version"]:
            assert command in result.output

    def test_version_command_shows_version_info(self):
        """version prints the version and author."""
        result = self.runner.invoke(main, ["version"])

        assert result.exit_code == 0
        assert "Settlement Reconciler v" in result.output
        assert "Author:" in result.output

    def test_config_command_redacts_credentials(self, monkeypatch):
        """config never prints mailbox credentials."""
        monkeypatch.setenv("EMAIL_USERNAME", "ops@example.com")
        monkeypatch.setenv("EMAIL_PASSWORD", "app-password")

        result = self.runner.invoke(main, ["config"])

        assert result.exit_code == 0
        assert "Current Configuration:" in result.output
        assert "Min Credit Amount: 500" in result.output
        assert "ops@example.com" not in result.output
        assert "app-password" not in result.output

    def test_status_on_empty_store(self):
        """status reports a missing store."""
        result = self.runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "Fact Store Status:" in result.output
        assert "No fact store found" in result.output

    def test_status_with_facts(self, seeded_store):
        """status counts stored facts."""
        result = self.runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "Facts: 4" in result.output

    def test_invalid_command_shows_error(self):
        """Unknown commands exit non-zero."""
        result = self.runner.invoke(main, ["nonexistent"])
        assert result.exit_code != 0


@pytest.mark.integration
class TestSummaryCommand:
    """Settlement summary over a date range."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()

    def test_summary_json(self, seeded_store):
        """summary JSON carries grand totals, settlements and pending credits."""
        result = self.runner.invoke(main, ["summary", "--from", "2024-04-01", "--to", "2024-04-30", "--format", "json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["ok"] is True
        assert payload["from"] == "2024-04-01"
        assert payload["to"] == "2024-04-30"
        assert payload["grand"]["total_virtual"] == 3500.0
        assert payload["grand"]["total_bank"] == 2700.0
        assert payload["grand"]["total_deduction"] == 300.0
        assert len(payload["settlements"]) == 1
        assert payload["settlements"][0]["credits_count"] == 2
        assert payload["settlements"][0]["release_ref"] == "HDFCR520240402"
        assert len(payload["unmatched"]["virtual_credits"]) == 1
        assert payload["unmatched"]["releases"] == []

    def test_summary_text(self, seeded_store):
        """summary text shows the range and pending credits."""
        result = self.runner.invoke(main, ["summary", "--from", "2024-04-01", "--to", "2024-04-30"])

        assert result.exit_code == 0
        assert "Settlements 2024-04-01 to 2024-04-30" in result.output
        assert "Pending credits awaiting release: 1" in result.output

    def test_summary_range_excludes_outside_facts(self, seeded_store):
        """Facts outside the range are not reported."""
        result = self.runner.invoke(main, ["summary", "--from", "2024-04-03", "--to", "2024-04-03", "--format", "json"])

        payload = json.loads(result.stdout)
        assert payload["settlements"] == []
        assert payload["grand"]["total_virtual"] == 500.0

    def test_malformed_range_json(self):
        """A bad date yields a JSON failure payload."""
        result = self.runner.invoke(main, ["summary", "--from", "2024-13-01", "--format", "json"])

        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload["ok"] is False
        assert "from" in payload["error"]

    def test_reversed_range_text(self):
        """A reversed range is rejected."""
        result = self.runner.invoke(main, ["summary", "--from", "2024-04-30", "--to", "2024-04-01"])

        assert result.exit_code == 1
        assert "reversed" in result.output


@pytest.mark.integration
class TestDailyAndExport:
    """Day buckets and file exports."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()

    def test_daily_json(self, seeded_store):
        """daily JSON has one row per active day."""
        result = self.runner.invoke(main, ["daily", "--from", "2024-04-01", "--to", "2024-04-30", "--format", "json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert [row["date"] for row in payload["rows"]] == ["2024-04-01", "2024-04-02", "2024-04-03"]
        assert payload["totals"]["total_virtual"] == 3500.0

    def test_daily_by_settlements(self, seeded_store):
        """Settlement buckets land on release days."""
        result = self.runner.invoke(
            main, ["daily", "--from", "2024-04-01", "--to", "2024-04-30", "--by", "settlements", "--format", "json"]
        )

        payload = json.loads(result.stdout)
        assert [row["date"] for row in payload["rows"]] == ["2024-04-02"]

    def test_daily_splits_releases_by_recipient(self, make_fact, utc, monkeypatch):
        """Releases are split by the configured lender label."""
        monkeypatch.setenv("LENDER_ACCOUNT_LABEL", "Acme Lending")
        store = FactStore()
        store.insert(make_fact(R, utc(2024, 4, 2, 6), 900, bank_account="Acme Lending LLP - 99887766"))
        store.insert(make_fact(R, utc(2024, 4, 2, 7), 100, bank_account="Indifi Capital Pvt Ltd - 50200021608160"))

        result = self.runner.invoke(main, ["daily", "--from", "2024-04-01", "--to", "2024-04-30", "--format", "json"])

        payload = json.loads(result.stdout)
        assert payload["rows"][0]["released_to_lender"] == 900.0
        assert payload["rows"][0]["released_to_merchant"] == 100.0
        assert payload["totals"]["released_to_lender"] == 900.0

    def test_export_settlements_csv(self, seeded_store, tmp_path):
        """Settlements export to CSV."""
        output = tmp_path / "settlements.csv"
        result = self.runner.invoke(
            main, ["export", "settlements", "--from", "2024-04-01", "--to", "2024-04-30", "--output", str(output)]
        )

        assert result.exit_code == 0
        assert "Exported 1 rows" in result.output
        lines = output.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert lines[1].endswith(",2,3000.00,2700.00,300.00,HDFCR520240402")

    def test_export_totals_xlsx(self, seeded_store, tmp_path):
        """Totals export to XLSX."""
        output = tmp_path / "totals.xlsx"
        result = self.runner.invoke(
            main,
            ["export", "totals", "--from", "2024-04-01", "--to", "2024-04-30", "--format", "xlsx", "--output", str(output)],
        )

        assert result.exit_code == 0
        sheet = load_workbook(output)["Totals"]
        assert sheet["A2"].value == "2024-04-01"

    def test_export_default_filename(self, seeded_store, tmp_path, monkeypatch):
        """Without --output the file is named after the kind and range."""
        monkeypatch.chdir(tmp_path)

        result = self.runner.invoke(main, ["export", "statement", "--from", "2024-04-01", "--to", "2024-04-30"])

        assert result.exit_code == 0
        assert (tmp_path / "statement_2024-04-01_to_2024-04-30.csv").exists()


@pytest.mark.integration
class TestMaintenanceCommands:
    """Mailbox and maintenance commands."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()

    def test_sync_requires_credentials(self):
        """sync refuses to run without credentials."""
        result = self.runner.invoke(main, ["sync"])

        assert result.exit_code == 1
        assert "EMAIL_USERNAME" in result.output

    def test_sync_requires_credentials_json(self):
        """The credential failure is reported as JSON too."""
        result = self.runner.invoke(main, ["sync", "--format", "json"])

        assert result.exit_code == 1
        assert json.loads(result.stdout)["ok"] is False

    def test_reparse_empty_store(self):
        """reparse on an empty store scans nothing."""
        result = self.runner.invoke(main, ["reparse"])

        assert result.exit_code == 0
        assert "Scanned: 0" in result.output
        assert "Updated: 0" in result.output

    def test_ping_requires_credentials(self):
        """ping refuses to run without credentials."""
        result = self.runner.invoke(main, ["ping", "--format", "json"])

        assert result.exit_code == 1
        assert "EMAIL_USERNAME" in json.loads(result.stdout)["error"]

    def test_ping_reports_match_count(self, monkeypatch):
        """ping connects, counts matching messages and downloads nothing."""
        monkeypatch.setenv("EMAIL_USERNAME", "ops@example.com")
        monkeypatch.setenv("EMAIL_PASSWORD", "app-password")
        monkeypatch.setattr("settlements.cli.main.MailFetcher", StubFetcher)

        result = self.runner.invoke(main, ["ping", "--days", "7", "--format", "json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["ok"] is True
        assert payload["found"] == 3
        assert payload["folder"] == "INBOX"

    def test_ping_unreachable_mailbox(self, monkeypatch):
        """A failed connection is reported as an error."""
        monkeypatch.setenv("EMAIL_USERNAME", "ops@example.com")
        monkeypatch.setenv("EMAIL_PASSWORD", "app-password")
        monkeypatch.setattr(StubFetcher, "reachable", False)
        monkeypatch.setattr("settlements.cli.main.MailFetcher", StubFetcher)

        result = self.runner.invoke(main, ["ping"])

        assert result.exit_code == 1
        assert "Cannot connect" in result.output
