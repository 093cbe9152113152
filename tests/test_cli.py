import sys
from datetime import datetime, timezone

import pytest

from WorkLog import cli
from WorkLog.aggregation.engine import AggregationEngine
from WorkLog.database import LedgerStore


@pytest.fixture
def run_cli(monkeypatch, settings, fake_oracle):
    monkeypatch.setattr(cli, "Settings", lambda: settings)
    monkeypatch.setattr(cli, "build_engine", lambda s: AggregationEngine(s, fake_oracle))

    def _run(*argv):
        monkeypatch.setattr(sys, "argv", ["worklog", *argv])
        cli.main()

    return _run


def test_init_db(run_cli, settings):
    run_cli("init-db")
    assert settings.db_path.exists()


def test_track_then_list(run_cli, settings, capsys):
    run_cli("track", "--client", "Tech Corp", "--project", "Migration", "--description", "Designed schema")
    run_cli("track", "--client", "Tech Corp", "--project", "Migration", "--description", "Added indexes")

    [entry] = LedgerStore(settings.db_path).get_all_entries()
    assert entry.time_in_minutes == 2
    assert entry.description == "- Designed schema\n- Added indexes"
    assert entry.hourly_rate == 150

    capsys.readouterr()
    run_cli("ledger", "list")
    out = capsys.readouterr().out
    assert "Tech Corp / Migration" in out
    assert "- Added indexes" in out


def test_normalize_dry_run_writes_nothing(run_cli, settings, make_entry):
    store = LedgerStore(settings.db_path)
    store.upsert_entry(make_entry())
    store.upsert_entry(make_entry())

    run_cli("ledger", "normalize", "--dry-run")
    assert len(store.get_all_entries()) == 2

    run_cli("ledger", "normalize")
    [merged] = store.get_all_entries()
    assert merged.id == "2"
    assert merged.time_in_minutes == 60


def test_report_daily(run_cli, settings, capsys):
    run_cli("track", "--client", "Acme", "--project", "Audit", "--description", "Pulled samples", "--rate", "120")
    today = datetime.now(timezone.utc).date().isoformat()

    capsys.readouterr()
    run_cli("report", "daily", "--day", today)
    out = capsys.readouterr().out
    assert "Acme" in out
    assert "Audit" in out


def test_report_daily_empty(run_cli, capsys):
    run_cli("report", "daily", "--day", "2001-01-01")
    assert "No entries for 2001-01-01." in capsys.readouterr().out


def test_command_is_required(run_cli):
    with pytest.raises(SystemExit):
        run_cli()
