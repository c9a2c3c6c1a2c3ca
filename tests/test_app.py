"""
Tests for the command line interface.
"""

import json
import sys

import pytest

from clubadmin.app import main
from clubadmin.database import Member, PointEntry
from clubadmin.store import ClubStore
from conftest import at


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["clubadmin", *argv])
    main()


@pytest.fixture
def seeded_db(db_path):
    """Database with one member whose cached total is stale."""
    with ClubStore.open(db_path) as s:
        s.add_all([
            Member(id="m1", name="Ana", points=0, created_at=at(0), updated_at=at(0)),
            PointEntry(member_id="m1", amount=1200, source="ACTIVITY", created_at=at(1)),
        ])
    return db_path


class TestReconcileCommand:
    """Test the reconcile command."""

    def test_check_reports_divergence(self, monkeypatch, capsys, seeded_db):
        with pytest.raises(SystemExit) as exc:
            run_cli(monkeypatch, "reconcile", "--check", "--db", str(seeded_db))

        assert exc.value.code == 2
        assert "m1: cached=0 ledger=1200 (+1200)" in capsys.readouterr().out

    def test_reconcile_all_fixes_totals(self, monkeypatch, capsys, seeded_db):
        run_cli(monkeypatch, "reconcile", "--db", str(seeded_db))

        assert "updated=1 changed=1" in capsys.readouterr().out
        with ClubStore.open(seeded_db) as s:
            assert s.fetch_member_totals() == {"m1": 1200}

    def test_unknown_member_exits_with_error(self, monkeypatch, seeded_db):
        with pytest.raises(SystemExit) as exc:
            run_cli(monkeypatch, "reconcile", "--member", "ghost", "--db", str(seeded_db))

        assert "NotFoundError" in str(exc.value.code)


class TestLeagueCommand:
    """Test the league command."""

    def test_league_for_points(self, monkeypatch, capsys, db_path):
        run_cli(monkeypatch, "league", "--points", "2999", "--db", str(db_path))

        out = capsys.readouterr().out
        assert "League: BRONZE" in out
        assert "Next: PRATA in 1 points" in out

    def test_top_league_has_no_next(self, monkeypatch, capsys, db_path):
        run_cli(monkeypatch, "league", "--points", "25000", "--db", str(db_path))

        out = capsys.readouterr().out
        assert "League: DIAMANTE" in out
        assert "Next:" not in out


class TestLedgerCommands:
    """Test award, history and reset-scores."""

    def test_award_and_history(self, monkeypatch, capsys, seeded_db):
        run_cli(
            monkeypatch, "award", "--member", "m1", "--amount", "-200",
            "--source", "REFUND", "--reason", "Estorno", "--db", str(seeded_db),
        )
        assert "-200 (REFUND)" in capsys.readouterr().out

        run_cli(monkeypatch, "history", "--member", "m1", "--db", str(seeded_db))
        out = capsys.readouterr().out
        lines = [line for line in out.splitlines() if "REFUND" in line or "ACTIVITY" in line]
        assert len(lines) == 2
        assert "Estorno" in lines[0]

    def test_reset_requires_confirmation(self, monkeypatch, seeded_db):
        with pytest.raises(SystemExit):
            run_cli(monkeypatch, "reset-scores", "--db", str(seeded_db))

        with ClubStore.open(seeded_db) as s:
            assert s.count(PointEntry) == 1

    def test_reset_with_confirmation(self, monkeypatch, capsys, seeded_db):
        run_cli(monkeypatch, "reset-scores", "--yes", "--db", str(seeded_db))

        assert "Deleted 1 ledger entries" in capsys.readouterr().out
        with ClubStore.open(seeded_db) as s:
            assert s.count(PointEntry) == 0


class TestImportCommand:
    """Test the import command."""

    def test_import_document(self, monkeypatch, capsys, tmp_path, db_path, export_document):
        export = tmp_path / "export.json"
        export.write_text(json.dumps(export_document), encoding="utf-8")

        run_cli(monkeypatch, "import", "--input", str(export), "--db", str(db_path))

        out = capsys.readouterr().out
        assert "members: imported=2 skipped=0" in out
        assert "Run 'clubadmin reconcile'" in out

    def test_missing_input(self, monkeypatch, tmp_path, db_path):
        with pytest.raises(SystemExit):
            run_cli(monkeypatch, "import", "--input", str(tmp_path / "nope.json"), "--db", str(db_path))

    def test_dry_run_does_not_create_database(self, monkeypatch, capsys, tmp_path, export_document):
        export = tmp_path / "export.json"
        export.write_text(json.dumps(export_document), encoding="utf-8")
        missing = tmp_path / "new" / "club.db"

        run_cli(monkeypatch, "import", "--input", str(export), "--dry-run", "--db", str(missing))

        out = capsys.readouterr().out
        assert "[DRY RUN] members: imported=2 skipped=0" in out
        assert not missing.exists()
