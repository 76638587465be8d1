import pytest
from sqlalchemy import create_engine, select

from app.core.settings import settings
from app.db.session import build_session_factory
from app.models import Base
from app.models.patient_profile import PatientProfile
from app.scripts import migrate_assigned_doctor_ids as cli

import conftest


@pytest.fixture()
def sqlite_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'migration.db'}"
    engine = create_engine(url)
    Base.metadata.create_all(bind=engine)
    session = build_session_factory(engine)()
    try:
        conftest.add_doctor(session, "U1", "P1")
        conftest.add_patient(session, "PAT1", "P1", profile_id="PP01")
        conftest.add_patient(session, "PAT2", "U1", profile_id="PP02")
    finally:
        session.close()
        engine.dispose()
    monkeypatch.setattr(settings, "database_url", url)
    return url


def stored_ref(url, profile_id):
    engine = create_engine(url)
    try:
        with engine.connect() as conn:
            return conn.execute(
                select(PatientProfile.assigned_doctor_ref).where(PatientProfile.id == profile_id)
            ).scalar_one()
    finally:
        engine.dispose()


@pytest.fixture()
def no_database(monkeypatch):
    def refuse(*args, **kwargs):
        raise AssertionError("database must not be opened")

    monkeypatch.setattr(cli, "build_engine", refuse)


def test_help_exits_cleanly(no_database, capsys):
    assert cli.main(["-h"]) == 0
    assert "--dry-run" in capsys.readouterr().out


@pytest.mark.parametrize(
    "argv",
    [
        ["--unknown"],
        ["--limit=0"],
        ["--limit", "-3"],
        ["--limit=abc"],
        ["--limit"],
        ["--dry"],
        ["--d"],
        ["--lim=1"],
    ],
)
def test_bad_arguments_exit_with_usage_error(no_database, capsys, argv):
    assert cli.main(argv) == 2
    assert "usage" in capsys.readouterr().err


def test_limit_error_names_the_value(no_database, capsys):
    cli.main(["--limit=abc"])
    assert 'Invalid --limit value "abc". Use a positive integer.' in capsys.readouterr().err


def test_dry_run_reports_without_writing(sqlite_url, capsys):
    assert cli.main(["--dry-run"]) == 0

    out = capsys.readouterr().out
    assert "--- Assigned Doctor ID Migration Summary ---" in out
    assert "Mode: DRY RUN (no writes)" in out
    assert "Patient profiles scanned: 2" in out
    assert "Would update: 1" in out
    assert stored_ref(sqlite_url, "PP01") == "P1"


def test_live_run_rewrites_legacy_rows(sqlite_url, capsys):
    assert cli.main([]) == 0

    out = capsys.readouterr().out
    assert "Updated: 1" in out
    assert stored_ref(sqlite_url, "PP01") == "U1"
    assert stored_ref(sqlite_url, "PP02") == "U1"


def test_limit_caps_scan(sqlite_url, capsys):
    assert cli.main(["--dry-run", "--limit", "1"]) == 0
    assert "Patient profiles scanned: 1" in capsys.readouterr().out


def test_unreachable_store_exits_with_failure(tmp_path, monkeypatch, capsys):
    missing = tmp_path / "missing-dir" / "nested" / "vitalink.db"
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{missing}")

    assert cli.main([]) == 1
    assert "Migration failed:" in capsys.readouterr().err


def test_malformed_database_url_exits_with_failure(monkeypatch, capsys):
    monkeypatch.setattr(settings, "database_url", "not a database url")

    assert cli.main(["--dry-run"]) == 1
    assert "Migration failed:" in capsys.readouterr().err
