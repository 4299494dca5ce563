import os
from datetime import date, timedelta, timezone

import pytest

import cli
from storage import SQLAlchemyActivityRepository, local_day_window
from wellness.job_daily import WellnessJobResult
from wellness.sinks.sqlite import SQLiteWellnessSink

END = date(2025, 3, 14)


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch):
    monkeypatch.setenv("DISABLE_DOTENV", "1")


def test_parser_wellness_daily_defaults(monkeypatch):
    monkeypatch.delenv("DB_CONN_STRING", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("WELLNESS_TIMEZONE", raising=False)
    ns = cli.build_parser().parse_args(["wellness", "daily"])
    assert ns.func is cli._cmd_wellness_daily
    assert ns.date is None
    assert ns.backfill == 1
    assert ns.db is None
    assert ns.user_id is None
    assert ns.timezone is None


def test_parser_fixtures_generate():
    ns = cli.build_parser().parse_args(
        [
            "fixtures",
            "generate",
            "--db",
            "sqlite:///x.db",
            "--user-id",
            "a",
            "--user-id",
            "b",
            "--date",
            "2025-03-14",
            "--seed",
            "7",
            "--with-metrics",
        ]
    )
    assert ns.user_id == ["a", "b"]
    assert ns.date == END
    assert ns.seed == 7
    assert ns.with_metrics is True


def test_parser_rejects_bad_date():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["wellness", "daily", "--date", "14/03/2025"])


def test_missing_db_exits(monkeypatch):
    monkeypatch.delenv("DB_CONN_STRING", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(SystemExit, match="Database URI is required"):
        cli.main(["wellness", "daily"])


def test_unsupported_db_exits():
    with pytest.raises(SystemExit, match="Could not detect database type"):
        cli.main(["wellness", "prune", "--db", "postgresql://localhost/x"])


def test_bad_timezone_exits(sqlite_url):
    with pytest.raises(SystemExit, match="Unknown timezone"):
        cli.main(["wellness", "daily", "--db", sqlite_url, "--timezone", "Nowhere/City"])


def test_load_dotenv_does_not_override(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comment\nexport NEW_KEY='quoted'\nEXISTING=from-file\nnot a pair\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("EXISTING", "kept")
    monkeypatch.delenv("NEW_KEY", raising=False)
    assert cli._load_dotenv(env_file) == 1
    assert cli._load_dotenv(tmp_path / "absent.env") == 0
    assert os.environ["NEW_KEY"] == "quoted"
    assert os.environ["EXISTING"] == "kept"


def test_generate_then_compute(sqlite_url):
    args = [
        "fixtures",
        "generate",
        "--db",
        sqlite_url,
        "--user-id",
        "alice",
        "--user-id",
        "bob",
        "--days",
        "10",
        "--date",
        END.isoformat(),
        "--seed",
        "42",
    ]
    assert cli.main(args) == 0

    repository = SQLAlchemyActivityRepository(sqlite_url)
    try:
        start, _ = local_day_window(END - timedelta(days=9), timezone.utc)
        _, end = local_day_window(END + timedelta(days=1), timezone.utc)
        assert repository.list_user_ids(start, end) == ["alice", "bob"]
    finally:
        repository.close()

    assert (
        cli.main(
            [
                "wellness",
                "daily",
                "--db",
                sqlite_url,
                "--date",
                END.isoformat(),
                "--backfill",
                "10",
                "--user-id",
                "alice",
                "--user-id",
                "bob",
            ]
        )
        == 0
    )

    sink = SQLiteWellnessSink(sqlite_url)
    try:
        for user_id in ("alice", "bob"):
            rows = sink.fetch_daily_metrics(user_id, END - timedelta(days=9), END)
            assert len(rows) == 10
            assert all(0 <= r.burnout_risk_score <= 100 for r in rows)
    finally:
        sink.close()

    assert cli.main(["wellness", "prune", "--db", sqlite_url]) == 0


def test_generate_with_metrics(sqlite_url):
    assert (
        cli.main(
            [
                "fixtures",
                "generate",
                "--db",
                sqlite_url,
                "--days",
                "5",
                "--date",
                END.isoformat(),
                "--seed",
                "1",
                "--with-metrics",
            ]
        )
        == 0
    )
    sink = SQLiteWellnessSink(sqlite_url)
    try:
        rows = sink.fetch_daily_metrics(
            "alice@example.com", END - timedelta(days=4), END + timedelta(days=1)
        )
    finally:
        sink.close()
    assert len(rows) == 6


def test_daily_returns_1_on_failures(monkeypatch, sqlite_url):
    def fake_job(**kwargs):
        return WellnessJobResult(
            days=[kwargs["day"]], failures=[("alice", kwargs["day"], "boom")]
        )

    monkeypatch.setattr("wellness.job_daily.run_daily_wellness_job", fake_job)
    assert cli.main(["wellness", "daily", "--db", sqlite_url, "--date", "2025-03-14"]) == 1
