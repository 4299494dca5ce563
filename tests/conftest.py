"""Shared test fixtures for the test suite."""
from datetime import date, datetime, timedelta, timezone

import pytest

from wellness.schemas import KIND_COMMIT, ActivityEvent, DailyWellnessMetrics


def at(day: date, hour: int, minute: int = 0, second: int = 0) -> datetime:
    """UTC datetime on `day` at the given clock time."""
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=timezone.utc)


def event(ts: datetime, kind: str = KIND_COMMIT, user_id: str = "alice", size: int = 0):
    return ActivityEvent(user_id=user_id, timestamp=ts, kind=kind, repository_id="acme/app", size=size)


def history(user_id: str, end_day: date, days: int, **fields) -> list:
    """Daily metrics for `days` days ending the day before `end_day`, oldest first."""
    return [
        DailyWellnessMetrics(user_id=user_id, day=end_day - timedelta(days=offset), **fields)
        for offset in range(days, 0, -1)
    ]


@pytest.fixture
def monday():
    """A Monday, so weekend counts stay at zero."""
    return date(2025, 3, 3)


@pytest.fixture
def saturday():
    return date(2025, 3, 8)


@pytest.fixture
def computed_at():
    return datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sqlite_url(tmp_path):
    """File-backed SQLite URL (in-memory databases are per-connection)."""
    return f"sqlite:///{tmp_path / 'devflow.db'}"
