from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import at, event
from wellness.patterns import (
    BAND_AFTERNOON,
    BAND_EVENING,
    BAND_LATE_NIGHT,
    BAND_MORNING,
    categorize_commits,
    is_weekend,
    time_band,
)
from wellness.schemas import KIND_PR_OPEN, KIND_PR_REVIEW, KIND_PUSH


@pytest.mark.parametrize(
    "hour,band",
    [
        (0, BAND_LATE_NIGHT),
        (5, BAND_LATE_NIGHT),
        (6, BAND_MORNING),
        (11, BAND_MORNING),
        (12, BAND_AFTERNOON),
        (17, BAND_AFTERNOON),
        (18, BAND_EVENING),
        (23, BAND_EVENING),
    ],
)
def test_time_band_edges(hour, band):
    assert time_band(hour) == band


def test_time_band_fallback_is_late_night():
    """Hours outside the daytime bands fall through to late night."""
    assert time_band(24) == BAND_LATE_NIGHT
    assert time_band(-1) == BAND_LATE_NIGHT


def test_is_weekend():
    assert is_weekend(datetime(2025, 3, 8, tzinfo=timezone.utc))  # Saturday
    assert is_weekend(datetime(2025, 3, 9, tzinfo=timezone.utc))  # Sunday
    assert not is_weekend(datetime(2025, 3, 10, tzinfo=timezone.utc))  # Monday


class TestCategorizeCommits:
    """Time-of-day and weekend bucketing of commit events."""

    def test_bands_partition_commits(self, monday):
        events = [
            event(at(monday, 2)),
            event(at(monday, 7)),
            event(at(monday, 8)),
            event(at(monday, 13)),
            event(at(monday, 19)),
        ]
        patterns = categorize_commits(events)
        assert patterns.late_night_commits == 1
        assert patterns.morning_commits == 2
        assert patterns.afternoon_commits == 1
        assert patterns.evening_commits == 1
        assert patterns.weekend_commits == 0
        total = (
            patterns.morning_commits
            + patterns.afternoon_commits
            + patterns.evening_commits
            + patterns.late_night_commits
        )
        assert total == len(events)

    def test_weekend_late_night_counts_twice(self, saturday):
        """A late-night Saturday commit increments both counters."""
        patterns = categorize_commits([event(at(saturday, 1))])
        assert patterns.late_night_commits == 1
        assert patterns.weekend_commits == 1

    def test_only_commit_kinds_count(self, monday):
        events = [
            event(at(monday, 9), kind=KIND_PUSH),
            event(at(monday, 9, 5), kind=KIND_PR_OPEN),
            event(at(monday, 9, 10), kind=KIND_PR_REVIEW),
        ]
        patterns = categorize_commits(events)
        assert patterns.morning_commits == 1

    def test_uses_local_timezone(self, monday):
        """04:00 UTC is 23:00 the previous evening in New York."""
        tz = ZoneInfo("America/New_York")
        patterns = categorize_commits([event(at(monday, 4))], tz)
        assert patterns.evening_commits == 1
        assert patterns.late_night_commits == 0
        # Monday 04:00 UTC is Sunday evening locally.
        assert patterns.weekend_commits == 1

    def test_naive_timestamp_is_read_as_utc(self):
        """05:30 UTC is 06:30 in Berlin, so the commit is a morning one."""
        naive = datetime(2025, 3, 3, 5, 30)
        patterns = categorize_commits([event(naive)], ZoneInfo("Europe/Berlin"))
        assert patterns.morning_commits == 1
        assert patterns.late_night_commits == 0
