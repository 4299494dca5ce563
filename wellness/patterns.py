from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Optional, Sequence

from wellness.schemas import COMMIT_KINDS, ActivityEvent, CommitPatterns, to_utc

BAND_MORNING = "morning"  # [06, 12)
BAND_AFTERNOON = "afternoon"  # [12, 18)
BAND_EVENING = "evening"  # [18, 24)
BAND_LATE_NIGHT = "late_night"  # everything else


def time_band(hour: int) -> str:
    """
    Bucket a local hour of day.

    Late night is the fallback: any hour outside the three daytime bands lands
    there, so the bands always partition the input.
    """
    if 6 <= hour < 12:
        return BAND_MORNING
    if 12 <= hour < 18:
        return BAND_AFTERNOON
    if 18 <= hour < 24:
        return BAND_EVENING
    return BAND_LATE_NIGHT


def is_weekend(dt: datetime) -> bool:
    # Saturday=5, Sunday=6.
    return dt.weekday() >= 5


def _local(dt: datetime, tz: Optional[tzinfo]) -> datetime:
    # Naive timestamps are UTC, the same reading the day filter uses.
    return to_utc(dt).astimezone(tz or timezone.utc)


def categorize_commits(
    events: Sequence[ActivityEvent], tz: Optional[tzinfo] = None
) -> CommitPatterns:
    """
    Count commit-type events per time-of-day band and on weekends.

    Only `commit` and `push` events are counted. The weekend flag is independent
    of the band, so a late-night Saturday commit increments both counters.
    """
    counts = {
        BAND_MORNING: 0,
        BAND_AFTERNOON: 0,
        BAND_EVENING: 0,
        BAND_LATE_NIGHT: 0,
    }
    weekend = 0
    for event in events:
        if event.kind not in COMMIT_KINDS:
            continue
        local = _local(event.timestamp, tz)
        counts[time_band(local.hour)] += 1
        if is_weekend(local):
            weekend += 1

    return CommitPatterns(
        morning_commits=counts[BAND_MORNING],
        afternoon_commits=counts[BAND_AFTERNOON],
        evening_commits=counts[BAND_EVENING],
        late_night_commits=counts[BAND_LATE_NIGHT],
        weekend_commits=weekend,
    )
