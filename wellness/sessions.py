from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Sequence, Tuple

from wellness.schemas import ActivityEvent, FocusSession, WorkPatterns, to_utc

# Inactivity longer than this closes the current focus session.
FOCUS_BREAK_THRESHOLD = timedelta(minutes=30)
# Inactivity longer than this (but not closing the session) counts as a break.
BREAK_THRESHOLD = timedelta(minutes=5)
# Sessions shorter than this are noise.
MIN_FOCUS_SESSION_MINUTES = 15.0


def _minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60.0


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / 3600.0


def segment_work_patterns(events: Sequence[ActivityEvent]) -> WorkPatterns:
    """
    Group a day's activity into focus sessions and measure active/break time.

    Rules:
    - events are sorted by timestamp first (input order is irrelevant);
      naive timestamps are read as UTC
    - a gap > 30 minutes closes the running session; the next event opens a new one
    - a gap > 5 minutes is break time; gaps up to 30 minutes keep the session open
    - a gap of exactly 30 minutes keeps the session open (thresholds are exclusive)
    - coding hours are the summed span of every session, including ones that the
      15 minute noise filter later drops from `focus_sessions`
    """
    if not events:
        return WorkPatterns()

    stamps = sorted(to_utc(e.timestamp) for e in events)

    sessions: List[FocusSession] = []
    active = timedelta(0)
    breaks = timedelta(0)

    session_start: datetime = stamps[0]
    last_seen: datetime = session_start

    for ts in stamps[1:]:
        gap = ts - last_seen
        if gap > BREAK_THRESHOLD:
            breaks += gap
        if gap > FOCUS_BREAK_THRESHOLD:
            active += _close(sessions, session_start, last_seen)
            session_start = ts
        last_seen = ts

    active += _close(sessions, session_start, last_seen)

    significant = tuple(
        s for s in sessions if s.duration_minutes >= MIN_FOCUS_SESSION_MINUTES
    )
    return WorkPatterns(
        focus_sessions=significant,
        sessions=tuple(sessions),
        coding_hours=_hours(active),
        break_hours=_hours(breaks),
    )


def _close(sessions: List[FocusSession], start: datetime, end: datetime) -> timedelta:
    span = end - start
    sessions.append(FocusSession(start=start, end=end, duration_minutes=_minutes(span)))
    return span


def summarize_focus_sessions(sessions: Sequence[FocusSession]) -> Tuple[float, float]:
    """Return (average_minutes, longest_minutes); zeros when there are no sessions."""
    if not sessions:
        return 0.0, 0.0
    durations = [s.duration_minutes for s in sessions]
    return sum(durations) / len(durations), max(durations)
