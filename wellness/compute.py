from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from wellness.insights import generate_insights
from wellness.patterns import categorize_commits
from wellness.schemas import (
    COMMIT_KINDS,
    KIND_PR_MERGE,
    KIND_PR_OPEN,
    KIND_PR_REVIEW,
    ActivityEvent,
    DailyWellnessMetrics,
    WellnessInsight,
    to_utc,
)
from wellness.scores import calculate_scores
from wellness.sessions import segment_work_patterns, summarize_focus_sessions

# How far back previous metrics are consulted for streaks and days off.
LOOKBACK_DAYS = 30
# Window used for PR velocity (today included).
PR_VELOCITY_WINDOW_DAYS = 7


def _local(dt: datetime, tz: tzinfo) -> datetime:
    return to_utc(dt).astimezone(tz)


def _clock(dt: datetime) -> time:
    # Minute resolution, like the HH:MM values shown to users.
    return time(dt.hour, dt.minute)


def events_for_day(
    events: Iterable[ActivityEvent], day: date, tz: tzinfo
) -> List[ActivityEvent]:
    """Keep events whose local calendar date is `day`."""
    return [e for e in events if _local(e.timestamp, tz).date() == day]


def _metrics_by_day(
    previous_metrics: Sequence[DailyWellnessMetrics],
) -> Dict[date, DailyWellnessMetrics]:
    by_day: Dict[date, DailyWellnessMetrics] = {}
    for m in previous_metrics:
        by_day[m.day] = m
    return by_day


def consecutive_work_days(
    day: date,
    worked_today: bool,
    previous: Dict[date, DailyWellnessMetrics],
    lookback_days: int = LOOKBACK_DAYS,
) -> int:
    """
    Count back-to-back days with at least one commit, ending today.

    A day without commits has a streak of 0. Missing history counts as a day off.
    """
    if not worked_today:
        return 0
    streak = 1
    for offset in range(1, lookback_days + 1):
        prior = previous.get(day - timedelta(days=offset))
        if prior is None or prior.total_commits <= 0:
            break
        streak += 1
    return streak


def find_last_day_off(
    day: date,
    worked_today: bool,
    previous: Dict[date, DailyWellnessMetrics],
    lookback_days: int = LOOKBACK_DAYS,
) -> Optional[date]:
    """Most recent day without commits, today included; None if none in the window."""
    if not worked_today:
        return day
    for offset in range(1, lookback_days + 1):
        candidate = day - timedelta(days=offset)
        prior = previous.get(candidate)
        if prior is None or prior.total_commits <= 0:
            return candidate
    return None


def pr_velocity(
    day: date,
    merged_today: int,
    previous: Dict[date, DailyWellnessMetrics],
    window_days: int = PR_VELOCITY_WINDOW_DAYS,
) -> float:
    """Merged PRs per day over the trailing window ending today."""
    merged = merged_today
    for offset in range(1, window_days):
        prior = previous.get(day - timedelta(days=offset))
        if prior is not None:
            merged += prior.prs_merged
    return merged / float(window_days)


def compute_daily_wellness_metrics(
    *,
    user_id: str,
    day: date,
    events: Sequence[ActivityEvent],
    previous_metrics: Sequence[DailyWellnessMetrics] = (),
    computed_at: datetime,
    tz: Optional[tzinfo] = None,
) -> DailyWellnessMetrics:
    """
    Derive one user's wellness metrics for a single local calendar day.

    Inputs:
    - `events`: activity for the user; anything outside `day` (in `tz`) is ignored
    - `previous_metrics`: earlier daily records, used for the work-day streak,
      the last day off and the 7-day PR velocity

    The function is pure. A day with no usable events produces a valid
    zero-activity record (burnout 0, balance 100, focus 0).
    """
    tz = tz or timezone.utc
    previous = _metrics_by_day([m for m in previous_metrics if m.day < day])

    # Naive timestamps are UTC; normalizing once keeps them comparable with aware ones.
    normalized = [replace(e, timestamp=to_utc(e.timestamp)) for e in events]
    day_events = sorted(events_for_day(normalized, day, tz), key=lambda e: e.timestamp)

    patterns = segment_work_patterns(day_events)
    avg_focus, longest_focus = summarize_focus_sessions(patterns.focus_sessions)
    commits = categorize_commits(day_events, tz)

    total_commits = sum(1 for e in day_events if e.kind in COMMIT_KINDS)
    prs_opened = sum(1 for e in day_events if e.kind == KIND_PR_OPEN)
    prs_reviewed = sum(1 for e in day_events if e.kind == KIND_PR_REVIEW)
    prs_merged = sum(1 for e in day_events if e.kind == KIND_PR_MERGE)

    pr_sizes = [e.size for e in day_events if e.kind == KIND_PR_OPEN and e.size > 0]
    average_pr_size = (sum(pr_sizes) / len(pr_sizes)) if pr_sizes else 0.0

    first_activity: Optional[time] = None
    last_activity: Optional[time] = None
    if day_events:
        first_activity = _clock(_local(day_events[0].timestamp, tz))
        last_activity = _clock(_local(day_events[-1].timestamp, tz))

    worked_today = total_commits > 0

    metrics = DailyWellnessMetrics(
        user_id=user_id,
        day=day,
        coding_hours=patterns.coding_hours,
        break_time=patterns.break_hours,
        focus_sessions=len(patterns.focus_sessions),
        average_focus_duration=avg_focus,
        longest_focus_duration=longest_focus,
        total_commits=total_commits,
        morning_commits=commits.morning_commits,
        afternoon_commits=commits.afternoon_commits,
        evening_commits=commits.evening_commits,
        late_night_commits=commits.late_night_commits,
        weekend_commits=commits.weekend_commits,
        prs_opened=prs_opened,
        prs_reviewed=prs_reviewed,
        prs_merged=prs_merged,
        average_pr_size=average_pr_size,
        pr_velocity=pr_velocity(day, prs_merged, previous),
        first_activity_time=first_activity,
        last_activity_time=last_activity,
        consecutive_work_days=consecutive_work_days(day, worked_today, previous),
        last_day_off=find_last_day_off(day, worked_today, previous),
        computed_at=to_utc(computed_at),
    )

    scores = calculate_scores(metrics)
    return replace(
        metrics,
        burnout_risk_score=scores.burnout_risk,
        work_life_balance_score=scores.work_life_balance,
        focus_score=scores.focus,
    )


def analyze_day(
    *,
    user_id: str,
    day: date,
    events: Sequence[ActivityEvent],
    previous_metrics: Sequence[DailyWellnessMetrics] = (),
    computed_at: datetime,
    tz: Optional[tzinfo] = None,
    team_id: Optional[str] = None,
) -> Tuple[DailyWellnessMetrics, List[WellnessInsight]]:
    """Compute the day's metrics and the insights they trigger."""
    metrics = compute_daily_wellness_metrics(
        user_id=user_id,
        day=day,
        events=events,
        previous_metrics=previous_metrics,
        computed_at=computed_at,
        tz=tz,
    )
    insights = generate_insights(
        metrics, computed_at=to_utc(computed_at), team_id=team_id
    )
    return metrics, insights
