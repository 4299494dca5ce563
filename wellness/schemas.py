from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, TypedDict, Union

from typing_extensions import NotRequired

logger = logging.getLogger(__name__)

# Activity kinds emitted by the activity collector.
KIND_COMMIT = "commit"
KIND_PUSH = "push"
KIND_PR_OPEN = "pr_open"
KIND_PR_REVIEW = "pr_review"
KIND_PR_MERGE = "pr_merge"

ACTIVITY_KINDS = frozenset(
    {KIND_COMMIT, KIND_PUSH, KIND_PR_OPEN, KIND_PR_REVIEW, KIND_PR_MERGE}
)
COMMIT_KINDS = frozenset({KIND_COMMIT, KIND_PUSH})

# Insight vocabulary.
INSIGHT_TIP = "tip"
INSIGHT_WARNING = "warning"
INSIGHT_ACHIEVEMENT = "achievement"
INSIGHT_RECOMMENDATION = "recommendation"

CATEGORY_BURNOUT = "burnout"
CATEGORY_FOCUS = "focus"
CATEGORY_BALANCE = "balance"
CATEGORY_PRODUCTIVITY = "productivity"
CATEGORY_HEALTH = "health"

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"


class ActivityRow(TypedDict):
    timestamp: Union[str, datetime, None]
    kind: str
    repository_id: NotRequired[Optional[str]]
    size: NotRequired[Optional[int]]


@dataclass(frozen=True)
class ActivityEvent:
    user_id: str
    timestamp: datetime
    kind: str  # commit|pr_open|pr_review|pr_merge|push
    repository_id: str = ""
    # Lines changed; only meaningful for PR events.
    size: int = 0


@dataclass(frozen=True)
class FocusSession:
    start: datetime
    end: datetime
    duration_minutes: float


@dataclass(frozen=True)
class WorkPatterns:
    # Sessions that survived the noise filter.
    focus_sessions: Tuple[FocusSession, ...] = ()
    # Every session span, before filtering.
    sessions: Tuple[FocusSession, ...] = ()
    coding_hours: float = 0.0
    break_hours: float = 0.0


@dataclass(frozen=True)
class CommitPatterns:
    morning_commits: int = 0
    afternoon_commits: int = 0
    evening_commits: int = 0
    late_night_commits: int = 0
    weekend_commits: int = 0


@dataclass(frozen=True)
class WellnessScores:
    burnout_risk: float = 0.0
    work_life_balance: float = 100.0
    focus: float = 0.0


@dataclass(frozen=True)
class DailyWellnessMetrics:
    user_id: str
    day: date

    # Work patterns.
    coding_hours: float = 0.0
    break_time: float = 0.0  # hours
    focus_sessions: int = 0
    average_focus_duration: float = 0.0  # minutes
    longest_focus_duration: float = 0.0  # minutes

    # Commit patterns.
    total_commits: int = 0
    morning_commits: int = 0  # 06:00-12:00
    afternoon_commits: int = 0  # 12:00-18:00
    evening_commits: int = 0  # 18:00-24:00
    late_night_commits: int = 0  # 00:00-06:00
    weekend_commits: int = 0

    # Pull requests.
    prs_opened: int = 0
    prs_reviewed: int = 0
    prs_merged: int = 0
    average_pr_size: float = 0.0
    pr_velocity: float = 0.0  # merged PRs per day, 7-day window

    # Day shape.
    first_activity_time: Optional[time] = None
    last_activity_time: Optional[time] = None
    consecutive_work_days: int = 0
    last_day_off: Optional[date] = None

    # Scores, 0-100.
    burnout_risk_score: float = 0.0
    work_life_balance_score: float = 100.0
    focus_score: float = 0.0

    computed_at: Optional[datetime] = None


@dataclass(frozen=True)
class WellnessInsight:
    insight_id: str
    rule_key: str
    user_id: str
    day: date
    type: str  # tip|warning|achievement|recommendation
    category: str  # burnout|focus|balance|productivity|health
    title: str
    message: str
    action_items: Tuple[str, ...] = ()
    severity: Optional[str] = None  # info|warning|critical
    team_id: Optional[str] = None
    related_metrics: Dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    is_dismissed: bool = False
    valid_until: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        if self.valid_until is None:
            return False
        return to_utc(self.valid_until) <= to_utc(now)


def to_utc(dt: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to be UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an activity timestamp into an aware UTC datetime.

    Accepts datetimes and ISO-8601 strings (a trailing ``Z`` is allowed).
    Returns None for anything else.
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"
    try:
        return to_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None


def parse_activity_rows(
    rows: Iterable[ActivityRow], *, user_id: str
) -> List[ActivityEvent]:
    """
    Convert raw activity rows to events, skipping rows that cannot be used.

    A bad row never aborts the day: it is logged and dropped.
    """
    events: List[ActivityEvent] = []
    skipped = 0
    for row in rows:
        ts = parse_timestamp(row.get("timestamp"))
        kind = str(row.get("kind") or "").strip().lower()
        if ts is None:
            skipped += 1
            logger.warning(
                "Skipping activity with unparseable timestamp user=%s value=%r",
                user_id,
                row.get("timestamp"),
            )
            continue
        if kind not in ACTIVITY_KINDS:
            skipped += 1
            logger.warning(
                "Skipping activity with unknown kind user=%s kind=%r", user_id, kind
            )
            continue
        try:
            size = max(0, int(row.get("size") or 0))
        except (TypeError, ValueError):
            size = 0
        events.append(
            ActivityEvent(
                user_id=user_id,
                timestamp=ts,
                kind=kind,
                repository_id=str(row.get("repository_id") or ""),
                size=size,
            )
        )
    if skipped:
        logger.info("Dropped %d invalid activity rows for user=%s", skipped, user_id)
    return events
