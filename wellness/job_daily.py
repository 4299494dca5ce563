from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from storage import (
    ActivityRepository,
    create_activity_repository,
    create_wellness_sink,
    detect_db_type,
    local_day_window,
)
from wellness.compute import LOOKBACK_DAYS, analyze_day
from wellness.sinks import WellnessSink

logger = logging.getLogger(__name__)


@dataclass
class WellnessJobResult:
    days: List[date]
    user_ids: List[str] = field(default_factory=list)
    processed: int = 0
    insights_written: int = 0
    # (user_id, day, error message)
    failures: List[Tuple[str, date, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def resolve_timezone(name: Optional[str] = None) -> tzinfo:
    """Resolve an IANA timezone name, falling back to WELLNESS_TIMEZONE then UTC."""
    name = (name or os.getenv("WELLNESS_TIMEZONE") or "UTC").strip()
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {name!r}")


def _date_range(end_day: date, backfill_days: int) -> List[date]:
    if backfill_days <= 1:
        return [end_day]
    start_day = end_day - timedelta(days=backfill_days - 1)
    return [start_day + timedelta(days=i) for i in range(backfill_days)]


def run_daily_wellness_job(
    *,
    db_url: Optional[str] = None,
    day: date,
    backfill_days: int = 1,
    user_ids: Optional[Sequence[str]] = None,
    timezone_name: Optional[str] = None,
    team_id: Optional[str] = None,
    repository: Optional[ActivityRepository] = None,
    sink: Optional[WellnessSink] = None,
) -> WellnessJobResult:
    """
    Recompute and persist daily wellness metrics and insights.

    Source data is the `activities` table/collection of the backend pointed to
    by `db_url` (SQLite or MongoDB). Results are upserted into the same backend:
    - `wellness_metrics_daily`, one row per (user, day)
    - `wellness_insights`, one row per (user, day, rule)

    Days are processed oldest first, so with a backfill each day sees the
    metrics written for the day before it. A failure for one user-day is
    logged and recorded; the rest of the batch still runs.

    `repository` and `sink` may be passed in directly (they are then left
    open); otherwise both are created from `db_url` and closed on exit.
    """
    tz = resolve_timezone(timezone_name)

    owned: List[Any] = []
    if repository is None or sink is None:
        db_url = db_url or os.getenv("DB_CONN_STRING") or os.getenv("DATABASE_URL")
        if not db_url:
            raise ValueError(
                "Database URI is required (pass --db or set DB_CONN_STRING)."
            )
        backend = detect_db_type(db_url)
        logger.info("Daily wellness job: backend=%s", backend)

    days = _date_range(day, backfill_days)
    computed_at = datetime.now(timezone.utc)
    result = WellnessJobResult(days=days)

    try:
        if repository is None:
            repository = create_activity_repository(db_url)  # type: ignore[arg-type]
            owned.append(repository)
        if sink is None:
            sink = create_wellness_sink(db_url)  # type: ignore[arg-type]
            owned.append(sink)

        for s in owned:
            s.ensure_tables()

        if user_ids:
            users = sorted(set(user_ids))
        else:
            window_start, _ = local_day_window(days[0], tz)
            _, window_end = local_day_window(days[-1], tz)
            users = list(repository.list_user_ids(window_start, window_end))
        result.user_ids = users

        logger.info(
            "Daily wellness job: day=%s backfill=%d users=%d tz=%s",
            day.isoformat(),
            backfill_days,
            len(users),
            tz,
        )

        for d in days:
            logger.info("Computing wellness for day=%s", d.isoformat())
            for user_id in users:
                try:
                    events = repository.fetch_day(user_id, d, tz)
                    previous = sink.fetch_daily_metrics(
                        user_id, d - timedelta(days=LOOKBACK_DAYS), d - timedelta(days=1)
                    )
                    metrics, insights = analyze_day(
                        user_id=user_id,
                        day=d,
                        events=events,
                        previous_metrics=previous,
                        computed_at=computed_at,
                        tz=tz,
                        team_id=team_id,
                    )
                    sink.write_daily_metrics([metrics])
                    sink.write_insights(insights)
                except Exception as exc:
                    logger.exception(
                        "Wellness computation failed user=%s day=%s",
                        user_id,
                        d.isoformat(),
                    )
                    result.failures.append((user_id, d, str(exc)))
                    continue
                result.processed += 1
                result.insights_written += len(insights)
                logger.debug(
                    "user=%s day=%s events=%d burnout=%.1f insights=%d",
                    user_id,
                    d.isoformat(),
                    len(events),
                    metrics.burnout_risk_score,
                    len(insights),
                )

        logger.info(
            "Daily wellness job done: processed=%d insights=%d failures=%d",
            result.processed,
            result.insights_written,
            len(result.failures),
        )
        return result
    finally:
        for s in owned:
            try:
                s.close()
            except Exception:
                logger.exception("Error closing %s", type(s).__name__)


def prune_expired_insights(
    *, db_url: Optional[str] = None, now: Optional[datetime] = None
) -> int:
    """Delete insights whose validity window has passed."""
    db_url = db_url or os.getenv("DB_CONN_STRING") or os.getenv("DATABASE_URL")
    if not db_url:
        raise ValueError("Database URI is required (pass --db or set DB_CONN_STRING).")
    now = now or datetime.now(timezone.utc)
    sink = create_wellness_sink(db_url)
    try:
        sink.ensure_tables()
        removed = sink.prune_expired_insights(now)
        logger.info("Pruned %d expired insights", removed)
        return removed
    finally:
        sink.close()
