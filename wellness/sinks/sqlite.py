from __future__ import annotations

import json
from dataclasses import asdict
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from wellness.schemas import DailyWellnessMetrics, WellnessInsight

_METRIC_COLUMNS = [
    "user_id",
    "day",
    "coding_hours",
    "break_time",
    "focus_sessions",
    "average_focus_duration",
    "longest_focus_duration",
    "total_commits",
    "morning_commits",
    "afternoon_commits",
    "evening_commits",
    "late_night_commits",
    "weekend_commits",
    "prs_opened",
    "prs_reviewed",
    "prs_merged",
    "average_pr_size",
    "pr_velocity",
    "first_activity_time",
    "last_activity_time",
    "consecutive_work_days",
    "last_day_off",
    "burnout_risk_score",
    "work_life_balance_score",
    "focus_score",
    "computed_at",
]

# Refreshed on re-run; read/dismissed flags are owned by the user and kept.
_INSIGHT_CONTENT_COLUMNS = [
    "rule_key",
    "user_id",
    "team_id",
    "day",
    "type",
    "category",
    "severity",
    "title",
    "message",
    "action_items",
    "related_metrics",
    "valid_until",
    "created_at",
]


def _dt_to_sqlite(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.isoformat()
    return value.astimezone(timezone.utc).replace(tzinfo=None).isoformat()


def _dt_from_sqlite(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _time_to_sqlite(value: Optional[time]) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


def _time_from_sqlite(value: Optional[str]) -> Optional[time]:
    if not value:
        return None
    return time.fromisoformat(str(value))


def _day_from_sqlite(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


class SQLiteWellnessSink:
    """SQLite sink for daily wellness metrics and insights (idempotent upserts)."""

    def __init__(self, db_url: str) -> None:
        if not db_url:
            raise ValueError("SQLite DB URL is required")
        if "sqlite+aiosqlite://" in db_url:
            db_url = db_url.replace("sqlite+aiosqlite://", "sqlite://", 1)
        self.engine: Engine = create_engine(db_url, echo=False)

    def close(self) -> None:
        self.engine.dispose()

    def ensure_tables(self) -> None:
        stmts = [
            """
            CREATE TABLE IF NOT EXISTS wellness_metrics_daily (
              user_id TEXT NOT NULL,
              day TEXT NOT NULL,
              coding_hours REAL NOT NULL DEFAULT 0.0,
              break_time REAL NOT NULL DEFAULT 0.0,
              focus_sessions INTEGER NOT NULL DEFAULT 0,
              average_focus_duration REAL NOT NULL DEFAULT 0.0,
              longest_focus_duration REAL NOT NULL DEFAULT 0.0,
              total_commits INTEGER NOT NULL DEFAULT 0,
              morning_commits INTEGER NOT NULL DEFAULT 0,
              afternoon_commits INTEGER NOT NULL DEFAULT 0,
              evening_commits INTEGER NOT NULL DEFAULT 0,
              late_night_commits INTEGER NOT NULL DEFAULT 0,
              weekend_commits INTEGER NOT NULL DEFAULT 0,
              prs_opened INTEGER NOT NULL DEFAULT 0,
              prs_reviewed INTEGER NOT NULL DEFAULT 0,
              prs_merged INTEGER NOT NULL DEFAULT 0,
              average_pr_size REAL NOT NULL DEFAULT 0.0,
              pr_velocity REAL NOT NULL DEFAULT 0.0,
              first_activity_time TEXT,
              last_activity_time TEXT,
              consecutive_work_days INTEGER NOT NULL DEFAULT 0,
              last_day_off TEXT,
              burnout_risk_score REAL NOT NULL DEFAULT 0.0,
              work_life_balance_score REAL NOT NULL DEFAULT 100.0,
              focus_score REAL NOT NULL DEFAULT 0.0,
              computed_at TEXT,
              PRIMARY KEY (user_id, day)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS wellness_insights (
              insight_id TEXT NOT NULL PRIMARY KEY,
              rule_key TEXT NOT NULL,
              user_id TEXT NOT NULL,
              team_id TEXT,
              day TEXT NOT NULL,
              type TEXT NOT NULL,
              category TEXT NOT NULL,
              severity TEXT,
              title TEXT NOT NULL,
              message TEXT NOT NULL,
              action_items TEXT NOT NULL DEFAULT '[]',
              related_metrics TEXT NOT NULL DEFAULT '{}',
              is_read INTEGER NOT NULL DEFAULT 0,
              is_dismissed INTEGER NOT NULL DEFAULT 0,
              valid_until TEXT,
              created_at TEXT
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_wellness_metrics_daily_day ON wellness_metrics_daily(day)",
            "CREATE INDEX IF NOT EXISTS idx_wellness_insights_user ON wellness_insights(user_id, created_at)",
            "CREATE INDEX IF NOT EXISTS idx_wellness_insights_team ON wellness_insights(team_id, created_at)",
        ]
        with self.engine.begin() as conn:
            for stmt in stmts:
                conn.execute(text(stmt))

    # ---- writes ----

    def write_daily_metrics(self, rows: Sequence[DailyWellnessMetrics]) -> None:
        if not rows:
            return
        cols = ", ".join(_METRIC_COLUMNS)
        params = ", ".join(f":{c}" for c in _METRIC_COLUMNS)
        updates = ",\n              ".join(
            f"{c}=excluded.{c}" for c in _METRIC_COLUMNS if c not in {"user_id", "day"}
        )
        stmt = text(
            f"""
            INSERT INTO wellness_metrics_daily ({cols})
            VALUES ({params})
            ON CONFLICT(user_id, day) DO UPDATE SET
              {updates}
            """
        )
        payload = [self._metrics_row(r) for r in rows]
        with self.engine.begin() as conn:
            conn.execute(stmt, payload)

    def write_insights(self, rows: Sequence[WellnessInsight]) -> None:
        if not rows:
            return
        all_cols = ["insight_id"] + _INSIGHT_CONTENT_COLUMNS + ["is_read", "is_dismissed"]
        cols = ", ".join(all_cols)
        params = ", ".join(f":{c}" for c in all_cols)
        updates = ",\n              ".join(
            f"{c}=excluded.{c}" for c in _INSIGHT_CONTENT_COLUMNS
        )
        stmt = text(
            f"""
            INSERT INTO wellness_insights ({cols})
            VALUES ({params})
            ON CONFLICT(insight_id) DO UPDATE SET
              {updates}
            """
        )
        payload = [self._insight_row(r) for r in rows]
        with self.engine.begin() as conn:
            conn.execute(stmt, payload)

    def mark_insight_read(self, insight_id: str) -> bool:
        return self._set_flag(insight_id, "is_read")

    def dismiss_insight(self, insight_id: str) -> bool:
        return self._set_flag(insight_id, "is_dismissed")

    def _set_flag(self, insight_id: str, column: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                text(f"UPDATE wellness_insights SET {column} = 1 WHERE insight_id = :id"),
                {"id": insight_id},
            )
        return bool(result.rowcount)

    def prune_expired_insights(self, now: datetime) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                text(
                    "DELETE FROM wellness_insights "
                    "WHERE valid_until IS NOT NULL AND valid_until <= :now"
                ),
                {"now": _dt_to_sqlite(now)},
            )
        return int(result.rowcount or 0)

    # ---- reads ----

    def fetch_daily_metrics(
        self, user_id: str, start: date, end: date
    ) -> List[DailyWellnessMetrics]:
        """Metrics for `user_id` with start <= day <= end, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                text(
                    "SELECT * FROM wellness_metrics_daily "
                    "WHERE user_id = :user_id AND day >= :start AND day <= :end "
                    "ORDER BY day"
                ),
                {"user_id": user_id, "start": start.isoformat(), "end": end.isoformat()},
            ).mappings().all()
        return [self._metrics_from_row(r) for r in rows]

    def fetch_insights(
        self,
        user_id: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
        include_dismissed: bool = False,
        team_id: Optional[str] = None,
    ) -> List[WellnessInsight]:
        """Newest first. Expired insights are hidden when `now` is given."""
        clauses: List[str] = []
        params: Dict[str, Any] = {}
        if user_id is not None:
            clauses.append("user_id = :user_id")
            params["user_id"] = user_id
        if team_id is not None:
            clauses.append("team_id = :team_id")
            params["team_id"] = team_id
        if not include_dismissed:
            clauses.append("is_dismissed = 0")
        if now is not None:
            clauses.append("(valid_until IS NULL OR valid_until > :now)")
            params["now"] = _dt_to_sqlite(now)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self.engine.connect() as conn:
            rows = conn.execute(
                text(
                    f"SELECT * FROM wellness_insights {where} "
                    "ORDER BY day DESC, created_at DESC, insight_id"
                ),
                params,
            ).mappings().all()
        return [self._insight_from_row(r) for r in rows]

    def get_insight(self, insight_id: str) -> Optional[WellnessInsight]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text("SELECT * FROM wellness_insights WHERE insight_id = :id"),
                {"id": insight_id},
            ).mappings().first()
        return self._insight_from_row(row) if row is not None else None

    # ---- row mapping ----

    @staticmethod
    def _metrics_row(row: DailyWellnessMetrics) -> Dict[str, Any]:
        data = asdict(row)
        data["day"] = row.day.isoformat()
        data["first_activity_time"] = _time_to_sqlite(row.first_activity_time)
        data["last_activity_time"] = _time_to_sqlite(row.last_activity_time)
        data["last_day_off"] = row.last_day_off.isoformat() if row.last_day_off else None
        data["computed_at"] = _dt_to_sqlite(row.computed_at)
        return {c: data[c] for c in _METRIC_COLUMNS}

    @staticmethod
    def _metrics_from_row(row: Mapping[str, Any]) -> DailyWellnessMetrics:
        return DailyWellnessMetrics(
            user_id=str(row["user_id"]),
            day=date.fromisoformat(str(row["day"])),
            coding_hours=float(row["coding_hours"] or 0.0),
            break_time=float(row["break_time"] or 0.0),
            focus_sessions=int(row["focus_sessions"] or 0),
            average_focus_duration=float(row["average_focus_duration"] or 0.0),
            longest_focus_duration=float(row["longest_focus_duration"] or 0.0),
            total_commits=int(row["total_commits"] or 0),
            morning_commits=int(row["morning_commits"] or 0),
            afternoon_commits=int(row["afternoon_commits"] or 0),
            evening_commits=int(row["evening_commits"] or 0),
            late_night_commits=int(row["late_night_commits"] or 0),
            weekend_commits=int(row["weekend_commits"] or 0),
            prs_opened=int(row["prs_opened"] or 0),
            prs_reviewed=int(row["prs_reviewed"] or 0),
            prs_merged=int(row["prs_merged"] or 0),
            average_pr_size=float(row["average_pr_size"] or 0.0),
            pr_velocity=float(row["pr_velocity"] or 0.0),
            first_activity_time=_time_from_sqlite(row["first_activity_time"]),
            last_activity_time=_time_from_sqlite(row["last_activity_time"]),
            consecutive_work_days=int(row["consecutive_work_days"] or 0),
            last_day_off=_day_from_sqlite(row["last_day_off"]),
            burnout_risk_score=float(row["burnout_risk_score"] or 0.0),
            work_life_balance_score=float(row["work_life_balance_score"] or 0.0),
            focus_score=float(row["focus_score"] or 0.0),
            computed_at=_dt_from_sqlite(row["computed_at"]),
        )

    @staticmethod
    def _insight_row(row: WellnessInsight) -> Dict[str, Any]:
        return {
            "insight_id": row.insight_id,
            "rule_key": row.rule_key,
            "user_id": row.user_id,
            "team_id": row.team_id,
            "day": row.day.isoformat(),
            "type": row.type,
            "category": row.category,
            "severity": row.severity,
            "title": row.title,
            "message": row.message,
            "action_items": json.dumps(list(row.action_items)),
            "related_metrics": json.dumps(row.related_metrics, default=str),
            "is_read": int(row.is_read),
            "is_dismissed": int(row.is_dismissed),
            "valid_until": _dt_to_sqlite(row.valid_until),
            "created_at": _dt_to_sqlite(row.created_at),
        }

    @staticmethod
    def _insight_from_row(row: Mapping[str, Any]) -> WellnessInsight:
        return WellnessInsight(
            insight_id=str(row["insight_id"]),
            rule_key=str(row["rule_key"]),
            user_id=str(row["user_id"]),
            team_id=row["team_id"],
            day=date.fromisoformat(str(row["day"])),
            type=str(row["type"]),
            category=str(row["category"]),
            severity=row["severity"],
            title=str(row["title"]),
            message=str(row["message"]),
            action_items=tuple(json.loads(row["action_items"] or "[]")),
            related_metrics=json.loads(row["related_metrics"] or "{}"),
            is_read=bool(row["is_read"]),
            is_dismissed=bool(row["is_dismissed"]),
            valid_until=_dt_from_sqlite(row["valid_until"]),
            created_at=_dt_from_sqlite(row["created_at"]),
        )
