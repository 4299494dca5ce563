from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pymongo import ASCENDING, DESCENDING, MongoClient, ReplaceOne, UpdateOne
from pymongo.errors import ConfigurationError

from wellness.schemas import DailyWellnessMetrics, WellnessInsight

logger = logging.getLogger(__name__)

METRICS_COLLECTION = "wellness_metrics_daily"
INSIGHTS_COLLECTION = "wellness_insights"


def _day_to_mongo_datetime(day: date) -> datetime:
    # BSON stores datetimes as UTC; naive values are treated as UTC by convention.
    return datetime(day.year, day.month, day.day)


def _dt_to_mongo_datetime(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _dt_from_mongo(value: Any) -> Optional[datetime]:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _day_from_mongo(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    return None


def _time_from_mongo(value: Any) -> Optional[time]:
    if isinstance(value, str) and value:
        return time.fromisoformat(value)
    return None


class MongoWellnessSink:
    """MongoDB sink for daily wellness metrics and insights (upserts by stable _id)."""

    def __init__(self, uri: str, db_name: Optional[str] = None) -> None:
        if not uri:
            raise ValueError("MongoDB URI is required")
        self.client = MongoClient(uri)
        if db_name:
            self.db = self.client[db_name]
        else:
            try:
                self.db = self.client.get_default_database()
            except ConfigurationError:
                raise ValueError(
                    "No default database specified. Set MONGO_DB_NAME or include "
                    "the database in the MongoDB URI (e.g. mongodb://localhost:27017/devflow)"
                )

    def close(self) -> None:
        try:
            self.client.close()
        except Exception as e:
            logger.warning("Failed to close MongoDB client: %s", e)

    def ensure_indexes(self) -> None:
        self.db[METRICS_COLLECTION].create_index(
            [("user_id", ASCENDING), ("day", ASCENDING)]
        )
        self.db[INSIGHTS_COLLECTION].create_index(
            [("user_id", ASCENDING), ("created_at", DESCENDING)]
        )
        self.db[INSIGHTS_COLLECTION].create_index(
            [("team_id", ASCENDING), ("created_at", DESCENDING)]
        )
        self.db[INSIGHTS_COLLECTION].create_index([("valid_until", ASCENDING)])

    # Same entry point name as the SQL sink so callers need not branch.
    def ensure_tables(self) -> None:
        self.ensure_indexes()

    # ---- writes ----

    def write_daily_metrics(self, rows: Sequence[DailyWellnessMetrics]) -> None:
        if not rows:
            return
        ops: List[ReplaceOne] = []
        for row in rows:
            doc = asdict(row)
            doc["_id"] = f"{row.user_id}:{row.day.isoformat()}"
            doc["day"] = _day_to_mongo_datetime(row.day)
            doc["first_activity_time"] = (
                row.first_activity_time.strftime("%H:%M")
                if row.first_activity_time
                else None
            )
            doc["last_activity_time"] = (
                row.last_activity_time.strftime("%H:%M")
                if row.last_activity_time
                else None
            )
            doc["last_day_off"] = (
                _day_to_mongo_datetime(row.last_day_off) if row.last_day_off else None
            )
            doc["computed_at"] = _dt_to_mongo_datetime(row.computed_at)
            ops.append(ReplaceOne({"_id": doc["_id"]}, doc, upsert=True))
        self.db[METRICS_COLLECTION].bulk_write(ops, ordered=False)

    def write_insights(self, rows: Sequence[WellnessInsight]) -> None:
        if not rows:
            return
        ops: List[UpdateOne] = []
        for row in rows:
            doc = asdict(row)
            doc.pop("insight_id")
            is_read = doc.pop("is_read")
            is_dismissed = doc.pop("is_dismissed")
            doc["day"] = _day_to_mongo_datetime(row.day)
            doc["action_items"] = list(row.action_items)
            doc["valid_until"] = _dt_to_mongo_datetime(row.valid_until)
            doc["created_at"] = _dt_to_mongo_datetime(row.created_at)
            ops.append(
                UpdateOne(
                    {"_id": row.insight_id},
                    {
                        "$set": doc,
                        "$setOnInsert": {
                            "is_read": is_read,
                            "is_dismissed": is_dismissed,
                        },
                    },
                    upsert=True,
                )
            )
        self.db[INSIGHTS_COLLECTION].bulk_write(ops, ordered=False)

    def mark_insight_read(self, insight_id: str) -> bool:
        result = self.db[INSIGHTS_COLLECTION].update_one(
            {"_id": insight_id}, {"$set": {"is_read": True}}
        )
        return bool(result.matched_count)

    def dismiss_insight(self, insight_id: str) -> bool:
        result = self.db[INSIGHTS_COLLECTION].update_one(
            {"_id": insight_id}, {"$set": {"is_dismissed": True}}
        )
        return bool(result.matched_count)

    def prune_expired_insights(self, now: datetime) -> int:
        result = self.db[INSIGHTS_COLLECTION].delete_many(
            {"valid_until": {"$ne": None, "$lte": _dt_to_mongo_datetime(now)}}
        )
        return int(result.deleted_count)

    # ---- reads ----

    def fetch_daily_metrics(
        self, user_id: str, start: date, end: date
    ) -> List[DailyWellnessMetrics]:
        query = {
            "user_id": user_id,
            "day": {
                "$gte": _day_to_mongo_datetime(start),
                "$lte": _day_to_mongo_datetime(end),
            },
        }
        docs = self.db[METRICS_COLLECTION].find(query).sort("day", ASCENDING)
        return [self._metrics_from_doc(d) for d in docs]

    def fetch_insights(
        self,
        user_id: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
        include_dismissed: bool = False,
        team_id: Optional[str] = None,
    ) -> List[WellnessInsight]:
        query: Dict[str, Any] = {}
        if user_id is not None:
            query["user_id"] = user_id
        if team_id is not None:
            query["team_id"] = team_id
        if not include_dismissed:
            query["is_dismissed"] = False
        if now is not None:
            query["$or"] = [
                {"valid_until": None},
                {"valid_until": {"$gt": _dt_to_mongo_datetime(now)}},
            ]
        docs = self.db[INSIGHTS_COLLECTION].find(query).sort(
            [("day", DESCENDING), ("created_at", DESCENDING), ("_id", ASCENDING)]
        )
        return [self._insight_from_doc(d) for d in docs]

    def get_insight(self, insight_id: str) -> Optional[WellnessInsight]:
        doc = self.db[INSIGHTS_COLLECTION].find_one({"_id": insight_id})
        return self._insight_from_doc(doc) if doc else None

    # ---- document mapping ----

    @staticmethod
    def _metrics_from_doc(doc: Mapping[str, Any]) -> DailyWellnessMetrics:
        def num(key: str, default: float = 0.0) -> float:
            value = doc.get(key)
            return float(value) if value is not None else default

        def count(key: str) -> int:
            return int(doc.get(key) or 0)

        return DailyWellnessMetrics(
            user_id=str(doc["user_id"]),
            day=_day_from_mongo(doc["day"]),  # type: ignore[arg-type]
            coding_hours=num("coding_hours"),
            break_time=num("break_time"),
            focus_sessions=count("focus_sessions"),
            average_focus_duration=num("average_focus_duration"),
            longest_focus_duration=num("longest_focus_duration"),
            total_commits=count("total_commits"),
            morning_commits=count("morning_commits"),
            afternoon_commits=count("afternoon_commits"),
            evening_commits=count("evening_commits"),
            late_night_commits=count("late_night_commits"),
            weekend_commits=count("weekend_commits"),
            prs_opened=count("prs_opened"),
            prs_reviewed=count("prs_reviewed"),
            prs_merged=count("prs_merged"),
            average_pr_size=num("average_pr_size"),
            pr_velocity=num("pr_velocity"),
            first_activity_time=_time_from_mongo(doc.get("first_activity_time")),
            last_activity_time=_time_from_mongo(doc.get("last_activity_time")),
            consecutive_work_days=count("consecutive_work_days"),
            last_day_off=_day_from_mongo(doc.get("last_day_off")),
            burnout_risk_score=num("burnout_risk_score"),
            work_life_balance_score=num("work_life_balance_score", 100.0),
            focus_score=num("focus_score"),
            computed_at=_dt_from_mongo(doc.get("computed_at")),
        )

    @staticmethod
    def _insight_from_doc(doc: Mapping[str, Any]) -> WellnessInsight:
        return WellnessInsight(
            insight_id=str(doc["_id"]),
            rule_key=str(doc.get("rule_key") or ""),
            user_id=str(doc.get("user_id") or ""),
            team_id=doc.get("team_id"),
            day=_day_from_mongo(doc.get("day")),  # type: ignore[arg-type]
            type=str(doc.get("type") or ""),
            category=str(doc.get("category") or ""),
            severity=doc.get("severity"),
            title=str(doc.get("title") or ""),
            message=str(doc.get("message") or ""),
            action_items=tuple(doc.get("action_items") or ()),
            related_metrics=dict(doc.get("related_metrics") or {}),
            is_read=bool(doc.get("is_read")),
            is_dismissed=bool(doc.get("is_dismissed")),
            valid_until=_dt_from_mongo(doc.get("valid_until")),
            created_at=_dt_from_mongo(doc.get("created_at")),
        )
