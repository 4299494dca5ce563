import logging
import os
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from pymongo import ASCENDING, MongoClient, UpdateOne
from pymongo.errors import ConfigurationError
from sqlalchemy import create_engine, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from models.activity import Activity, Base, get_activity_id
from wellness.schemas import ActivityEvent, ActivityRow, parse_activity_rows
from wellness.sinks.mongo import MongoWellnessSink
from wellness.sinks.sqlite import SQLiteWellnessSink

logger = logging.getLogger(__name__)

ACTIVITIES_COLLECTION = "activities"


class ActivityRepository(Protocol):
    """Source of raw activity events for the wellness job."""

    def fetch_day(self, user_id: str, day: date, tz: tzinfo) -> List[ActivityEvent]: ...

    def list_user_ids(self, start: datetime, end: datetime) -> List[str]: ...

    def insert_activities(self, events: Sequence[ActivityEvent]) -> int: ...


def detect_db_type(conn_string: str) -> str:
    """
    Detect database type from connection string.

    :param conn_string: Database connection string.
    :return: Database type ('sqlite' or 'mongo').
    :raises ValueError: If database type cannot be determined.
    """
    if not conn_string:
        raise ValueError("Connection string is required")

    conn_lower = conn_string.lower()

    # MongoDB connection strings
    if conn_lower.startswith("mongodb://") or conn_lower.startswith("mongodb+srv://"):
        return "mongo"

    # SQLite connection strings
    if conn_lower.startswith("sqlite://") or conn_lower.startswith(
        "sqlite+aiosqlite://"
    ):
        return "sqlite"

    # Extract scheme for better error reporting
    scheme = conn_string.split("://", 1)[0] if "://" in conn_string else "unknown"
    raise ValueError(
        f"Could not detect database type from connection string. "
        f"Supported: mongodb://, mongodb+srv://, sqlite://. Got scheme: '{scheme}', "
        f"connection string (first 100 chars): {conn_string[:100]}..."
    )


def normalize_sqlite_url(db_url: str) -> str:
    """
    Normalize SQLite URLs to a sync driver URL so callers can pass either:
    - sqlite:///...
    - sqlite+aiosqlite:///...
    """
    if "sqlite+aiosqlite://" in db_url:
        return db_url.replace("sqlite+aiosqlite://", "sqlite://", 1)
    return db_url


def _naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC (BSON/SQLite friendly)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def local_day_window(day: date, tz: tzinfo) -> Tuple[datetime, datetime]:
    """UTC bounds `[start, end)` of a calendar day in the given timezone."""
    start = datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)
    end = datetime.combine(
        day + timedelta(days=1), time.min, tzinfo=tz
    ).astimezone(timezone.utc)
    return start, end


def _activity_row(event: ActivityEvent) -> Dict[str, Any]:
    return {
        "id": get_activity_id(
            event.user_id, event.kind, event.timestamp, event.repository_id
        ),
        "user_id": event.user_id,
        "repository_id": event.repository_id or None,
        "kind": event.kind,
        "occurred_at": _naive_utc(event.timestamp),
        "size": int(event.size or 0),
        "synced_at": _naive_utc(datetime.now(timezone.utc)),
    }


class SQLAlchemyActivityRepository:
    """Reads and writes raw developer activity stored in the `activities` table."""

    def __init__(self, conn_string: str, echo: bool = False) -> None:
        if not conn_string:
            raise ValueError("SQLite DB URL is required")
        self.engine = create_engine(normalize_sqlite_url(conn_string), echo=echo)

    def close(self) -> None:
        self.engine.dispose()

    def ensure_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def insert_activities(self, events: Sequence[ActivityEvent]) -> int:
        if not events:
            return 0
        rows = [_activity_row(e) for e in events]
        stmt = sqlite_insert(Activity)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Activity.id],
            set_={
                col: getattr(stmt.excluded, col)
                for col in ("repository_id", "size", "synced_at")
            },
        )
        with Session(self.engine) as session:
            session.execute(stmt, rows)
            session.commit()
        return len(rows)

    def fetch_day(self, user_id: str, day: date, tz: tzinfo) -> List[ActivityEvent]:
        start, end = local_day_window(day, tz)
        stmt = (
            select(
                Activity.occurred_at,
                Activity.kind,
                Activity.repository_id,
                Activity.size,
            )
            .where(
                Activity.user_id == user_id,
                Activity.occurred_at >= _naive_utc(start),
                Activity.occurred_at < _naive_utc(end),
            )
            .order_by(Activity.occurred_at)
        )
        with Session(self.engine) as session:
            result = session.execute(stmt)
            rows: List[ActivityRow] = [
                {
                    "timestamp": r.occurred_at,
                    "kind": r.kind,
                    "repository_id": r.repository_id,
                    "size": r.size,
                }
                for r in result
            ]
        return parse_activity_rows(rows, user_id=user_id)

    def list_user_ids(self, start: datetime, end: datetime) -> List[str]:
        stmt = (
            select(Activity.user_id)
            .where(
                Activity.occurred_at >= _naive_utc(start),
                Activity.occurred_at < _naive_utc(end),
            )
            .distinct()
            .order_by(Activity.user_id)
        )
        with Session(self.engine) as session:
            return [str(uid) for uid in session.execute(stmt).scalars()]


class MongoActivityRepository:
    """Activity repository backed by the MongoDB `activities` collection."""

    def __init__(self, conn_string: str, db_name: Optional[str] = None) -> None:
        if not conn_string:
            raise ValueError("MongoDB connection string is required")
        self.client = MongoClient(conn_string)
        if db_name:
            self.db = self.client[db_name]
        else:
            try:
                self.db = self.client.get_default_database()
            except ConfigurationError:
                raise ValueError(
                    "No default database specified. Please provide a database name "
                    "either via the MONGO_DB_NAME environment variable or include it "
                    "in your MongoDB connection string (e.g., 'mongodb://localhost:27017/mydb')"
                )

    def close(self) -> None:
        self.client.close()

    def ensure_tables(self) -> None:
        self.db[ACTIVITIES_COLLECTION].create_index(
            [("user_id", ASCENDING), ("occurred_at", ASCENDING)]
        )

    def insert_activities(self, events: Sequence[ActivityEvent]) -> int:
        if not events:
            return 0
        ops = []
        for event in events:
            doc = _activity_row(event)
            doc["_id"] = doc.pop("id")
            ops.append(UpdateOne({"_id": doc["_id"]}, {"$set": doc}, upsert=True))
        self.db[ACTIVITIES_COLLECTION].bulk_write(ops, ordered=False)
        return len(ops)

    def fetch_day(self, user_id: str, day: date, tz: tzinfo) -> List[ActivityEvent]:
        start, end = local_day_window(day, tz)
        query = {
            "user_id": user_id,
            "occurred_at": {"$gte": _naive_utc(start), "$lt": _naive_utc(end)},
        }
        projection = {"occurred_at": 1, "kind": 1, "repository_id": 1, "size": 1}
        docs = self.db[ACTIVITIES_COLLECTION].find(query, projection)
        rows: List[ActivityRow] = [
            {
                "timestamp": doc.get("occurred_at"),
                "kind": doc.get("kind") or "",
                "repository_id": doc.get("repository_id"),
                "size": doc.get("size"),
            }
            for doc in docs
        ]
        return parse_activity_rows(rows, user_id=user_id)

    def list_user_ids(self, start: datetime, end: datetime) -> List[str]:
        user_ids = self.db[ACTIVITIES_COLLECTION].distinct(
            "user_id",
            {"occurred_at": {"$gte": _naive_utc(start), "$lt": _naive_utc(end)}},
        )
        return sorted(str(uid) for uid in user_ids if uid)


def _mongo_db_name(db_name: Optional[str]) -> Optional[str]:
    return db_name or os.getenv("MONGO_DB_NAME") or None


def create_activity_repository(
    conn_string: str,
    db_type: Optional[str] = None,
    db_name: Optional[str] = None,
    echo: bool = False,
) -> Union[SQLAlchemyActivityRepository, MongoActivityRepository]:
    """
    Create an activity repository based on the connection string.

    :param conn_string: Database connection string.
    :param db_type: Optional explicit database type ('sqlite', 'mongo').
                   If not provided, it will be auto-detected from conn_string.
    :param db_name: Optional database name (for MongoDB).
    :param echo: Whether to echo SQL statements (for SQLAlchemy).
    """
    if db_type is None:
        db_type = detect_db_type(conn_string)

    db_type = db_type.lower()

    if db_type == "mongo":
        return MongoActivityRepository(conn_string, db_name=_mongo_db_name(db_name))
    elif db_type == "sqlite":
        return SQLAlchemyActivityRepository(conn_string, echo=echo)
    else:
        raise ValueError(
            f"Unsupported database type: {db_type}. Supported types: sqlite, mongo"
        )


def create_wellness_sink(
    conn_string: str,
    db_type: Optional[str] = None,
    db_name: Optional[str] = None,
) -> Union[SQLiteWellnessSink, MongoWellnessSink]:
    """Create the metrics/insights sink living in the same backend as the activity."""
    if db_type is None:
        db_type = detect_db_type(conn_string)

    db_type = db_type.lower()

    if db_type == "mongo":
        return MongoWellnessSink(conn_string, db_name=_mongo_db_name(db_name))
    elif db_type == "sqlite":
        return SQLiteWellnessSink(normalize_sqlite_url(conn_string))
    else:
        raise ValueError(
            f"Unsupported database type: {db_type}. Supported types: sqlite, mongo"
        )
