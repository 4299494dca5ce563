import hashlib
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def get_activity_id(user_id: str, kind: str, occurred_at: datetime, repository_id: str = "") -> str:
    """
    Derive a deterministic id for an activity so re-syncing the same event
    does not create a second row.
    """
    if not user_id:
        raise ValueError("user_id is required")
    ts = occurred_at
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    key = f"{user_id}|{repository_id}|{kind}|{ts.isoformat()}"
    digest = hashlib.sha256(key.encode("utf-8")).digest()[:16]
    return str(uuid.UUID(bytes=digest))


class Activity(Base):
    __tablename__ = "activities"

    def __init__(self, **kwargs):
        """
        Initialize an activity row, deriving its id from the event when absent.
        """
        if "id" not in kwargs and kwargs.get("user_id") and kwargs.get("occurred_at"):
            kwargs["id"] = get_activity_id(
                kwargs["user_id"],
                kwargs.get("kind", ""),
                kwargs["occurred_at"],
                kwargs.get("repository_id") or "",
            )
        super().__init__(**kwargs)

    id = Column(Text, primary_key=True, comment="deterministic activity identifier")
    user_id = Column(Text, nullable=False, comment="developer the activity belongs to")
    repository_id = Column(Text, comment="repository the activity happened in")
    kind = Column(
        Text,
        nullable=False,
        comment="commit, push, pr_open, pr_review or pr_merge",
    )
    occurred_at = Column(
        DateTime(timezone=True),
        nullable=False,
        comment="timestamp of the activity (UTC)",
    )
    size = Column(
        Integer,
        nullable=False,
        default=0,
        comment="lines changed, for pull request events",
    )
    synced_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        comment="timestamp when the activity was collected",
    )

    __table_args__ = (Index("idx_activities_user_time", "user_id", "occurred_at"),)
