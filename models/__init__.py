from .activity import Activity, Base, get_activity_id  # noqa: F401

__all__ = [
    "Activity",
    "Base",
    "get_activity_id",
]
