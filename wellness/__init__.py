"""Developer wellness metrics: sessions, commit patterns, scores and insights."""

from .compute import analyze_day, compute_daily_wellness_metrics  # noqa: F401
from .insights import generate_insights  # noqa: F401
from .schemas import (ActivityEvent, DailyWellnessMetrics,  # noqa: F401
                      WellnessInsight, parse_activity_rows)
from .scores import calculate_scores  # noqa: F401

__all__ = [
    "ActivityEvent",
    "DailyWellnessMetrics",
    "WellnessInsight",
    "analyze_day",
    "calculate_scores",
    "compute_daily_wellness_metrics",
    "generate_insights",
    "parse_activity_rows",
]
