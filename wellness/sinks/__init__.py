"""
Persistence for derived wellness data.

Sinks implement both narrow interfaces below; the batch job and the API only
depend on these methods, so tests can pass any object that provides them.
"""

from datetime import date, datetime
from typing import List, Optional, Protocol, Sequence

from wellness.schemas import DailyWellnessMetrics, WellnessInsight


class MetricsStore(Protocol):
    def write_daily_metrics(self, rows: Sequence[DailyWellnessMetrics]) -> None: ...

    def fetch_daily_metrics(
        self, user_id: str, start: date, end: date
    ) -> List[DailyWellnessMetrics]: ...


class InsightStore(Protocol):
    def write_insights(self, rows: Sequence[WellnessInsight]) -> None: ...

    def fetch_insights(
        self,
        user_id: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
        include_dismissed: bool = False,
        team_id: Optional[str] = None,
    ) -> List[WellnessInsight]: ...

    def mark_insight_read(self, insight_id: str) -> bool: ...

    def dismiss_insight(self, insight_id: str) -> bool: ...

    def prune_expired_insights(self, now: datetime) -> int: ...


class WellnessSink(MetricsStore, InsightStore, Protocol):
    def ensure_tables(self) -> None: ...

    def get_insight(self, insight_id: str) -> Optional[WellnessInsight]: ...

    def close(self) -> None: ...


__all__ = ["MetricsStore", "InsightStore", "WellnessSink"]
