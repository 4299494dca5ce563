import random
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from wellness.compute import compute_daily_wellness_metrics
from wellness.schemas import (
    KIND_COMMIT,
    KIND_PR_MERGE,
    KIND_PR_OPEN,
    KIND_PR_REVIEW,
    KIND_PUSH,
    ActivityEvent,
    DailyWellnessMetrics,
)


class SyntheticActivityGenerator:
    """
    Produces plausible developer activity for demos and randomized tests.

    Output is fully determined by `seed`.
    """

    def __init__(self, user_id: str = "alice@example.com", seed: Optional[int] = None):
        self.user_id = user_id
        self.rng = random.Random(seed)
        self.repositories = [
            "acme/demo-app",
            "acme/api-gateway",
            "acme/infra",
        ]

    def _at(self, day: date, hour: int, minute: int) -> datetime:
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc) + timedelta(
            hours=hour, minutes=minute
        )

    def _burst(self, start: datetime, count: int, repo: str) -> List[ActivityEvent]:
        events = []
        ts = start
        for _ in range(count):
            # Mostly short gaps, sometimes a coffee break.
            gap = self.rng.choice([2, 4, 6, 9, 12, 18, 25])
            ts = ts + timedelta(minutes=gap)
            kind = KIND_PUSH if self.rng.random() < 0.15 else KIND_COMMIT
            events.append(
                ActivityEvent(
                    user_id=self.user_id, timestamp=ts, kind=kind, repository_id=repo
                )
            )
        return events

    def generate_day(self, day: date) -> List[ActivityEvent]:
        """Activity starting on one UTC day; weekends are mostly quiet."""
        weekend = day.weekday() >= 5
        if weekend and self.rng.random() < 0.7:
            return []
        if not weekend and self.rng.random() < 0.05:
            return []

        repo = self.rng.choice(self.repositories)
        events: List[ActivityEvent] = []

        blocks = [(self.rng.randint(8, 10), self.rng.randint(8, 20))]
        if not weekend:
            blocks.append((self.rng.randint(13, 15), self.rng.randint(6, 18)))
        if self.rng.random() < 0.2:
            # Late-night push
            blocks.append((self.rng.randint(22, 23), self.rng.randint(3, 8)))
        for hour, count in blocks:
            start = self._at(day, hour, self.rng.randint(0, 30))
            events.extend(self._burst(start, count, repo))

        workday_end = events[-1].timestamp if events else self._at(day, 17, 0)
        for _ in range(self.rng.randint(0, 2)):
            events.append(
                ActivityEvent(
                    user_id=self.user_id,
                    timestamp=self._at(day, self.rng.randint(9, 17), self.rng.randint(0, 59)),
                    kind=KIND_PR_OPEN,
                    repository_id=repo,
                    size=self.rng.choice([40, 120, 250, 480, 750, 1200]),
                )
            )
        for _ in range(self.rng.randint(0, 3)):
            events.append(
                ActivityEvent(
                    user_id=self.user_id,
                    timestamp=self._at(day, self.rng.randint(9, 17), self.rng.randint(0, 59)),
                    kind=KIND_PR_REVIEW,
                    repository_id=repo,
                )
            )
        if self.rng.random() < 0.5:
            events.append(
                ActivityEvent(
                    user_id=self.user_id,
                    timestamp=min(
                        workday_end,
                        self._at(day, 23, 59),
                    ),
                    kind=KIND_PR_MERGE,
                    repository_id=repo,
                )
            )
        events.sort(key=lambda e: e.timestamp)
        return events

    def generate_activities(self, end_day: date, days: int = 30) -> List[ActivityEvent]:
        events: List[ActivityEvent] = []
        start_day = end_day - timedelta(days=days - 1)
        for offset in range(days):
            events.extend(self.generate_day(start_day + timedelta(days=offset)))
        return events

    def generate_metrics_history(
        self, end_day: date, days: int = 30
    ) -> List[DailyWellnessMetrics]:
        """Daily metrics computed from generated activity, oldest first."""
        history: List[DailyWellnessMetrics] = []
        computed_at = datetime.now(timezone.utc)
        start_day = end_day - timedelta(days=days - 1)
        for offset in range(days):
            d = start_day + timedelta(days=offset)
            history.append(
                compute_daily_wellness_metrics(
                    user_id=self.user_id,
                    day=d,
                    events=self.generate_day(d),
                    previous_metrics=history,
                    computed_at=computed_at,
                )
            )
        return history
