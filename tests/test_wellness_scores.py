import random
from datetime import date, timedelta

import pytest

from fixtures.generator import SyntheticActivityGenerator
from wellness.schemas import DailyWellnessMetrics
from wellness.scores import (
    RISK_CRITICAL,
    RISK_HIGH,
    RISK_LOW,
    RISK_MODERATE,
    break_ratio,
    burnout_risk_level,
    calculate_burnout_risk_score,
    calculate_focus_score,
    calculate_scores,
    calculate_work_life_balance_score,
)

DAY = date(2025, 3, 3)


def metrics(**fields) -> DailyWellnessMetrics:
    return DailyWellnessMetrics(user_id="alice", day=DAY, **fields)


class TestBurnoutRisk:
    """Additive burnout table."""

    def test_every_bucket_maxed_sums_to_exactly_100(self):
        m = metrics(
            coding_hours=13,
            break_time=0.5,
            late_night_commits=6,
            weekend_commits=12,
            consecutive_work_days=15,
        )
        # 30 + 20 + 15 + 15 + 20
        assert calculate_burnout_risk_score(m) == 100.0

    def test_zero_day_is_zero_without_dividing(self):
        """No coding hours: ratio rules are skipped, nothing raises."""
        m = metrics()
        assert break_ratio(m) is None
        assert calculate_burnout_risk_score(m) == 0.0

    @pytest.mark.parametrize(
        "hours,points",
        [(8, 0), (8.5, 10), (10, 10), (10.5, 20), (12, 20), (12.5, 30)],
    )
    def test_coding_hour_buckets(self, hours, points):
        # A 50% break ratio adds nothing.
        m = metrics(coding_hours=hours, break_time=hours / 2)
        assert calculate_burnout_risk_score(m) == points

    @pytest.mark.parametrize(
        "break_time,points", [(0.0, 20), (0.09, 20), (0.1, 10), (0.19, 10), (0.2, 0)]
    )
    def test_break_ratio_buckets(self, break_time, points):
        m = metrics(coding_hours=1.0, break_time=break_time)
        assert calculate_burnout_risk_score(m) == points

    @pytest.mark.parametrize("late,points", [(0, 0), (1, 10), (5, 10), (6, 15)])
    def test_late_night_buckets(self, late, points):
        assert calculate_burnout_risk_score(metrics(late_night_commits=late)) == points

    @pytest.mark.parametrize(
        "weekend,points", [(0, 0), (1, 5), (5, 5), (6, 10), (10, 10), (11, 15)]
    )
    def test_weekend_buckets(self, weekend, points):
        assert calculate_burnout_risk_score(metrics(weekend_commits=weekend)) == points

    @pytest.mark.parametrize(
        "days,points", [(7, 0), (8, 10), (10, 10), (11, 15), (14, 15), (15, 20)]
    )
    def test_streak_buckets(self, days, points):
        m = metrics(consecutive_work_days=days)
        assert calculate_burnout_risk_score(m) == points


class TestWorkLifeBalance:
    """Deduction table, tuned separately from burnout."""

    def test_zero_day_is_perfect(self):
        assert calculate_work_life_balance_score(metrics()) == 100.0

    def test_deductions(self):
        m = metrics(
            coding_hours=11,
            break_time=1.0,  # ratio ~0.09
            late_night_commits=1,
            weekend_commits=6,
            consecutive_work_days=11,
        )
        # 100 - 20 - 20 - 15 - 15 - 20
        assert calculate_work_life_balance_score(m) == 10.0

    def test_not_derived_from_burnout(self):
        """Thresholds differ: a 0.2 ratio costs balance points but no burnout points."""
        m = metrics(coding_hours=5, break_time=1.0)
        assert calculate_burnout_risk_score(m) == 0.0
        assert calculate_work_life_balance_score(m) == 90.0

    def test_any_late_night_commit_costs_fifteen(self):
        assert calculate_work_life_balance_score(metrics(late_night_commits=1)) == 85.0


class TestFocus:
    def test_zero_day(self):
        assert calculate_focus_score(metrics()) == 0.0

    def test_max(self):
        m = metrics(
            focus_sessions=3, average_focus_duration=95, longest_focus_duration=130
        )
        assert calculate_focus_score(m) == 100.0

    def test_middle_buckets(self):
        m = metrics(
            focus_sessions=2, average_focus_duration=60, longest_focus_duration=90
        )
        assert calculate_focus_score(m) == 70.0

    def test_lowest_buckets(self):
        m = metrics(
            focus_sessions=1, average_focus_duration=45, longest_focus_duration=60
        )
        assert calculate_focus_score(m) == 40.0


@pytest.mark.parametrize("seed", range(25))
def test_scores_stay_in_bounds_for_random_metrics(seed):
    rng = random.Random(seed)
    coding = rng.choice([0.0, rng.uniform(0, 24)])
    m = metrics(
        coding_hours=coding,
        break_time=rng.uniform(0, 24),
        focus_sessions=rng.randint(0, 20),
        average_focus_duration=rng.uniform(0, 600),
        longest_focus_duration=rng.uniform(0, 900),
        late_night_commits=rng.randint(0, 50),
        weekend_commits=rng.randint(0, 50),
        consecutive_work_days=rng.randint(0, 31),
    )
    scores = calculate_scores(m)
    for value in (scores.burnout_risk, scores.work_life_balance, scores.focus):
        assert 0.0 <= value <= 100.0


@pytest.mark.parametrize("seed", range(5))
def test_scores_stay_in_bounds_for_generated_activity(seed):
    generator = SyntheticActivityGenerator(user_id="alice", seed=seed)
    for m in generator.generate_metrics_history(DAY + timedelta(days=30), days=30):
        assert 0.0 <= m.burnout_risk_score <= 100.0
        assert 0.0 <= m.work_life_balance_score <= 100.0
        assert 0.0 <= m.focus_score <= 100.0


@pytest.mark.parametrize(
    "score,level",
    [
        (0, RISK_LOW),
        (24.9, RISK_LOW),
        (25, RISK_MODERATE),
        (49, RISK_MODERATE),
        (50, RISK_HIGH),
        (74, RISK_HIGH),
        (75, RISK_CRITICAL),
        (100, RISK_CRITICAL),
    ],
)
def test_burnout_risk_level(score, level):
    assert burnout_risk_level(score) == level
