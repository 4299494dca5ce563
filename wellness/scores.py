from __future__ import annotations

from typing import Optional

from wellness.schemas import DailyWellnessMetrics, WellnessScores

# The burnout and work-life balance tables are tuned independently.
# Balance is not 100 - burnout; keep both tables as they are.

RISK_CRITICAL = "critical"
RISK_HIGH = "high"
RISK_MODERATE = "moderate"
RISK_LOW = "low"


def clamp_score(value: float) -> float:
    return float(min(100.0, max(0.0, value)))


def break_ratio(metrics: DailyWellnessMetrics) -> Optional[float]:
    """
    Break hours per coding hour, or None when there were no coding hours.

    Callers skip ratio rules entirely on None.
    """
    if metrics.coding_hours <= 0:
        return None
    return metrics.break_time / metrics.coding_hours


def calculate_burnout_risk_score(metrics: DailyWellnessMetrics) -> float:
    """
    Additive burnout risk, higher is worse.

    - coding hours:          >12: 30, >10: 20, >8: 10
    - break ratio:           <0.10: 20, <0.20: 10 (skipped with no coding hours)
    - late-night commits:    >5: 15, >0: 10
    - weekend commits:       >10: 15, >5: 10, >0: 5
    - consecutive work days: >14: 20, >10: 15, >7: 10
    """
    score = 0

    if metrics.coding_hours > 12:
        score += 30
    elif metrics.coding_hours > 10:
        score += 20
    elif metrics.coding_hours > 8:
        score += 10

    ratio = break_ratio(metrics)
    if ratio is not None:
        if ratio < 0.10:
            score += 20
        elif ratio < 0.20:
            score += 10

    if metrics.late_night_commits > 5:
        score += 15
    elif metrics.late_night_commits > 0:
        score += 10

    if metrics.weekend_commits > 10:
        score += 15
    elif metrics.weekend_commits > 5:
        score += 10
    elif metrics.weekend_commits > 0:
        score += 5

    if metrics.consecutive_work_days > 14:
        score += 20
    elif metrics.consecutive_work_days > 10:
        score += 15
    elif metrics.consecutive_work_days > 7:
        score += 10

    return clamp_score(score)


def calculate_work_life_balance_score(metrics: DailyWellnessMetrics) -> float:
    """Deductions from 100, higher is better."""
    score = 100

    if metrics.coding_hours > 10:
        score -= 20
    elif metrics.coding_hours > 8:
        score -= 10

    ratio = break_ratio(metrics)
    if ratio is not None:
        if ratio < 0.15:
            score -= 20
        elif ratio < 0.25:
            score -= 10

    if metrics.late_night_commits > 0:
        score -= 15

    if metrics.weekend_commits > 5:
        score -= 15
    elif metrics.weekend_commits > 0:
        score -= 10

    if metrics.consecutive_work_days > 10:
        score -= 20
    elif metrics.consecutive_work_days > 7:
        score -= 10

    return clamp_score(score)


def calculate_focus_score(metrics: DailyWellnessMetrics) -> float:
    score = 0

    # Session count, max 40.
    if metrics.focus_sessions >= 3:
        score += 40
    elif metrics.focus_sessions >= 2:
        score += 30
    elif metrics.focus_sessions >= 1:
        score += 20

    # Average session length in minutes, max 30.
    if metrics.average_focus_duration >= 90:
        score += 30
    elif metrics.average_focus_duration >= 60:
        score += 20
    elif metrics.average_focus_duration >= 45:
        score += 10

    # Longest session in minutes, max 30.
    if metrics.longest_focus_duration >= 120:
        score += 30
    elif metrics.longest_focus_duration >= 90:
        score += 20
    elif metrics.longest_focus_duration >= 60:
        score += 10

    return clamp_score(score)


def calculate_scores(metrics: DailyWellnessMetrics) -> WellnessScores:
    return WellnessScores(
        burnout_risk=calculate_burnout_risk_score(metrics),
        work_life_balance=calculate_work_life_balance_score(metrics),
        focus=calculate_focus_score(metrics),
    )


def burnout_risk_level(score: float) -> str:
    """
    Map a burnout score to a display level.

    - critical: >= 75
    - high:     50..74
    - moderate: 25..49
    - low:      < 25
    """
    if score >= 75:
        return RISK_CRITICAL
    if score >= 50:
        return RISK_HIGH
    if score >= 25:
        return RISK_MODERATE
    return RISK_LOW
