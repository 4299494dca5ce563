from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from wellness.schemas import DailyWellnessMetrics
from wellness.scores import RISK_CRITICAL, RISK_HIGH, RISK_LOW, burnout_risk_level

TREND_IMPROVING = "improving"
TREND_DECLINING = "declining"
TREND_STABLE = "stable"

TREND_WINDOW_DAYS = 7
# Burnout points the weekly average must move before the trend changes.
TREND_TOLERANCE = 5.0


@dataclass(frozen=True)
class MemberWellnessSummary:
    user_id: str
    latest: Optional[DailyWellnessMetrics]
    risk_level: str
    trend: str


@dataclass(frozen=True)
class TeamWellnessSummary:
    team_id: str
    total_members: int
    at_risk_members: int
    avg_burnout_risk_score: float
    avg_work_life_balance_score: float
    avg_focus_score: float
    members: List[MemberWellnessSummary]


def burnout_trend(history: Sequence[DailyWellnessMetrics]) -> str:
    """
    Compare the latest week of burnout scores with the week before it.

    Needs at least a week of history; both weeks are averaged over the full
    window length, so a short second week pulls its average down.
    """
    ordered = sorted(history, key=lambda m: m.day, reverse=True)
    if len(ordered) < TREND_WINDOW_DAYS:
        return TREND_STABLE
    recent = ordered[:TREND_WINDOW_DAYS]
    older = ordered[TREND_WINDOW_DAYS : TREND_WINDOW_DAYS * 2]
    recent_avg = sum(m.burnout_risk_score for m in recent) / TREND_WINDOW_DAYS
    older_avg = sum(m.burnout_risk_score for m in older) / TREND_WINDOW_DAYS
    if recent_avg < older_avg - TREND_TOLERANCE:
        return TREND_IMPROVING
    if recent_avg > older_avg + TREND_TOLERANCE:
        return TREND_DECLINING
    return TREND_STABLE


def summarize_member(
    user_id: str, history: Sequence[DailyWellnessMetrics]
) -> MemberWellnessSummary:
    latest = max(history, key=lambda m: m.day) if history else None
    return MemberWellnessSummary(
        user_id=user_id,
        latest=latest,
        risk_level=burnout_risk_level(latest.burnout_risk_score) if latest else RISK_LOW,
        trend=burnout_trend(history),
    )


def summarize_team(
    team_id: str, histories: Dict[str, Sequence[DailyWellnessMetrics]]
) -> TeamWellnessSummary:
    """
    Roll member histories up into team averages.

    Averages divide by the full member count; members without any metrics
    contribute zero to every average.
    """
    members = [summarize_member(uid, histories[uid]) for uid in sorted(histories)]
    total = len(members)

    burnout = balance = focus = 0.0
    at_risk = 0
    for member in members:
        if member.latest is None:
            continue
        burnout += member.latest.burnout_risk_score
        balance += member.latest.work_life_balance_score
        focus += member.latest.focus_score
        if member.risk_level in {RISK_HIGH, RISK_CRITICAL}:
            at_risk += 1

    if total:
        burnout /= total
        balance /= total
        focus /= total

    return TeamWellnessSummary(
        team_id=team_id,
        total_members=total,
        at_risk_members=at_risk,
        avg_burnout_risk_score=burnout,
        avg_work_life_balance_score=balance,
        avg_focus_score=focus,
        members=members,
    )
