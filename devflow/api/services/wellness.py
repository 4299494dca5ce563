from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from wellness.schemas import DailyWellnessMetrics, WellnessInsight
from wellness.sinks import WellnessSink
from wellness.scores import RISK_LOW, burnout_risk_level
from wellness.team import burnout_trend, summarize_team

from ..models.schemas import (
    DailyWellness,
    Insight,
    InsightsResponse,
    InsightStateResponse,
    MemberWellness,
    TeamWellnessResponse,
    UserWellnessResponse,
)


def _window(today: date, range_days: int) -> tuple[date, date]:
    return today - timedelta(days=max(1, range_days) - 1), today


def _hhmm(value: Any) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


def daily_wellness_model(metrics: DailyWellnessMetrics) -> DailyWellness:
    return DailyWellness(
        day=metrics.day,
        coding_hours=metrics.coding_hours,
        break_time=metrics.break_time,
        focus_sessions=metrics.focus_sessions,
        average_focus_duration=metrics.average_focus_duration,
        longest_focus_duration=metrics.longest_focus_duration,
        total_commits=metrics.total_commits,
        morning_commits=metrics.morning_commits,
        afternoon_commits=metrics.afternoon_commits,
        evening_commits=metrics.evening_commits,
        late_night_commits=metrics.late_night_commits,
        weekend_commits=metrics.weekend_commits,
        prs_opened=metrics.prs_opened,
        prs_reviewed=metrics.prs_reviewed,
        prs_merged=metrics.prs_merged,
        average_pr_size=metrics.average_pr_size,
        pr_velocity=metrics.pr_velocity,
        first_activity_time=_hhmm(metrics.first_activity_time),
        last_activity_time=_hhmm(metrics.last_activity_time),
        consecutive_work_days=metrics.consecutive_work_days,
        last_day_off=metrics.last_day_off,
        burnout_risk_score=metrics.burnout_risk_score,
        work_life_balance_score=metrics.work_life_balance_score,
        focus_score=metrics.focus_score,
        computed_at=metrics.computed_at,
    )


def insight_model(insight: WellnessInsight) -> Insight:
    return Insight(
        id=insight.insight_id,
        rule_key=insight.rule_key,
        user_id=insight.user_id,
        team_id=insight.team_id,
        day=insight.day,
        type=insight.type,
        category=insight.category,
        severity=insight.severity,
        title=insight.title,
        message=insight.message,
        action_items=list(insight.action_items),
        related_metrics=dict(insight.related_metrics),
        is_read=insight.is_read,
        is_dismissed=insight.is_dismissed,
        valid_until=insight.valid_until,
        created_at=insight.created_at,
    )


def insight_state(insight: WellnessInsight) -> InsightStateResponse:
    return InsightStateResponse(
        id=insight.insight_id,
        is_read=insight.is_read,
        is_dismissed=insight.is_dismissed,
    )


def build_user_wellness_response(
    sink: WellnessSink, *, user_id: str, range_days: int, today: date
) -> UserWellnessResponse:
    start, end = _window(today, range_days)
    history = sink.fetch_daily_metrics(user_id, start, end)
    latest = history[-1] if history else None
    return UserWellnessResponse(
        user_id=user_id,
        range_days=range_days,
        risk_level=(
            burnout_risk_level(latest.burnout_risk_score) if latest else RISK_LOW
        ),
        trend=burnout_trend(history),
        latest=daily_wellness_model(latest) if latest else None,
        history=[daily_wellness_model(m) for m in history],
    )


def build_insights_response(
    sink: WellnessSink, *, user_id: str, include_dismissed: bool, now: datetime
) -> InsightsResponse:
    insights = sink.fetch_insights(
        user_id, now=now, include_dismissed=include_dismissed
    )
    return InsightsResponse(
        user_id=user_id, insights=[insight_model(i) for i in insights]
    )


def build_team_wellness_response(
    sink: WellnessSink,
    *,
    team_id: str,
    member_ids: Sequence[str],
    range_days: int,
    today: date,
    now: datetime,
) -> TeamWellnessResponse:
    start, end = _window(today, range_days)
    histories: Dict[str, List[DailyWellnessMetrics]] = {
        uid: sink.fetch_daily_metrics(uid, start, end) for uid in dict.fromkeys(member_ids)
    }
    summary = summarize_team(team_id, histories)
    members = [
        MemberWellness(
            user_id=m.user_id,
            risk_level=m.risk_level,
            trend=m.trend,
            burnout_risk_score=m.latest.burnout_risk_score if m.latest else None,
            work_life_balance_score=(
                m.latest.work_life_balance_score if m.latest else None
            ),
            focus_score=m.latest.focus_score if m.latest else None,
            last_day=m.latest.day if m.latest else None,
        )
        for m in summary.members
    ]
    return TeamWellnessResponse(
        team_id=summary.team_id,
        total_members=summary.total_members,
        at_risk_members=summary.at_risk_members,
        avg_burnout_risk_score=summary.avg_burnout_risk_score,
        avg_work_life_balance_score=summary.avg_work_life_balance_score,
        avg_focus_score=summary.avg_focus_score,
        members=members,
        insights=[
            insight_model(i) for i in sink.fetch_insights(team_id=team_id, now=now)
        ],
    )
