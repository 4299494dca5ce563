from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from wellness.schemas import (
    CATEGORY_BALANCE,
    CATEGORY_BURNOUT,
    CATEGORY_FOCUS,
    CATEGORY_HEALTH,
    CATEGORY_PRODUCTIVITY,
    INSIGHT_ACHIEVEMENT,
    INSIGHT_RECOMMENDATION,
    INSIGHT_TIP,
    INSIGHT_WARNING,
    SEVERITY_CRITICAL,
    SEVERITY_WARNING,
    DailyWellnessMetrics,
    WellnessInsight,
)
from wellness.scores import break_ratio

CRITICAL_BURNOUT_VALIDITY = timedelta(days=7)


def insight_id_for(user_id: str, day_iso: str, rule_key: str) -> str:
    """
    Stable identity of an insight: one per user, day and rule.

    Sinks upsert on this key, so recomputing a day refreshes insights instead
    of piling up duplicates.
    """
    return f"{user_id}:{day_iso}:{rule_key}"


class _RuleContext:
    __slots__ = ("metrics", "computed_at", "team_id")

    def __init__(
        self,
        metrics: DailyWellnessMetrics,
        computed_at: datetime,
        team_id: Optional[str],
    ) -> None:
        self.metrics = metrics
        self.computed_at = computed_at
        self.team_id = team_id

    @property
    def active(self) -> bool:
        """Whether the day had any activity at all; rest days skip the shortfall rules."""
        m = self.metrics
        return (
            m.total_commits > 0
            or m.coding_hours > 0
            or (m.prs_opened + m.prs_reviewed + m.prs_merged) > 0
        )

    def insight(
        self,
        rule_key: str,
        *,
        type: str,
        category: str,
        title: str,
        message: str,
        action_items: Sequence[str] = (),
        severity: Optional[str] = None,
        related_metrics: Optional[Dict[str, Any]] = None,
        valid_until: Optional[datetime] = None,
    ) -> WellnessInsight:
        m = self.metrics
        return WellnessInsight(
            insight_id=insight_id_for(m.user_id, m.day.isoformat(), rule_key),
            rule_key=rule_key,
            user_id=m.user_id,
            day=m.day,
            team_id=self.team_id,
            type=type,
            category=category,
            severity=severity,
            title=title,
            message=message,
            action_items=tuple(action_items),
            related_metrics=dict(related_metrics or {}),
            valid_until=valid_until,
            created_at=self.computed_at,
        )


Rule = Callable[[_RuleContext], Optional[WellnessInsight]]


def _critical_burnout(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if m.burnout_risk_score < 75:
        return None
    return ctx.insight(
        "burnout_critical",
        type=INSIGHT_WARNING,
        category=CATEGORY_BURNOUT,
        severity=SEVERITY_CRITICAL,
        title="Critical Burnout Risk Detected",
        message=(
            "Your work patterns indicate a very high risk of burnout. "
            "Immediate action is recommended."
        ),
        action_items=(
            "Take a full day off within the next 2 days",
            "Schedule a meeting with your manager to discuss workload",
            "Set strict work hour boundaries (9 AM - 6 PM)",
            'Enable "Do Not Disturb" mode after work hours',
        ),
        related_metrics={
            "burnout_risk_score": m.burnout_risk_score,
            "coding_hours": m.coding_hours,
            "consecutive_work_days": m.consecutive_work_days,
        },
        valid_until=ctx.computed_at + CRITICAL_BURNOUT_VALIDITY,
    )


def _high_burnout(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if not (50 <= m.burnout_risk_score < 75):
        return None
    return ctx.insight(
        "burnout_high",
        type=INSIGHT_WARNING,
        category=CATEGORY_BURNOUT,
        severity=SEVERITY_WARNING,
        title="High Burnout Risk",
        message=(
            "Your recent work patterns show signs of potential burnout. "
            "Consider adjusting your schedule."
        ),
        action_items=(
            "Plan regular breaks throughout your workday",
            "Avoid working late nights and weekends",
            "Practice time-boxing for better work-life separation",
        ),
        related_metrics={"burnout_risk_score": m.burnout_risk_score},
    )


def _late_night_coding(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if m.late_night_commits <= 5:
        return None
    return ctx.insight(
        "late_night_coding",
        type=INSIGHT_TIP,
        category=CATEGORY_HEALTH,
        title="Late Night Coding Detected",
        message=(
            f"You made {m.late_night_commits} commits after midnight. Late night "
            "coding can disrupt sleep patterns and reduce productivity."
        ),
        action_items=(
            "Set a hard stop time for coding (e.g., 10 PM)",
            "Use blue light filters on your devices",
            "Create a wind-down routine before bed",
        ),
        related_metrics={"late_night_commits": m.late_night_commits},
    )


def _no_days_off(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if m.consecutive_work_days <= 10:
        return None
    return ctx.insight(
        "no_recent_days_off",
        type=INSIGHT_WARNING,
        category=CATEGORY_BALANCE,
        severity=SEVERITY_WARNING,
        title="No Recent Days Off",
        message=(
            f"You've worked {m.consecutive_work_days} consecutive days. "
            "Regular rest is essential for sustained productivity."
        ),
        action_items=(
            "Schedule a day off this week",
            "Plan a weekend without any coding",
            "Set up calendar blocks for personal time",
        ),
        related_metrics={
            "consecutive_work_days": m.consecutive_work_days,
            "last_day_off": m.last_day_off.isoformat() if m.last_day_off else None,
        },
    )


def _few_focus_sessions(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if not ctx.active or m.focus_sessions >= 2:
        return None
    return ctx.insight(
        "few_focus_sessions",
        type=INSIGHT_RECOMMENDATION,
        category=CATEGORY_FOCUS,
        title="Improve Deep Work Sessions",
        message=(
            "You had fewer than 2 focus sessions today. "
            "Deep work is crucial for complex problem-solving."
        ),
        action_items=(
            "Block 2-3 hours daily for uninterrupted coding",
            "Turn off notifications during focus time",
            "Use the Pomodoro Technique for structured work sessions",
        ),
        related_metrics={"focus_sessions": m.focus_sessions},
    )


def _short_focus_sessions(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if not (m.focus_sessions > 0 and m.average_focus_duration < 45):
        return None
    return ctx.insight(
        "short_focus_sessions",
        type=INSIGHT_TIP,
        category=CATEGORY_PRODUCTIVITY,
        title="Short Focus Sessions",
        message=(
            "Your average focus session is under 45 minutes. Longer sessions "
            "can improve code quality and productivity."
        ),
        action_items=(
            "Minimize context switching between tasks",
            "Batch similar activities together",
            "Create a dedicated workspace free from distractions",
        ),
        related_metrics={
            "focus_sessions": m.focus_sessions,
            "average_focus_duration": m.average_focus_duration,
        },
    )


def _excellent_focus(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if m.focus_score < 80:
        return None
    return ctx.insight(
        "excellent_focus",
        type=INSIGHT_ACHIEVEMENT,
        category=CATEGORY_FOCUS,
        title="Excellent Focus Performance!",
        message=(
            f"You achieved a focus score of {m.focus_score:.0f}. "
            "Your deep work sessions are highly productive!"
        ),
        action_items=(
            "Share your focus techniques with the team",
            "Document your productive workflow",
        ),
        related_metrics={"focus_score": m.focus_score},
    )


def _insufficient_breaks(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    ratio = break_ratio(m)
    if ratio is None or ratio >= 0.15:
        return None
    return ctx.insight(
        "insufficient_breaks",
        type=INSIGHT_WARNING,
        category=CATEGORY_BALANCE,
        title="Insufficient Break Time",
        message=(
            "You're taking very few breaks. "
            "Regular breaks improve focus and prevent fatigue."
        ),
        action_items=(
            "Set hourly reminders to stretch and move",
            "Take a 15-minute break every 90 minutes",
            "Go for a short walk during lunch",
        ),
        related_metrics={
            "break_time": m.break_time,
            "coding_hours": m.coding_hours,
            "break_ratio": ratio,
        },
    )


def _weekend_coding(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if m.weekend_commits <= 10:
        return None
    return ctx.insight(
        "heavy_weekend_coding",
        type=INSIGHT_TIP,
        category=CATEGORY_BALANCE,
        title="Heavy Weekend Coding",
        message=(
            "You made significant commits over the weekend. "
            "Weekends are important for mental recovery."
        ),
        action_items=(
            "Plan non-coding activities for weekends",
            "Set boundaries with work projects",
            "Explore hobbies outside of programming",
        ),
        related_metrics={"weekend_commits": m.weekend_commits},
    )


def _great_balance(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if not (
        ctx.active and m.work_life_balance_score >= 80 and m.coding_hours <= 8
    ):
        return None
    return ctx.insight(
        "great_work_life_balance",
        type=INSIGHT_ACHIEVEMENT,
        category=CATEGORY_BALANCE,
        title="Great Work-Life Balance!",
        message=(
            "You maintained healthy work hours and took adequate breaks. Keep it up!"
        ),
        related_metrics={
            "work_life_balance_score": m.work_life_balance_score,
            "coding_hours": m.coding_hours,
        },
    )


def _high_pr_velocity(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if m.pr_velocity <= 3:
        return None
    return ctx.insight(
        "high_pr_velocity",
        type=INSIGHT_ACHIEVEMENT,
        category=CATEGORY_PRODUCTIVITY,
        title="High PR Velocity!",
        message=f"You completed {m.pr_velocity:.1f} PRs per day. Great productivity!",
        action_items=(
            "Consider mentoring teammates on your workflow",
            "Document your PR best practices",
        ),
        related_metrics={"pr_velocity": m.pr_velocity},
    )


def _large_pull_requests(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if m.average_pr_size <= 500:
        return None
    return ctx.insight(
        "large_pull_requests",
        type=INSIGHT_RECOMMENDATION,
        category=CATEGORY_PRODUCTIVITY,
        title="Large Pull Requests",
        message=(
            "Your PRs average over 500 lines. "
            "Smaller PRs are easier to review and merge."
        ),
        action_items=(
            "Break features into smaller, incremental changes",
            "Consider feature flags for gradual rollouts",
            "Aim for PRs under 200 lines when possible",
        ),
        related_metrics={"average_pr_size": m.average_pr_size},
    )


def _early_start(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if m.first_activity_time is None or m.first_activity_time.hour >= 6:
        return None
    return ctx.insight(
        "early_start",
        type=INSIGHT_TIP,
        category=CATEGORY_HEALTH,
        title="Very Early Start Time",
        message="Starting work before 6 AM regularly can impact your circadian rhythm.",
        action_items=(
            "Ensure you're getting 7-8 hours of sleep",
            "Consider adjusting your schedule if feeling tired",
            "Maintain consistent sleep/wake times",
        ),
        related_metrics={"first_activity_time": m.first_activity_time.strftime("%H:%M")},
    )


def _late_finish(ctx: _RuleContext) -> Optional[WellnessInsight]:
    m = ctx.metrics
    if m.last_activity_time is None or m.last_activity_time.hour < 22:
        return None
    return ctx.insight(
        "late_finish",
        type=INSIGHT_TIP,
        category=CATEGORY_HEALTH,
        title="Late Work Hours",
        message="Working past 10 PM can interfere with sleep quality and recovery.",
        action_items=(
            "Set a firm end time for work",
            "Create an evening routine without screens",
            "Use night mode on devices after sunset",
        ),
        related_metrics={"last_activity_time": m.last_activity_time.strftime("%H:%M")},
    )


# Evaluation order is the order insights are returned in.
RULES: Tuple[Rule, ...] = (
    _critical_burnout,
    _high_burnout,
    _late_night_coding,
    _no_days_off,
    _few_focus_sessions,
    _short_focus_sessions,
    _excellent_focus,
    _insufficient_breaks,
    _weekend_coding,
    _great_balance,
    _high_pr_velocity,
    _large_pull_requests,
    _early_start,
    _late_finish,
)


def generate_insights(
    metrics: DailyWellnessMetrics,
    *,
    computed_at: datetime,
    team_id: Optional[str] = None,
) -> List[WellnessInsight]:
    """
    Evaluate every rule against one day's metrics (scores included).

    Rules are independent and may co-fire. The function is pure: the same
    metrics and `computed_at` always produce equal insights.
    """
    ctx = _RuleContext(metrics, computed_at, team_id)
    insights: List[WellnessInsight] = []
    for rule in RULES:
        insight = rule(ctx)
        if insight is not None:
            insights.append(insight)
    return insights
