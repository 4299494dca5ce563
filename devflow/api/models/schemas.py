from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    services: Dict[str, str]


class DailyWellness(BaseModel):
    day: date
    coding_hours: float
    break_time: float
    focus_sessions: int
    average_focus_duration: float
    longest_focus_duration: float
    total_commits: int
    morning_commits: int
    afternoon_commits: int
    evening_commits: int
    late_night_commits: int
    weekend_commits: int
    prs_opened: int
    prs_reviewed: int
    prs_merged: int
    average_pr_size: float
    pr_velocity: float
    # HH:MM, local time
    first_activity_time: Optional[str] = None
    last_activity_time: Optional[str] = None
    consecutive_work_days: int
    last_day_off: Optional[date] = None
    burnout_risk_score: float
    work_life_balance_score: float
    focus_score: float
    computed_at: Optional[datetime] = None


class UserWellnessResponse(BaseModel):
    user_id: str
    range_days: int
    risk_level: str
    trend: str
    latest: Optional[DailyWellness] = None
    history: List[DailyWellness]


class Insight(BaseModel):
    id: str
    rule_key: str
    user_id: str
    team_id: Optional[str] = None
    day: date
    type: str
    category: str
    severity: Optional[str] = None
    title: str
    message: str
    action_items: List[str]
    related_metrics: Dict[str, Any]
    is_read: bool
    is_dismissed: bool
    valid_until: Optional[datetime] = None
    created_at: Optional[datetime] = None


class InsightsResponse(BaseModel):
    user_id: str
    insights: List[Insight]


class InsightStateResponse(BaseModel):
    id: str
    is_read: bool
    is_dismissed: bool


class TeamWellnessRequest(BaseModel):
    team_id: str
    member_ids: List[str] = Field(min_length=1)
    range_days: int = Field(default=14, ge=1, le=365)


class MemberWellness(BaseModel):
    user_id: str
    risk_level: str
    trend: str
    burnout_risk_score: Optional[float] = None
    work_life_balance_score: Optional[float] = None
    focus_score: Optional[float] = None
    last_day: Optional[date] = None


class TeamWellnessResponse(BaseModel):
    team_id: str
    total_members: int
    at_risk_members: int
    avg_burnout_risk_score: float
    avg_work_life_balance_score: float
    avg_focus_score: float
    members: List[MemberWellness]
    insights: List[Insight] = []
