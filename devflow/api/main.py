from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storage import create_wellness_sink, detect_db_type
from wellness.job_daily import resolve_timezone

from .models.schemas import (
    HealthResponse,
    InsightsResponse,
    InsightStateResponse,
    TeamWellnessRequest,
    TeamWellnessResponse,
    UserWellnessResponse,
)
from .services.wellness import (
    build_insights_response,
    build_team_wellness_response,
    build_user_wellness_response,
    insight_state,
)

logger = logging.getLogger(__name__)


def _db_url() -> str:
    return (
        os.getenv("DB_CONN_STRING")
        or os.getenv("DATABASE_URL")
        or "sqlite:///devflow.db"
    )


@contextmanager
def _wellness_sink() -> Iterator[Any]:
    sink = create_wellness_sink(_db_url())
    try:
        sink.ensure_tables()
        yield sink
    finally:
        sink.close()


def _today():
    return datetime.now(resolve_timezone()).date()


app = FastAPI(
    title="DevFlow Wellness API",
    version="1.0.0",
    docs_url="/docs",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/v1/health", response_model=HealthResponse)
def health() -> HealthResponse | JSONResponse:
    services = {}
    try:
        backend = detect_db_type(_db_url())
    except ValueError:
        backend = "database"
    try:
        with _wellness_sink():
            pass
        services[backend] = "ok"
    except Exception:
        logger.warning("Health check failed for %s", backend, exc_info=True)
        services[backend] = "down"

    status = "ok" if all(state == "ok" for state in services.values()) else "down"
    response = HealthResponse(status=status, services=services)
    if status != "ok":
        return JSONResponse(status_code=503, content=response.model_dump())
    return response


@app.get("/api/v1/users/{user_id}/wellness", response_model=UserWellnessResponse)
def user_wellness(
    user_id: str, range_days: int = Query(14, ge=1, le=365)
) -> UserWellnessResponse:
    try:
        with _wellness_sink() as sink:
            return build_user_wellness_response(
                sink, user_id=user_id, range_days=range_days, today=_today()
            )
    except Exception as exc:
        raise HTTPException(status_code=503, detail="Data unavailable") from exc


@app.get("/api/v1/users/{user_id}/insights", response_model=InsightsResponse)
def user_insights(user_id: str, include_dismissed: bool = False) -> InsightsResponse:
    try:
        with _wellness_sink() as sink:
            return build_insights_response(
                sink,
                user_id=user_id,
                include_dismissed=include_dismissed,
                now=datetime.now(timezone.utc),
            )
    except Exception as exc:
        raise HTTPException(status_code=503, detail="Data unavailable") from exc


def _update_insight(insight_id: str, action: str) -> InsightStateResponse:
    try:
        with _wellness_sink() as sink:
            if action == "read":
                found = sink.mark_insight_read(insight_id)
            else:
                found = sink.dismiss_insight(insight_id)
            insight = sink.get_insight(insight_id) if found else None
    except Exception as exc:
        raise HTTPException(status_code=503, detail="Data unavailable") from exc
    if insight is None:
        raise HTTPException(status_code=404, detail="Insight not found")
    return insight_state(insight)


@app.post("/api/v1/insights/{insight_id}/read", response_model=InsightStateResponse)
def mark_insight_read(insight_id: str) -> InsightStateResponse:
    return _update_insight(insight_id, "read")


@app.post(
    "/api/v1/insights/{insight_id}/dismiss", response_model=InsightStateResponse
)
def dismiss_insight(insight_id: str) -> InsightStateResponse:
    return _update_insight(insight_id, "dismiss")


@app.post("/api/v1/teams/wellness", response_model=TeamWellnessResponse)
def team_wellness(payload: TeamWellnessRequest) -> TeamWellnessResponse:
    try:
        with _wellness_sink() as sink:
            return build_team_wellness_response(
                sink,
                team_id=payload.team_id,
                member_ids=payload.member_ids,
                range_days=payload.range_days,
                today=_today(),
                now=datetime.now(timezone.utc),
            )
    except Exception as exc:
        raise HTTPException(status_code=503, detail="Data unavailable") from exc
