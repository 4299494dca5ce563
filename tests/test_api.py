from datetime import date, datetime, time, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from devflow.api import main as api_main
from wellness.insights import generate_insights
from wellness.schemas import DailyWellnessMetrics
from wellness.sinks.sqlite import SQLiteWellnessSink

TODAY = date(2025, 3, 14)


def metrics(user_id: str, day: date, burnout: float, **fields) -> DailyWellnessMetrics:
    return DailyWellnessMetrics(
        user_id=user_id,
        day=day,
        coding_hours=6.0,
        break_time=1.0,
        focus_sessions=2,
        total_commits=8,
        first_activity_time=time(9, 5),
        last_activity_time=time(17, 40),
        burnout_risk_score=burnout,
        work_life_balance_score=70.0,
        focus_score=55.0,
        computed_at=datetime(2025, 3, 14, 23, 0, tzinfo=timezone.utc),
        **fields,
    )


@pytest.fixture
def seeded_url(sqlite_url):
    sink = SQLiteWellnessSink(sqlite_url)
    sink.ensure_tables()
    rows = [
        metrics("alice", TODAY - timedelta(days=13 - i), 60.0 if i < 7 else 30.0)
        for i in range(14)
    ]
    rows.append(metrics("bob", TODAY, 80.0, late_night_commits=9))
    sink.write_daily_metrics(rows)
    sink.write_insights(
        generate_insights(
            rows[-1], computed_at=datetime.now(timezone.utc), team_id="platform"
        )
    )
    sink.close()
    return sqlite_url


@pytest.fixture
def client(monkeypatch, seeded_url):
    monkeypatch.setenv("DB_CONN_STRING", seeded_url)
    monkeypatch.setattr(api_main, "_today", lambda: TODAY)
    return TestClient(api_main.app)


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "services": {"sqlite": "ok"}}


def test_health_reports_down_backend(monkeypatch):
    monkeypatch.setenv("DB_CONN_STRING", "postgresql://localhost/devflow")
    response = TestClient(api_main.app).get("/api/v1/health")
    assert response.status_code == 503
    assert response.json()["status"] == "down"


class TestUserWellness:
    def test_history_and_trend(self, client):
        response = client.get("/api/v1/users/alice/wellness")
        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == "alice"
        assert body["range_days"] == 14
        assert len(body["history"]) == 14
        assert body["trend"] == "improving"
        assert body["risk_level"] == "moderate"
        latest = body["latest"]
        assert latest["day"] == "2025-03-14"
        assert latest["first_activity_time"] == "09:05"
        assert latest["last_activity_time"] == "17:40"

    def test_range(self, client):
        body = client.get("/api/v1/users/alice/wellness?range_days=3").json()
        assert [h["day"] for h in body["history"]] == [
            "2025-03-12",
            "2025-03-13",
            "2025-03-14",
        ]

    def test_unknown_user(self, client):
        body = client.get("/api/v1/users/nobody/wellness").json()
        assert body["latest"] is None
        assert body["history"] == []
        assert body["risk_level"] == "low"

    @pytest.mark.parametrize("value", [0, 366])
    def test_range_is_validated(self, client, value):
        response = client.get(f"/api/v1/users/alice/wellness?range_days={value}")
        assert response.status_code == 422


class TestInsights:
    def test_lists_insights(self, client):
        body = client.get("/api/v1/users/bob/insights").json()
        keys = [i["rule_key"] for i in body["insights"]]
        assert "burnout_critical" in keys
        assert "late_night_coding" in keys
        critical = body["insights"][keys.index("burnout_critical")]
        assert critical["severity"] == "critical"
        assert critical["id"] == "bob:2025-03-14:burnout_critical"
        assert critical["is_read"] is False

    def test_read_and_dismiss(self, client):
        insight_id = "bob:2025-03-14:late_night_coding"
        response = client.post(f"/api/v1/insights/{insight_id}/read")
        assert response.status_code == 200
        assert response.json() == {"id": insight_id, "is_read": True, "is_dismissed": False}

        response = client.post(f"/api/v1/insights/{insight_id}/dismiss")
        assert response.json()["is_dismissed"] is True

        visible = client.get("/api/v1/users/bob/insights").json()["insights"]
        assert insight_id not in {i["id"] for i in visible}
        everything = client.get(
            "/api/v1/users/bob/insights", params={"include_dismissed": True}
        ).json()["insights"]
        assert insight_id in {i["id"] for i in everything}

    @pytest.mark.parametrize("action", ["read", "dismiss"])
    def test_unknown_insight(self, client, action):
        response = client.post(f"/api/v1/insights/nope/{action}")
        assert response.status_code == 404


def test_team_wellness(client):
    response = client.post(
        "/api/v1/teams/wellness",
        json={"team_id": "platform", "member_ids": ["alice", "bob", "carol"], "range_days": 14},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total_members"] == 3
    assert body["at_risk_members"] == 1
    assert body["avg_burnout_risk_score"] == pytest.approx((30 + 80) / 3)
    members = {m["user_id"]: m for m in body["members"]}
    assert members["bob"]["risk_level"] == "critical"
    assert members["carol"]["last_day"] is None
    team_insights = body["insights"]
    assert team_insights
    assert {i["team_id"] for i in team_insights} == {"platform"}
    assert "bob:2025-03-14:burnout_critical" in {i["id"] for i in team_insights}


def test_team_wellness_hides_dismissed_and_other_teams(client):
    insight_id = "bob:2025-03-14:late_night_coding"
    client.post(f"/api/v1/insights/{insight_id}/dismiss")
    body = client.post(
        "/api/v1/teams/wellness", json={"team_id": "platform", "member_ids": ["bob"]}
    ).json()
    assert insight_id not in {i["id"] for i in body["insights"]}
    other = client.post(
        "/api/v1/teams/wellness", json={"team_id": "mobile", "member_ids": ["bob"]}
    ).json()
    assert other["insights"] == []


def test_team_requires_members(client):
    response = client.post("/api/v1/teams/wellness", json={"team_id": "x", "member_ids": []})
    assert response.status_code == 422


def test_backend_errors_are_503(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_CONN_STRING", f"sqlite:///{tmp_path / 'missing' / 'x.db'}")
    client = TestClient(api_main.app)
    assert client.get("/api/v1/users/alice/wellness").status_code == 503
    response = client.post("/api/v1/insights/abc/read")
    assert response.status_code == 503
    assert response.json() == {"detail": "Data unavailable"}
