from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient

from dev_time_tracker.webapp import create_app


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.json"


@pytest.fixture
def client(engine, config_path):
    # Startup hooks are skipped outside a ``with`` block, so no OS monitors are started.
    return TestClient(create_app(engine=engine, config_path=config_path))


def test_status_reports_idle_engine(client):
    response = client.get("/api/status")
    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "idle"
    assert body["pending_session_info"] == []


def test_start_stop_and_reply_creates_session(client, clock):
    assert client.post("/api/tracking/start").json() == {"state": "recording"}
    clock.advance(45)

    stopped = client.post("/api/tracking/stop").json()
    assert stopped["state"] == "idle"
    assert stopped["outcome"] is None
    request_id = stopped["request_id"]
    assert request_id is not None

    reply = client.post(
        "/api/session-info",
        json={"request_id": request_id, "title": "Ship API", "tags": ["web"]},
    )
    assert reply.status_code == 200
    outcome = reply.json()["outcome"]
    assert outcome["created"] is True
    assert outcome["session"]["duration_seconds"] == 45

    sessions = client.get("/api/sessions", params={"tag": "web"}).json()["sessions"]
    assert [session["title"] for session in sessions] == ["Ship API"]


def test_short_session_is_discarded_immediately(client, clock):
    client.post("/api/tracking/start")
    clock.advance(3)
    outcome = client.post("/api/tracking/stop").json()["outcome"]
    assert outcome == {"created": False, "reason": "too-short", "duration_seconds": 3}


def test_session_info_without_request_is_404(client):
    response = client.post("/api/session-info", json={"title": "orphan"})
    assert response.status_code == 404


def test_summary_lists_ticks(client, engine, clock):
    client.post("/api/tracking/start")
    clock.advance(10)
    engine.sampler.tick()

    body = client.get("/api/summary", params={"date": clock().date().isoformat()}).json()
    assert body["total_seconds"] == 10
    assert body["entries"][0]["app"] == "Editor"
    assert body["entries"][0]["language"] == "Go"


def test_invalid_date_is_400(client):
    assert client.get("/api/summary", params={"date": "03/02/2026"}).status_code == 400
    response = client.get(
        "/api/languages/range", params={"start": "2026-03-05", "end": "2026-03-01"}
    )
    assert response.status_code == 400


def test_language_range_without_dates_is_400(client):
    response = client.get("/api/languages/range", params={"start": "", "end": ""})
    assert response.status_code == 400
    assert response.json()["detail"] == "start and end dates are required"


def test_edit_and_delete_session(client, engine):
    from conftest import T0

    session = engine.sessions.create_session(1, T0, 120, "Draft").session

    assert client.patch(f"/api/sessions/{session.id}", json={"title": " "}).status_code == 400
    assert client.patch("/api/sessions/999", json={"title": "x"}).status_code == 404

    updated = client.patch(f"/api/sessions/{session.id}", json={"title": "Final"}).json()
    assert updated["title"] == "Final"

    tagged = client.put(f"/api/sessions/{session.id}/tags", json={"tags": ["b", "a"]}).json()
    assert tagged["tags"] == ["a", "b"]

    assert client.delete(f"/api/sessions/{session.id}").status_code == 200
    assert client.delete(f"/api/sessions/{session.id}").status_code == 404


def test_idle_timeout_setting(client, config_path):
    assert client.get("/api/settings/idle-timeout").json() == {"seconds": 60}
    assert client.put("/api/settings/idle-timeout", json={"seconds": 30}).status_code == 400
    assert not config_path.exists()

    response = client.put("/api/settings/idle-timeout", json={"seconds": 240})
    assert response.status_code == 200
    assert client.get("/api/settings/idle-timeout").json() == {"seconds": 240}
    assert config_path.exists()


def test_events_can_be_polled_incrementally(client, clock):
    client.post("/api/tracking/start")
    first = client.get("/api/events").json()["events"]
    assert first
    last_seq = first[-1]["seq"]
    client.post("/api/tracking/pause")
    later = client.get("/api/events", params={"after": last_seq}).json()["events"]
    assert [event["name"] for event in later] == ["tracking-state"]


def test_logged_days(client, storage):
    storage.upsert_daily_bucket(date(2026, 3, 2), "Vim", None, None, 10)
    assert client.get("/api/logged-days", params={"year": 2026, "month": 3}).json() == {
        "days": ["2026-03-02"]
    }


def test_scheduled_session_lifecycle(client):
    created = client.post(
        "/api/scheduled-sessions",
        json={
            "title": "Refactor storage",
            "scheduled_at": "2026-03-02T14:00:00",
            "estimated_minutes": 90,
            "recurrence": {"occurrences": 2},
            "tags": ["db"],
        },
    )
    assert created.status_code == 200
    plans = created.json()["scheduled_sessions"]
    assert [plan["scheduled_at"] for plan in plans] == [
        "2026-03-02T14:00:00",
        "2026-03-09T14:00:00",
    ]
    assert plans[0]["recurrence"] == {"type": "weekly", "end_date": None, "occurrences": 2}
    first_id = plans[0]["id"]

    listed = client.get(
        "/api/scheduled-sessions", params={"start": "2026-03-01", "end": "2026-03-05"}
    )
    assert [plan["id"] for plan in listed.json()["scheduled_sessions"]] == [first_id]

    patched = client.patch(
        f"/api/scheduled-sessions/{first_id}",
        json={"estimated_minutes": None, "tags": []},
    )
    assert patched.status_code == 200
    assert patched.json()["estimated_minutes"] is None
    assert patched.json()["tags"] == []

    completed = client.post(f"/api/scheduled-sessions/{first_id}/complete")
    assert completed.json()["status"] == "completed"
    pending = client.get("/api/scheduled-sessions", params={"status": ["pending"]}).json()
    assert len(pending["scheduled_sessions"]) == 1

    assert client.delete(f"/api/scheduled-sessions/{first_id}").status_code == 200
    assert client.get(f"/api/scheduled-sessions/{first_id}").status_code == 404


def test_scheduled_session_validation(client):
    response = client.post(
        "/api/scheduled-sessions",
        json={"title": " ", "scheduled_at": "2026-03-02T14:00:00"},
    )
    assert response.status_code == 400
    assert client.patch("/api/scheduled-sessions/42", json={"title": "x"}).status_code == 404
    assert client.post("/api/scheduled-sessions/42/complete").status_code == 404


def test_reminders_can_be_listed_and_acknowledged(client, engine):
    from conftest import T0

    plan = engine.planning.schedule_session(1, "Pairing", T0.replace(hour=10))[0]

    reminders = client.get("/api/reminders").json()["reminders"]
    assert [(r["scheduled_session_id"], r["kind"]) for r in reminders] == [
        (plan.id, "same_day")
    ]
    response = client.post(f"/api/reminders/{plan.id}/sent", json={"kind": "same_day"})
    assert response.status_code == 200
    assert client.get("/api/reminders").json()["reminders"] == []
    assert client.post("/api/reminders/999/sent", json={"kind": "same_day"}).status_code == 404


def test_daily_goal_endpoints(client, storage):
    assert client.get("/api/goals/2026-03-02").status_code == 404
    assert client.put("/api/goals/2026-03-02", json={"target_minutes": 0}).status_code == 400

    response = client.put(
        "/api/goals/2026-03-02", json={"target_minutes": 20, "description": "warm up"}
    )
    assert response.status_code == 200
    assert response.json()["target_minutes"] == 20

    storage.upsert_daily_bucket(date(2026, 3, 2), "Editor", "Go", None, 1500)
    goal = client.get("/api/goals/2026-03-02").json()
    assert goal["tracked_minutes"] == 25
    assert goal["reached"] is True
    assert client.get("/api/total-time", params={"date": "2026-03-02"}).json()["minutes"] == 25

    assert client.post("/api/goals/2026-03-02/complete").json()["completed"] is True
    assert [g["date"] for g in client.get("/api/goals").json()["goals"]] == ["2026-03-02"]
    assert client.delete("/api/goals/2026-03-02").status_code == 200
    assert client.delete("/api/goals/2026-03-02").status_code == 404
    assert client.get("/api/goals/not-a-date").status_code == 400
