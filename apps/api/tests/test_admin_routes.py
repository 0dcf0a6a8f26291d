from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.routes.admin import admin_supabase, get_reminder_mailer, get_reminder_scheduler
from app.schemas import ReminderScanReport

from conftest import FROZEN_TODAY, OTHER_OWNER_ID, OWNER_ID, use_auth
from supabase_fakes import InMemorySupabase

client = TestClient(app)


class StubScheduler:
    def __init__(self, report):
        self.report = report
        self.calls = 0

    async def run_once(self):
        self.calls += 1
        return self.report


class StubMailer:
    configured = True

    async def verify(self):
        return True


def admin_fake():
    recent = datetime.now(timezone.utc).isoformat()
    old = (datetime.now(timezone.utc) - timedelta(days=90)).isoformat()
    return InMemorySupabase(
        tables={
            "baby_profiles": [
                {"id": str(uuid4()), "user_id": OWNER_ID, "baby_name": "Mila",
                 "birth_date": "2023-12-10", "gender": "female", "created_at": old},
                {"id": str(uuid4()), "user_id": OTHER_OWNER_ID, "baby_name": "Theo",
                 "birth_date": "2024-02-02", "gender": "male", "created_at": recent},
            ],
            "vaccines": [{"id": str(uuid4()), "user_id": OWNER_ID}] * 3,
            "growth_records": [{"id": str(uuid4()), "user_id": OTHER_OWNER_ID}],
        }
    )


def test_admin_routes_reject_regular_users() -> None:
    use_auth(InMemorySupabase())
    scheduler = StubScheduler(ReminderScanReport(scanned_on=FROZEN_TODAY))
    app.dependency_overrides[get_reminder_scheduler] = lambda: scheduler

    assert client.post("/api/v1/admin/reminders/run").status_code == 403
    assert client.get("/api/v1/admin/stats").status_code == 403
    assert scheduler.calls == 0


def test_admin_check_without_token() -> None:
    resp = client.get("/api/v1/admin/check")
    assert resp.status_code == 200
    assert resp.json() == {"is_admin": False}


def test_admin_stats_counts() -> None:
    fake = admin_fake()
    use_auth(InMemorySupabase(), is_admin=True)
    app.dependency_overrides[admin_supabase] = lambda: fake

    resp = client.get("/api/v1/admin/stats")

    assert resp.status_code == 200
    assert resp.json() == {
        "total_babies": 2,
        "total_users": 2,
        "total_vaccines": 3,
        "total_growth_records": 1,
        "recent_registrations": 1,
    }


def test_admin_babies_newest_first() -> None:
    fake = admin_fake()
    use_auth(InMemorySupabase(), is_admin=True)
    app.dependency_overrides[admin_supabase] = lambda: fake

    resp = client.get("/api/v1/admin/babies")

    assert [baby["baby_name"] for baby in resp.json()] == ["Theo", "Mila"]


def test_manual_reminder_run_returns_report() -> None:
    use_auth(InMemorySupabase(), is_admin=True)
    report = ReminderScanReport(scanned_on=FROZEN_TODAY, candidates=2, sent=["v1"], skipped=["v2"])
    scheduler = StubScheduler(report)
    app.dependency_overrides[get_reminder_scheduler] = lambda: scheduler

    resp = client.post("/api/v1/admin/reminders/run")

    assert resp.status_code == 200
    assert resp.json()["sent"] == ["v1"]
    assert resp.json()["skipped"] == ["v2"]
    assert scheduler.calls == 1


def test_manual_reminder_run_conflicts_with_running_scan() -> None:
    use_auth(InMemorySupabase(), is_admin=True)
    app.dependency_overrides[get_reminder_scheduler] = lambda: StubScheduler(None)

    assert client.post("/api/v1/admin/reminders/run").status_code == 409


def test_email_verify_uses_mailer() -> None:
    use_auth(InMemorySupabase(), is_admin=True)
    app.dependency_overrides[get_reminder_mailer] = lambda: StubMailer()

    resp = client.get("/api/v1/admin/email/verify")

    assert resp.json() == {"configured": True, "ok": True}


def test_admin_feedbacks_newest_first() -> None:
    fake = InMemorySupabase(
        tables={
            "feedbacks": [
                {"id": str(uuid4()), "user_id": OWNER_ID, "name": "Priya", "email": "priya@example.com",
                 "rating": 4, "message": "Helpful", "created_at": "2024-05-01T10:00:00+00:00"},
                {"id": str(uuid4()), "user_id": OTHER_OWNER_ID, "name": "Sam", "email": "sam@example.com",
                 "rating": 2, "message": "Needs dark mode", "created_at": "2024-06-01T10:00:00+00:00"},
            ]
        }
    )
    use_auth(InMemorySupabase(), is_admin=True)
    app.dependency_overrides[admin_supabase] = lambda: fake

    resp = client.get("/api/v1/admin/feedbacks")

    assert resp.status_code == 200
    assert [item["name"] for item in resp.json()] == ["Sam", "Priya"]


def test_admin_feedbacks_requires_admin() -> None:
    use_auth(InMemorySupabase())
    assert client.get("/api/v1/admin/feedbacks").status_code == 403


def test_manual_run_without_scheduler_config_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    use_auth(InMemorySupabase(), is_admin=True)
    monkeypatch.setattr(app.state, "reminder_scheduler", None, raising=False)

    def missing_service_role(_config):
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY for admin access.")

    monkeypatch.setattr("app.routes.admin.build_scheduler", missing_service_role)

    resp = client.post("/api/v1/admin/reminders/run")

    assert resp.status_code == 503
    assert resp.json()["detail"] == "Reminder scheduler unavailable"
