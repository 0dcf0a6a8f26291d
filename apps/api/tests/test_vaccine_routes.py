from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

from fastapi.testclient import TestClient

from app.main import app

from conftest import FROZEN_TODAY, OTHER_OWNER_ID, OWNER_ID, use_auth
from supabase_fakes import InMemorySupabase

client = TestClient(app)


def vaccine_row(name, offset_days, *, owner=OWNER_ID, status="Pending", reminder_sent=False):
    return {
        "id": str(uuid4()),
        "user_id": owner,
        "vaccine_name": name,
        "due_date": (FROZEN_TODAY + timedelta(days=offset_days)).isoformat(),
        "status": status,
        "reminder_sent": reminder_sent,
    }


def seeded_fake(*rows):
    return InMemorySupabase(tables={"vaccines": list(rows)})


def test_list_vaccines_sorted_with_display_status(frozen_today) -> None:
    fake = seeded_fake(
        vaccine_row("BCG", -40, status="Completed"),
        vaccine_row("PCV (Dose 2)", 10),
        vaccine_row("Rotavirus", 0),
        vaccine_row("Hepatitis B (Dose 2)", -3),
        vaccine_row("Someone else's", 1, owner=OTHER_OWNER_ID),
    )
    use_auth(fake)

    resp = client.get("/api/v1/vaccines")

    assert resp.status_code == 200
    body = resp.json()
    assert [item["vaccine_name"] for item in body] == [
        "Hepatitis B (Dose 2)",
        "Rotavirus",
        "PCV (Dose 2)",
        "BCG",
    ]
    assert [item["display_status"] for item in body] == ["Overdue", "Due Today", "Pending", "Completed"]
    assert all(item["calendar_url"].startswith("https://calendar.google.com/") for item in body)


def test_create_vaccine_defaults_to_pending(frozen_today) -> None:
    fake = seeded_fake()
    use_auth(fake)

    resp = client.post(
        "/api/v1/vaccines",
        json={"vaccine_name": "  MMR (Dose 1) ", "due_date": "2024-07-01"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["vaccine_name"] == "MMR (Dose 1)"
    assert body["status"] == "Pending"
    assert body["reminder_sent"] is False
    assert body["display_status"] == "Pending"
    stored = fake.rows("vaccines")[0]
    assert stored["user_id"] == OWNER_ID
    assert stored["reminder_sent"] is False


def test_create_vaccine_rejects_bad_date(frozen_today) -> None:
    use_auth(seeded_fake())
    resp = client.post("/api/v1/vaccines", json={"vaccine_name": "MMR", "due_date": "soon"})
    assert resp.status_code == 422


def test_patch_cannot_reopen_completed_dose(frozen_today) -> None:
    row = vaccine_row("BCG", -5, status="Completed")
    fake = seeded_fake(row)
    use_auth(fake)

    resp = client.patch(f"/api/v1/vaccines/{row['id']}", json={"status": "Pending"})

    assert resp.status_code == 400
    assert fake.rows("vaccines")[0]["status"] == "Completed"


def test_patch_ignores_reminder_flag(frozen_today) -> None:
    row = vaccine_row("MMR", 2)
    fake = seeded_fake(row)
    use_auth(fake)

    resp = client.patch(
        f"/api/v1/vaccines/{row['id']}",
        json={"due_date": "2024-06-20", "reminder_sent": True},
    )

    assert resp.status_code == 200
    stored = fake.rows("vaccines")[0]
    assert stored["due_date"] == "2024-06-20"
    assert stored["reminder_sent"] is False
    update_calls = [call for call in fake.calls if call[0] == "update"]
    _, _, payload, params = update_calls[0]
    assert payload == {"due_date": "2024-06-20"}
    assert params["user_id"] == f"eq.{OWNER_ID}"


def test_complete_schedules_next_dose(frozen_today) -> None:
    row = vaccine_row("Hepatitis B (Dose 1)", 0)
    fake = seeded_fake(row)
    use_auth(fake)

    resp = client.post(f"/api/v1/vaccines/{row['id']}/complete")

    assert resp.status_code == 200
    body = resp.json()
    assert body["completed"]["status"] == "Completed"
    assert body["next_dose"]["vaccine_name"] == "Hepatitis B (Dose 2)"
    assert body["next_dose"]["due_date"] == "2024-07-15"
    assert body["next_dose_error"] is None
    assert len(fake.rows("vaccines")) == 2

    again = client.post(f"/api/v1/vaccines/{row['id']}/complete")
    assert again.status_code == 409
    assert len(fake.rows("vaccines")) == 2


def test_complete_without_next_dose(frozen_today) -> None:
    row = vaccine_row("Rotavirus", 0)
    fake = seeded_fake(row)
    use_auth(fake)

    resp = client.post(
        f"/api/v1/vaccines/{row['id']}/complete",
        json={"create_next_dose": False},
    )

    assert resp.status_code == 200
    assert resp.json()["next_dose"] is None
    assert len(fake.rows("vaccines")) == 1


def test_other_owner_record_is_not_found(frozen_today) -> None:
    row = vaccine_row("MMR", 1, owner=OTHER_OWNER_ID)
    fake = seeded_fake(row)
    use_auth(fake)

    assert client.delete(f"/api/v1/vaccines/{row['id']}").status_code == 404
    assert client.post(f"/api/v1/vaccines/{row['id']}/complete").status_code == 404
    assert len(fake.rows("vaccines")) == 1


def test_invalid_vaccine_id(frozen_today) -> None:
    use_auth(seeded_fake())
    assert client.delete("/api/v1/vaccines/not-a-uuid").status_code == 400


def test_delete_vaccine(frozen_today) -> None:
    row = vaccine_row("MMR", 1)
    fake = seeded_fake(row)
    use_auth(fake)

    resp = client.delete(f"/api/v1/vaccines/{row['id']}")

    assert resp.status_code == 200
    assert fake.rows("vaccines") == []


def test_upcoming_reminders_lists_next_scan_candidates(frozen_today) -> None:
    fake = seeded_fake(
        vaccine_row("due today", 0),
        vaccine_row("in three days", 3),
        vaccine_row("in four days", 4),
        vaccine_row("already reminded", 1, reminder_sent=True),
        vaccine_row("overdue", -1),
    )
    use_auth(fake)

    resp = client.get("/api/v1/reminders/upcoming")

    assert resp.status_code == 200
    assert [item["vaccine_name"] for item in resp.json()] == ["due today", "in three days"]
