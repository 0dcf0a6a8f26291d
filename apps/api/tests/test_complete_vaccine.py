from __future__ import annotations

import asyncio
from datetime import date

import pytest
from fastapi import HTTPException

from app.schemas import VaccineStatus
from app.vaccine_store import VaccineStore
from app.vaccines import InvalidStatusTransition, complete_vaccine

from supabase_fakes import InMemorySupabase

OWNER_ID = "7d4b2f0e-8a3c-4e4f-9c55-1f2a3b4c5d6e"


def seed_store(**row_overrides):
    row = {
        "id": "11111111-1111-4111-8111-111111111111",
        "user_id": OWNER_ID,
        "vaccine_name": "Hepatitis B (Dose 1)",
        "due_date": "2024-01-31",
        "status": "Pending",
        "reminder_sent": True,
    }
    row.update(row_overrides)
    fake = InMemorySupabase(tables={"vaccines": [row]})
    return fake, VaccineStore(fake)


def test_complete_creates_exactly_one_next_dose() -> None:
    fake, store = seed_store()
    record = asyncio.run(store.get("11111111-1111-4111-8111-111111111111", OWNER_ID))

    result = asyncio.run(complete_vaccine(store, record))

    assert result.completed.status == VaccineStatus.COMPLETED
    assert result.next_dose_error is None
    assert result.next_dose is not None
    assert result.next_dose.id != record.id
    assert result.next_dose.vaccine_name == "Hepatitis B (Dose 2)"
    assert result.next_dose.due_date == date(2024, 2, 29)
    assert result.next_dose.status == VaccineStatus.PENDING
    assert result.next_dose.reminder_sent is False
    assert result.next_dose.user_id == OWNER_ID

    rows = fake.rows("vaccines")
    assert len(rows) == 2
    completed_row = next(row for row in rows if row["id"] == record.id)
    assert completed_row["status"] == "Completed"
    assert completed_row["vaccine_name"] == "Hepatitis B (Dose 1)"
    assert completed_row["reminder_sent"] is True


def test_complete_without_next_dose_creates_nothing() -> None:
    fake, store = seed_store()
    record = asyncio.run(store.get("11111111-1111-4111-8111-111111111111", OWNER_ID))

    result = asyncio.run(complete_vaccine(store, record, create_next_dose=False))

    assert result.completed.status == VaccineStatus.COMPLETED
    assert result.next_dose is None
    assert len(fake.rows("vaccines")) == 1
    assert not [call for call in fake.calls if call[0] == "insert"]


def test_next_dose_failure_keeps_completion() -> None:
    fake, store = seed_store()
    fake.fail("insert", "vaccines", HTTPException(status_code=503, detail="store unavailable"))
    record = asyncio.run(store.get("11111111-1111-4111-8111-111111111111", OWNER_ID))

    result = asyncio.run(complete_vaccine(store, record))

    assert result.completed.status == VaccineStatus.COMPLETED
    assert result.next_dose is None
    assert result.next_dose_error == "store unavailable"
    assert fake.rows("vaccines")[0]["status"] == "Completed"


def test_completing_completed_dose_is_rejected() -> None:
    _, store = seed_store(status="Completed")
    record = asyncio.run(store.get("11111111-1111-4111-8111-111111111111", OWNER_ID))

    with pytest.raises(InvalidStatusTransition):
        asyncio.run(complete_vaccine(store, record))


def test_completion_race_is_rejected() -> None:
    fake, store = seed_store()
    record = asyncio.run(store.get("11111111-1111-4111-8111-111111111111", OWNER_ID))
    fake.rows("vaccines")[0]["status"] = "Completed"

    with pytest.raises(InvalidStatusTransition):
        asyncio.run(complete_vaccine(store, record))
    assert len(fake.rows("vaccines")) == 1
