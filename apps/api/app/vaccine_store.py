"""Supabase-backed storage for vaccine records plus owner lookups."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from .schemas import BabyProfile, NewVaccine, VaccineRecord, VaccineStatus
from .supabase import SupabaseClient

VACCINE_COLUMNS = "id,user_id,vaccine_name,due_date,status,reminder_sent,created_at"
PROFILE_COLUMNS = "id,user_id,baby_name,birth_date,gender,photo_url,created_at"


def _first(rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return rows[0] if rows else None


class VaccineStore:
    def __init__(self, supabase: SupabaseClient) -> None:
        self.supabase = supabase

    async def list_for_owner(self, owner_id: str) -> List[VaccineRecord]:
        rows = await self.supabase.select(
            "vaccines",
            params={
                "select": VACCINE_COLUMNS,
                "user_id": f"eq.{owner_id}",
                "order": "due_date.asc",
            },
        )
        return [VaccineRecord.model_validate(row) for row in rows]

    async def get(self, record_id: str, owner_id: str) -> Optional[VaccineRecord]:
        rows = await self.supabase.select(
            "vaccines",
            params={
                "select": VACCINE_COLUMNS,
                "id": f"eq.{record_id}",
                "user_id": f"eq.{owner_id}",
                "limit": "1",
            },
        )
        row = _first(rows)
        return VaccineRecord.model_validate(row) if row else None

    async def create(self, vaccine: NewVaccine) -> VaccineRecord:
        rows = await self.supabase.insert("vaccines", vaccine.to_row())
        row = _first(rows)
        if not row:
            raise HTTPException(status_code=500, detail="Supabase insert returned no row (table=vaccines)")
        return VaccineRecord.model_validate(row)

    async def update(
        self,
        record_id: str,
        owner_id: str,
        payload: Dict[str, Any],
    ) -> Optional[VaccineRecord]:
        rows = await self.supabase.update(
            "vaccines",
            payload,
            params={"id": f"eq.{record_id}", "user_id": f"eq.{owner_id}"},
        )
        row = _first(rows)
        return VaccineRecord.model_validate(row) if row else None

    async def mark_completed(self, record_id: str, owner_id: str) -> Optional[VaccineRecord]:
        """Flip a pending record to completed; returns None if nothing pending matched."""
        rows = await self.supabase.update(
            "vaccines",
            {"status": VaccineStatus.COMPLETED.value},
            params={
                "id": f"eq.{record_id}",
                "user_id": f"eq.{owner_id}",
                "status": f"eq.{VaccineStatus.PENDING.value}",
            },
        )
        row = _first(rows)
        return VaccineRecord.model_validate(row) if row else None

    async def delete(self, record_id: str, owner_id: str) -> None:
        await self.supabase.delete(
            "vaccines",
            params={"id": f"eq.{record_id}", "user_id": f"eq.{owner_id}"},
        )

    async def list_reminder_candidates(self, today: date, horizon_days: int) -> List[VaccineRecord]:
        horizon_end = today + timedelta(days=horizon_days)
        rows = await self.supabase.select(
            "vaccines",
            params={
                "select": VACCINE_COLUMNS,
                "status": f"eq.{VaccineStatus.PENDING.value}",
                "reminder_sent": "eq.false",
                "due_date": [f"gte.{today.isoformat()}", f"lte.{horizon_end.isoformat()}"],
                "order": "due_date.asc",
            },
        )
        return [VaccineRecord.model_validate(row) for row in rows]

    async def mark_reminder_sent(self, record_id: str, owner_id: Optional[str] = None) -> bool:
        params = {"id": f"eq.{record_id}", "reminder_sent": "eq.false"}
        if owner_id:
            params["user_id"] = f"eq.{owner_id}"
        rows = await self.supabase.update("vaccines", {"reminder_sent": True}, params=params)
        return bool(rows)


class ProfileDirectory:
    def __init__(self, supabase: SupabaseClient) -> None:
        self.supabase = supabase

    async def get_profile(self, owner_id: str) -> Optional[BabyProfile]:
        rows = await self.supabase.select(
            "baby_profiles",
            params={"select": PROFILE_COLUMNS, "user_id": f"eq.{owner_id}", "limit": "1"},
        )
        row = _first(rows)
        return BabyProfile.model_validate(row) if row else None

    async def get_display_name(self, owner_id: str) -> Optional[str]:
        profile = await self.get_profile(owner_id)
        if profile is None:
            return None
        return profile.baby_name.strip() or None


class ContactDirectory:
    def __init__(self, supabase: SupabaseClient) -> None:
        self.supabase = supabase

    async def get_email(self, owner_id: str) -> Optional[str]:
        user = await self.supabase.get_auth_user(owner_id)
        if not user:
            return None
        email = user.get("email")
        return email.strip() if isinstance(email, str) and email.strip() else None
