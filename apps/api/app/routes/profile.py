from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..schemas import BabyProfile
from ..supabase import AuthContext, get_auth_context
from ..vaccine_store import PROFILE_COLUMNS, ProfileDirectory

router = APIRouter(prefix="/api/v1", tags=["profile"])


class CreateProfilePayload(BaseModel):
    baby_name: str = Field(..., min_length=1)
    birth_date: date
    gender: str = Field(..., min_length=1)
    photo_url: Optional[str] = None


class UpdateProfilePayload(BaseModel):
    baby_name: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    photo_url: Optional[str] = None


@router.get("/baby-profile", response_model=BabyProfile)
async def get_profile_endpoint(auth: AuthContext = Depends(get_auth_context)) -> BabyProfile:
    profile = await ProfileDirectory(auth.supabase).get_profile(auth.user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.post("/baby-profile", response_model=BabyProfile)
async def create_profile_endpoint(
    payload: CreateProfilePayload,
    auth: AuthContext = Depends(get_auth_context),
) -> BabyProfile:
    existing = await ProfileDirectory(auth.supabase).get_profile(auth.user_id)
    if existing is not None:
        raise HTTPException(status_code=409, detail="Profile already exists")
    baby_name = payload.baby_name.strip()
    if not baby_name:
        raise HTTPException(status_code=400, detail="baby_name is required")
    rows = await auth.supabase.insert(
        "baby_profiles",
        {
            "user_id": auth.user_id,
            "baby_name": baby_name,
            "birth_date": payload.birth_date.isoformat(),
            "gender": payload.gender,
            "photo_url": payload.photo_url,
        },
        params={"select": PROFILE_COLUMNS},
    )
    if not rows:
        raise HTTPException(status_code=500, detail="Profile could not be created")
    return BabyProfile.model_validate(rows[0])


@router.put("/baby-profile", response_model=BabyProfile)
async def update_profile_endpoint(
    payload: UpdateProfilePayload,
    auth: AuthContext = Depends(get_auth_context),
) -> BabyProfile:
    updates: dict = {}
    if "baby_name" in payload.model_fields_set:
        baby_name = (payload.baby_name or "").strip()
        if not baby_name:
            raise HTTPException(status_code=400, detail="baby_name cannot be empty")
        updates["baby_name"] = baby_name
    if "birth_date" in payload.model_fields_set and payload.birth_date is not None:
        updates["birth_date"] = payload.birth_date.isoformat()
    if "gender" in payload.model_fields_set and payload.gender:
        updates["gender"] = payload.gender
    if "photo_url" in payload.model_fields_set:
        updates["photo_url"] = payload.photo_url

    if not updates:
        return await get_profile_endpoint(auth)
    rows = await auth.supabase.update(
        "baby_profiles",
        updates,
        params={"user_id": f"eq.{auth.user_id}", "select": PROFILE_COLUMNS},
    )
    if not rows:
        raise HTTPException(status_code=404, detail="Profile not found")
    return BabyProfile.model_validate(rows[0])
