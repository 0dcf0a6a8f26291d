from __future__ import annotations

import datetime as dt
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..schemas import GrowthRecord
from ..supabase import AuthContext, get_auth_context, resolve_optional_uuid

router = APIRouter(prefix="/api/v1", tags=["growth"])

GROWTH_COLUMNS = "id,user_id,date,height,weight"


class CreateGrowthRecordPayload(BaseModel):
    date: dt.date
    height: int = Field(..., gt=0, description="Height in centimeters")
    weight: int = Field(..., gt=0, description="Weight in grams")


async def list_growth_records(auth: AuthContext) -> List[GrowthRecord]:
    rows = await auth.supabase.select(
        "growth_records",
        params={
            "select": GROWTH_COLUMNS,
            "user_id": f"eq.{auth.user_id}",
            "order": "date.asc",
        },
    )
    return [GrowthRecord.model_validate(row) for row in rows]


@router.get("/growth-records", response_model=List[GrowthRecord])
async def list_growth_records_endpoint(
    auth: AuthContext = Depends(get_auth_context),
) -> List[GrowthRecord]:
    return await list_growth_records(auth)


@router.post("/growth-records", response_model=GrowthRecord)
async def create_growth_record_endpoint(
    payload: CreateGrowthRecordPayload,
    auth: AuthContext = Depends(get_auth_context),
) -> GrowthRecord:
    rows = await auth.supabase.insert(
        "growth_records",
        {
            "user_id": auth.user_id,
            "date": payload.date.isoformat(),
            "height": payload.height,
            "weight": payload.weight,
        },
    )
    if not rows:
        raise HTTPException(status_code=500, detail="Growth record could not be created")
    return GrowthRecord.model_validate(rows[0])


@router.delete("/growth-records/{record_id}")
async def delete_growth_record_endpoint(
    record_id: str,
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    record_uuid = resolve_optional_uuid(record_id, "record_id")
    if not record_uuid:
        raise HTTPException(status_code=400, detail="Invalid record_id")
    await auth.supabase.delete(
        "growth_records",
        params={"id": f"eq.{record_uuid}", "user_id": f"eq.{auth.user_id}"},
    )
    return {"status": "deleted", "id": record_uuid}
