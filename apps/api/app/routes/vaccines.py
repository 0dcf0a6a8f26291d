from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..reminders import current_date
from ..schemas import CompletionResult, NewVaccine, VaccineStatus, VaccineUpdate, VaccineView
from ..supabase import AuthContext, get_auth_context, resolve_optional_uuid
from ..vaccine_store import VaccineStore
from ..vaccines import (
    InvalidStatusTransition,
    build_update_payload,
    complete_vaccine,
    sort_for_display,
    to_view,
)

router = APIRouter(prefix="/api/v1", tags=["vaccines"])
logger = logging.getLogger(__name__)


class CreateVaccinePayload(BaseModel):
    vaccine_name: str = Field(..., min_length=1)
    due_date: date
    status: VaccineStatus = VaccineStatus.PENDING


class CompleteVaccinePayload(BaseModel):
    create_next_dose: bool = True


def _vaccine_uuid(vaccine_id: str) -> str:
    resolved = resolve_optional_uuid(vaccine_id, "vaccine_id")
    if not resolved:
        raise HTTPException(status_code=400, detail="Invalid vaccine_id")
    return resolved


async def _require_vaccine(store: VaccineStore, vaccine_id: str, owner_id: str):
    record = await store.get(_vaccine_uuid(vaccine_id), owner_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Vaccine not found")
    return record


@router.get("/vaccines", response_model=List[VaccineView])
async def list_vaccines_endpoint(
    auth: AuthContext = Depends(get_auth_context),
) -> List[VaccineView]:
    today = current_date()
    records = await VaccineStore(auth.supabase).list_for_owner(auth.user_id)
    return [to_view(record, today) for record in sort_for_display(records)]


@router.post("/vaccines", response_model=VaccineView)
async def create_vaccine_endpoint(
    payload: CreateVaccinePayload,
    auth: AuthContext = Depends(get_auth_context),
) -> VaccineView:
    name = payload.vaccine_name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="vaccine_name is required")
    record = await VaccineStore(auth.supabase).create(
        NewVaccine(
            user_id=auth.user_id,
            vaccine_name=name,
            due_date=payload.due_date,
            status=payload.status,
        )
    )
    logger.info("vaccine created", extra={"user_id": auth.user_id, "vaccine_id": record.id})
    return to_view(record, current_date())


@router.patch("/vaccines/{vaccine_id}", response_model=VaccineView)
async def update_vaccine_endpoint(
    vaccine_id: str,
    payload: VaccineUpdate,
    auth: AuthContext = Depends(get_auth_context),
) -> VaccineView:
    store = VaccineStore(auth.supabase)
    record = await _require_vaccine(store, vaccine_id, auth.user_id)
    try:
        updates = build_update_payload(record, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not updates:
        return to_view(record, current_date())
    updated = await store.update(record.id, auth.user_id, updates)
    if updated is None:
        raise HTTPException(status_code=404, detail="Vaccine not found")
    return to_view(updated, current_date())


@router.post("/vaccines/{vaccine_id}/complete", response_model=CompletionResult)
async def complete_vaccine_endpoint(
    vaccine_id: str,
    payload: Optional[CompleteVaccinePayload] = None,
    auth: AuthContext = Depends(get_auth_context),
) -> CompletionResult:
    options = payload or CompleteVaccinePayload()
    store = VaccineStore(auth.supabase)
    record = await _require_vaccine(store, vaccine_id, auth.user_id)
    try:
        return await complete_vaccine(store, record, create_next_dose=options.create_next_dose)
    except InvalidStatusTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.delete("/vaccines/{vaccine_id}")
async def delete_vaccine_endpoint(
    vaccine_id: str,
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    store = VaccineStore(auth.supabase)
    record = await _require_vaccine(store, vaccine_id, auth.user_id)
    await store.delete(record.id, auth.user_id)
    return {"status": "deleted", "id": record.id}
