from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from ..config import CONFIG
from ..reminders import current_date, is_reminder_candidate
from ..schemas import VaccineView
from ..supabase import AuthContext, get_auth_context
from ..vaccine_store import VaccineStore
from ..vaccines import sort_for_display, to_view

router = APIRouter(prefix="/api/v1", tags=["reminders"])


@router.get("/reminders/upcoming", response_model=List[VaccineView])
async def list_upcoming_reminders_endpoint(
    auth: AuthContext = Depends(get_auth_context),
) -> List[VaccineView]:
    """Vaccines the next reminder scan would e-mail about for this user."""
    today = current_date()
    records = await VaccineStore(auth.supabase).list_for_owner(auth.user_id)
    return [
        to_view(record, today)
        for record in sort_for_display(records)
        if is_reminder_candidate(record, today, CONFIG.reminder_horizon_days)
    ]
