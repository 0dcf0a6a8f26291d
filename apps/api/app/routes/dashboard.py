from __future__ import annotations

from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta
from fastapi import APIRouter, Depends

from ..reminders import current_date
from ..schemas import DashboardResponse
from ..supabase import AuthContext, get_auth_context
from ..vaccine_store import ProfileDirectory, VaccineStore
from ..vaccines import summarize
from .growth import list_growth_records

router = APIRouter(prefix="/api/v1", tags=["dashboard"])

RECENT_GROWTH_POINTS = 5


def age_in_months(birth_date: date, today: date) -> Optional[int]:
    if birth_date > today:
        return None
    delta = relativedelta(today, birth_date)
    return delta.years * 12 + delta.months


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard_endpoint(auth: AuthContext = Depends(get_auth_context)) -> DashboardResponse:
    today = current_date()
    profile = await ProfileDirectory(auth.supabase).get_profile(auth.user_id)
    vaccines = await VaccineStore(auth.supabase).list_for_owner(auth.user_id)
    growth = sorted(await list_growth_records(auth), key=lambda record: record.date)
    return DashboardResponse(
        profile=profile,
        age_months=age_in_months(profile.birth_date, today) if profile else None,
        vaccines=summarize(vaccines, today),
        latest_growth=growth[-1] if growth else None,
        recent_growth=growth[-RECENT_GROWTH_POINTS:],
    )
