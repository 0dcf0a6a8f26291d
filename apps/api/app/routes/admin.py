from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from ..config import CONFIG
from ..mailer import ReminderMailer
from ..reminders import ReminderScheduler, build_scheduler
from ..schemas import Feedback, ReminderScanReport
from ..supabase import (
    AuthContext,
    SupabaseClient,
    get_admin_client,
    get_admin_context,
    is_admin_claims,
    read_token_claims,
)
from ..vaccine_store import PROFILE_COLUMNS
from .feedback import FEEDBACK_COLUMNS

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])
logger = logging.getLogger(__name__)

RECENT_REGISTRATION_DAYS = 30


def admin_supabase() -> SupabaseClient:
    return get_admin_client()


def get_reminder_scheduler(request: Request) -> ReminderScheduler:
    scheduler = getattr(request.app.state, "reminder_scheduler", None)
    if scheduler is None:
        try:
            scheduler = build_scheduler(CONFIG)
        except RuntimeError as exc:
            logger.warning("reminder scheduler unavailable: %s", exc)
            raise HTTPException(status_code=503, detail="Reminder scheduler unavailable") from exc
        request.app.state.reminder_scheduler = scheduler
    return scheduler


def get_reminder_mailer() -> ReminderMailer:
    return ReminderMailer(CONFIG)


@router.get("/check")
async def admin_check(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    payload = await read_token_claims(authorization)
    if payload is None:
        return {"is_admin": False}
    return {
        "is_admin": is_admin_claims(payload, CONFIG.admin_email),
        "user_email": payload.get("email"),
    }


@router.get("/stats")
async def admin_stats(
    _admin: AuthContext = Depends(get_admin_context),
    supabase: SupabaseClient = Depends(admin_supabase),
) -> Dict[str, int]:
    since = datetime.now(timezone.utc) - timedelta(days=RECENT_REGISTRATION_DAYS)
    owners = await supabase.select("baby_profiles", params={"select": "user_id"})
    stats = {
        "total_babies": await supabase.count("baby_profiles"),
        "total_users": len({row.get("user_id") for row in owners if row.get("user_id")}),
        "total_vaccines": await supabase.count("vaccines"),
        "total_growth_records": await supabase.count("growth_records"),
        "recent_registrations": await supabase.count(
            "baby_profiles", params={"created_at": f"gte.{since.isoformat()}"}
        ),
    }
    logger.info("admin stats computed", extra=stats)
    return stats


@router.get("/babies")
async def admin_babies(
    _admin: AuthContext = Depends(get_admin_context),
    supabase: SupabaseClient = Depends(admin_supabase),
) -> List[Dict[str, Any]]:
    return await supabase.select(
        "baby_profiles",
        params={"select": PROFILE_COLUMNS, "order": "created_at.desc"},
    )


@router.get("/feedbacks", response_model=List[Feedback])
async def admin_feedbacks(
    _admin: AuthContext = Depends(get_admin_context),
    supabase: SupabaseClient = Depends(admin_supabase),
) -> List[Feedback]:
    rows = await supabase.select(
        "feedbacks",
        params={"select": FEEDBACK_COLUMNS, "order": "created_at.desc"},
    )
    return [Feedback.model_validate(row) for row in rows]


@router.post("/reminders/run", response_model=ReminderScanReport)
async def run_reminders_now(
    admin: AuthContext = Depends(get_admin_context),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
) -> ReminderScanReport:
    logger.info("manual reminder scan requested", extra={"user_id": admin.user_id})
    report = await scheduler.run_once()
    if report is None:
        raise HTTPException(status_code=409, detail="A reminder scan is already running")
    return report


@router.get("/email/verify")
async def verify_email_service(
    _admin: AuthContext = Depends(get_admin_context),
    mailer: ReminderMailer = Depends(get_reminder_mailer),
) -> Dict[str, bool]:
    return {"configured": mailer.configured, "ok": await mailer.verify()}
