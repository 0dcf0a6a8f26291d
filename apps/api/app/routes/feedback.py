from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..schemas import Feedback
from ..supabase import AuthContext, get_auth_context

router = APIRouter(prefix="/api/v1", tags=["feedback"])
logger = logging.getLogger(__name__)

FEEDBACK_COLUMNS = "id,user_id,name,email,rating,message,created_at"


class FeedbackPayload(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    rating: int = Field(..., ge=1, le=5, description="Star rating, 1 to 5")
    message: str = Field(..., min_length=1)


@router.post("/feedback", response_model=Feedback)
async def create_feedback(
    payload: FeedbackPayload,
    auth: AuthContext = Depends(get_auth_context),
) -> Feedback:
    name = payload.name.strip()
    message = payload.message.strip()
    if not name or not message:
        raise HTTPException(status_code=400, detail="name and message are required")
    rows = await auth.supabase.insert(
        "feedbacks",
        {
            "user_id": auth.user_id,
            "name": name,
            "email": payload.email.strip(),
            "rating": payload.rating,
            "message": message,
        },
        params={"select": FEEDBACK_COLUMNS},
    )
    if not rows:
        raise HTTPException(status_code=500, detail="Feedback could not be saved")
    logger.info("feedback received", extra={"user_id": auth.user_id, "rating": payload.rating})
    return Feedback.model_validate(rows[0])
