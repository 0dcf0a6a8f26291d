"""Pydantic schemas shared across the API."""
from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class VaccineStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"


class DisplayStatus(str, Enum):
    """Badge shown for a vaccine; derived from the stored status and today's date."""

    PENDING = "Pending"
    DUE_TODAY = "Due Today"
    OVERDUE = "Overdue"
    COMPLETED = "Completed"


class VaccineRecord(BaseModel):
    id: str
    user_id: str
    vaccine_name: str
    due_date: date
    status: VaccineStatus
    reminder_sent: bool = False
    created_at: Optional[datetime] = None


class NewVaccine(BaseModel):
    user_id: str
    vaccine_name: str = Field(..., min_length=1)
    due_date: date
    status: VaccineStatus = VaccineStatus.PENDING
    reminder_sent: bool = False

    def to_row(self) -> dict:
        return {
            "user_id": self.user_id,
            "vaccine_name": self.vaccine_name,
            "due_date": self.due_date.isoformat(),
            "status": self.status.value,
            "reminder_sent": self.reminder_sent,
        }


class VaccineUpdate(BaseModel):
    """Owner edits to a vaccine. Only the fields that were set are written."""

    vaccine_name: Optional[str] = None
    due_date: Optional[date] = None
    status: Optional[VaccineStatus] = None


class VaccineView(VaccineRecord):
    display_status: DisplayStatus
    calendar_url: str


class CompletionResult(BaseModel):
    completed: VaccineRecord
    next_dose: Optional[VaccineRecord] = None
    next_dose_error: Optional[str] = None


class VaccineSummary(BaseModel):
    pending_count: int = 0
    completed_count: int = 0
    overdue_count: int = 0
    due_today_count: int = 0
    upcoming: Optional[VaccineRecord] = None


class ReminderScanReport(BaseModel):
    scanned_on: date
    candidates: int = 0
    sent: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


class BabyProfile(BaseModel):
    id: str
    user_id: str
    baby_name: str
    birth_date: date
    gender: str
    photo_url: Optional[str] = None
    created_at: Optional[datetime] = None


class GrowthRecord(BaseModel):
    id: str
    user_id: str
    date: dt.date
    height: int = Field(description="Height in centimeters")
    weight: int = Field(description="Weight in grams")


class ChatMessage(BaseModel):
    id: str
    user_id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: Optional[datetime] = None


class ChatRequest(BaseModel):
    content: str = Field(..., min_length=1, description="Question from the parent")


class ChatResponse(BaseModel):
    user_message: ChatMessage
    ai_message: ChatMessage


class Feedback(BaseModel):
    id: str
    user_id: Optional[str] = None
    name: str
    email: str
    rating: int = Field(..., ge=1, le=5)
    message: str
    created_at: Optional[datetime] = None


class DashboardResponse(BaseModel):
    profile: Optional[BabyProfile] = None
    age_months: Optional[int] = None
    vaccines: VaccineSummary
    latest_growth: Optional[GrowthRecord] = None
    recent_growth: List[GrowthRecord] = Field(default_factory=list)
