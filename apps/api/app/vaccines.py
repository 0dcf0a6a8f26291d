"""Vaccine lifecycle: display status, ordering, and next-dose scheduling."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional
from urllib.parse import quote, urlencode

from dateutil.relativedelta import relativedelta

from .schemas import (
    CompletionResult,
    DisplayStatus,
    NewVaccine,
    VaccineRecord,
    VaccineStatus,
    VaccineSummary,
    VaccineUpdate,
    VaccineView,
)

logger = logging.getLogger(__name__)

# "<name> (Dose <int>)" with the parenthetical closing the label.
_DOSE_SUFFIX = re.compile(r"\(\s*dose\s+(?P<number>\d+)\s*\)\s*$", re.IGNORECASE)

GOOGLE_CALENDAR_URL = "https://calendar.google.com/calendar/render"
CALENDAR_LOCATION = "Pediatric Clinic"


class InvalidStatusTransition(ValueError):
    pass


@dataclass(frozen=True)
class DoseLabel:
    prefix: str
    number: Optional[int]


def parse_dose_label(name: str) -> DoseLabel:
    match = _DOSE_SUFFIX.search(name)
    if not match:
        return DoseLabel(prefix=name, number=None)
    return DoseLabel(prefix=name[: match.start()], number=int(match.group("number")))


def next_dose_name(name: str) -> str:
    """Return the label for the dose after ``name``.

    ``"Hepatitis B (Dose 2)"`` becomes ``"Hepatitis B (Dose 3)"``; a label
    without a dose suffix gets ``" (Dose 2)"`` appended.
    """
    label = parse_dose_label(name)
    if label.number is None:
        return f"{name} (Dose 2)"
    return f"{label.prefix}(Dose {label.number + 1})"


def next_due_date(due_date: date) -> date:
    # relativedelta clamps to the last day of a shorter month (Jan 31 -> Feb 28/29).
    return due_date + relativedelta(months=1)


def derive_display_status(due_date: date, status: VaccineStatus, today: date) -> DisplayStatus:
    if status == VaccineStatus.COMPLETED:
        return DisplayStatus.COMPLETED
    if due_date == today:
        return DisplayStatus.DUE_TODAY
    if due_date < today:
        return DisplayStatus.OVERDUE
    return DisplayStatus.PENDING


def sort_for_display(records: Iterable[VaccineRecord]) -> List[VaccineRecord]:
    return sorted(
        records,
        key=lambda record: (record.status == VaccineStatus.COMPLETED, record.due_date),
    )


def select_upcoming(records: Iterable[VaccineRecord], today: date) -> Optional[VaccineRecord]:
    # Doses due today still count as upcoming; overdue ones do not.
    for record in sort_for_display(records):
        if record.status == VaccineStatus.PENDING and record.due_date >= today:
            return record
    return None


def summarize(records: Iterable[VaccineRecord], today: date) -> VaccineSummary:
    items = list(records)
    summary = VaccineSummary(upcoming=select_upcoming(items, today))
    for record in items:
        if record.status == VaccineStatus.COMPLETED:
            summary.completed_count += 1
            continue
        summary.pending_count += 1
        display = derive_display_status(record.due_date, record.status, today)
        if display == DisplayStatus.OVERDUE:
            summary.overdue_count += 1
        elif display == DisplayStatus.DUE_TODAY:
            summary.due_today_count += 1
    return summary


def build_calendar_link(record: VaccineRecord) -> str:
    start = datetime.combine(record.due_date, time(0, 0), tzinfo=timezone.utc)
    end = start + timedelta(hours=1)
    fmt = "%Y%m%dT%H%M%SZ"
    params = {
        "action": "TEMPLATE",
        "text": f"Vaccine: {record.vaccine_name}",
        "details": (
            f"Vaccine appointment for {record.vaccine_name}. "
            "Don't forget to bring your baby's vaccination card!"
        ),
        "location": CALENDAR_LOCATION,
        "dates": f"{start.strftime(fmt)}/{end.strftime(fmt)}",
    }
    return f"{GOOGLE_CALENDAR_URL}?{urlencode(params, quote_via=quote, safe='/')}"


def to_view(record: VaccineRecord, today: date) -> VaccineView:
    return VaccineView(
        **record.model_dump(),
        display_status=derive_display_status(record.due_date, record.status, today),
        calendar_url=build_calendar_link(record),
    )


def plan_next_dose(record: VaccineRecord) -> NewVaccine:
    return NewVaccine(
        user_id=record.user_id,
        vaccine_name=next_dose_name(record.vaccine_name),
        due_date=next_due_date(record.due_date),
        status=VaccineStatus.PENDING,
        reminder_sent=False,
    )


def build_update_payload(existing: VaccineRecord, update: VaccineUpdate) -> dict:
    """Translate an owner edit into a row patch.

    Owner, id and reminder flag are never part of the patch, and a completed
    dose cannot go back to pending.
    """
    fields = update.model_fields_set
    payload: dict = {}
    if "vaccine_name" in fields:
        name = (update.vaccine_name or "").strip()
        if not name:
            raise ValueError("vaccine_name cannot be empty")
        payload["vaccine_name"] = name
    if "due_date" in fields:
        if update.due_date is None:
            raise ValueError("due_date cannot be empty")
        payload["due_date"] = update.due_date.isoformat()
    if "status" in fields and update.status is not None:
        if existing.status == VaccineStatus.COMPLETED and update.status == VaccineStatus.PENDING:
            raise InvalidStatusTransition("A completed vaccine cannot be reopened")
        if update.status != existing.status:
            payload["status"] = update.status.value
    return payload


async def complete_vaccine(
    store,
    record: VaccineRecord,
    *,
    create_next_dose: bool = True,
) -> CompletionResult:
    """Mark ``record`` completed and, optionally, schedule the following dose.

    The completion is the primary action: if creating the next dose fails the
    error is logged and returned in ``next_dose_error`` while the completed
    record stays completed.
    """
    if record.status == VaccineStatus.COMPLETED:
        raise InvalidStatusTransition("Vaccine is already completed")
    completed = await store.mark_completed(record.id, record.user_id)
    if completed is None:
        raise InvalidStatusTransition("Vaccine is already completed")

    result = CompletionResult(completed=completed)
    if not create_next_dose:
        return result

    planned = plan_next_dose(completed)
    try:
        result.next_dose = await store.create(planned)
    except Exception as exc:
        logger.exception(
            "Failed to schedule next dose",
            extra={"vaccine_id": completed.id, "next_name": planned.vaccine_name},
        )
        result.next_dose_error = str(getattr(exc, "detail", None) or exc) or exc.__class__.__name__
    else:
        logger.info(
            "scheduled next dose",
            extra={
                "vaccine_id": completed.id,
                "next_vaccine_id": result.next_dose.id,
                "next_due_date": planned.due_date.isoformat(),
            },
        )
    return result
