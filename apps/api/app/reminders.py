"""Vaccine reminder scanning and the recurring scheduler that drives it.

A scan selects pending vaccines that have not been reminded yet and are due
between today and ``today + horizon_days`` (both inclusive). Each record is
handled on its own: resolve the baby's name, resolve the owner's e-mail,
send, then flip ``reminder_sent``. Any miss or failure leaves the flag unset
so the next scan retries the record until its due date passes.

The scheduler keeps no cross-process lock. Run it in one process only.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import date, datetime
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from .config import CONFIG, AppConfig
from .mailer import ReminderMailer, VaccineReminder
from .schemas import ReminderScanReport, VaccineRecord, VaccineStatus
from .supabase import get_admin_client
from .vaccine_store import ContactDirectory, ProfileDirectory, VaccineStore

logger = logging.getLogger(__name__)

REMINDER_HORIZON_DAYS = 3
REMINDER_INTERVAL_SECONDS = 60 * 60


def today_in(timezone_name: str) -> date:
    return datetime.now(ZoneInfo(timezone_name)).date()


def current_date() -> date:
    return today_in(CONFIG.reminder_timezone)


def is_reminder_candidate(
    record: VaccineRecord,
    today: date,
    horizon_days: int = REMINDER_HORIZON_DAYS,
) -> bool:
    if record.status != VaccineStatus.PENDING or record.reminder_sent:
        return False
    return 0 <= (record.due_date - today).days <= horizon_days


async def _dispatch_reminder(
    record: VaccineRecord,
    *,
    store: VaccineStore,
    profiles: ProfileDirectory,
    contacts: ContactDirectory,
    sender: ReminderMailer,
) -> bool:
    log_context = {"vaccine_id": record.id, "user_id": record.user_id}
    display_name = await profiles.get_display_name(record.user_id)
    if not display_name:
        logger.warning("skipping reminder: no baby profile", extra=log_context)
        return False
    address = await contacts.get_email(record.user_id)
    if not address:
        logger.warning("skipping reminder: no contact email", extra=log_context)
        return False

    await sender.send(
        VaccineReminder(
            address=address,
            display_name=display_name,
            vaccine_name=record.vaccine_name,
            due_date=record.due_date,
        )
    )
    marked = await store.mark_reminder_sent(record.id, record.user_id)
    if not marked:
        logger.warning("reminder sent but flag already set or record gone", extra=log_context)
    logger.info(
        "vaccine reminder sent",
        extra={**log_context, "vaccine_name": record.vaccine_name, "due_date": record.due_date.isoformat()},
    )
    return True


async def run_reminder_scan(
    *,
    store: VaccineStore,
    profiles: ProfileDirectory,
    contacts: ContactDirectory,
    sender: ReminderMailer,
    today: date,
    horizon_days: int = REMINDER_HORIZON_DAYS,
) -> ReminderScanReport:
    report = ReminderScanReport(scanned_on=today)
    try:
        records = await store.list_reminder_candidates(today, horizon_days)
    except Exception:
        logger.exception("Failed to load reminder candidates", extra={"today": today.isoformat()})
        return report

    candidates = [record for record in records if is_reminder_candidate(record, today, horizon_days)]
    report.candidates = len(candidates)
    if not candidates:
        logger.info("no upcoming vaccines need reminders", extra={"today": today.isoformat()})
        return report

    for record in candidates:
        try:
            sent = await _dispatch_reminder(
                record,
                store=store,
                profiles=profiles,
                contacts=contacts,
                sender=sender,
            )
        except Exception:
            logger.exception(
                "Failed to send vaccine reminder",
                extra={"vaccine_id": record.id, "user_id": record.user_id},
            )
            report.failed.append(record.id)
            continue
        if sent:
            report.sent.append(record.id)
        else:
            report.skipped.append(record.id)

    logger.info(
        "vaccine reminder scan completed",
        extra={
            "today": today.isoformat(),
            "candidates": report.candidates,
            "sent": len(report.sent),
            "skipped": len(report.skipped),
            "failed": len(report.failed),
        },
    )
    return report


class ReminderScheduler:
    """Runs a reminder scan at start and then every ``interval_seconds``.

    ``today`` and ``sleep`` are injectable so tests can drive passes without
    waiting on the wall clock. Overlapping scans are not allowed: a call to
    :meth:`run_once` while another scan is in flight returns ``None``.
    """

    def __init__(
        self,
        *,
        store: VaccineStore,
        profiles: ProfileDirectory,
        contacts: ContactDirectory,
        sender: ReminderMailer,
        interval_seconds: float = REMINDER_INTERVAL_SECONDS,
        horizon_days: int = REMINDER_HORIZON_DAYS,
        today: Optional[Callable[[], date]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.profiles = profiles
        self.contacts = contacts
        self.sender = sender
        self.interval_seconds = interval_seconds
        self.horizon_days = horizon_days
        self._today = today or date.today
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Optional[ReminderScanReport]:
        if self._lock.locked():
            logger.info("reminder scan already in progress, skipping")
            return None
        async with self._lock:
            return await run_reminder_scan(
                store=self.store,
                profiles=self.profiles,
                contacts=self.contacts,
                sender=self.sender,
                today=self._today(),
                horizon_days=self.horizon_days,
            )

    async def _run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Vaccine reminder scan crashed")
            await self._sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        logger.info(
            "starting vaccine reminder scheduler",
            extra={"interval_seconds": self.interval_seconds, "horizon_days": self.horizon_days},
        )
        self._task = asyncio.create_task(self._run_forever(), name="vaccine-reminders")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("vaccine reminder scheduler stopped")


def build_scheduler(config: AppConfig) -> ReminderScheduler:
    """Wire a scheduler to the service-role Supabase client and SMTP mailer."""
    admin = get_admin_client()
    return ReminderScheduler(
        store=VaccineStore(admin),
        profiles=ProfileDirectory(admin),
        contacts=ContactDirectory(admin),
        sender=ReminderMailer(config),
        interval_seconds=config.reminder_interval_seconds,
        horizon_days=config.reminder_horizon_days,
        today=lambda: today_in(config.reminder_timezone),
    )
