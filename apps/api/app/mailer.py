"""SMTP delivery for vaccine reminder e-mails."""
from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from datetime import date
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
from typing import Optional

from .config import AppConfig

logger = logging.getLogger(__name__)


class DeliveryError(RuntimeError):
    pass


@dataclass(frozen=True)
class VaccineReminder:
    address: str
    display_name: str
    vaccine_name: str
    due_date: date


def _long_date(value: date) -> str:
    return f"{value:%A, %B} {value.day}, {value.year}"


def _schedule_url(settings: AppConfig) -> str:
    return f"{settings.app_base_url.rstrip('/')}/vaccines"


def render_text_body(reminder: VaccineReminder, settings: AppConfig) -> str:
    name = reminder.display_name
    return (
        f"Vaccine Reminder for {name}\n"
        "\n"
        f"Vaccine: {reminder.vaccine_name}\n"
        f"Due Date: {_long_date(reminder.due_date)}\n"
        "\n"
        f"Please schedule an appointment with your pediatrician to ensure {name} "
        "receives this important vaccination on time.\n"
        "\n"
        f"Visit {_schedule_url(settings)} to view your complete vaccine schedule.\n"
        "\n"
        "- BabyTrack Team\n"
    )


def render_html_body(reminder: VaccineReminder, settings: AppConfig) -> str:
    name = escape(reminder.display_name)
    vaccine = escape(reminder.vaccine_name)
    url = escape(_schedule_url(settings), quote=True)
    return f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
      <h1 style="color: #667eea;">Vaccine Reminder</h1>
      <p>Hello,</p>
      <p>This is a friendly reminder that <strong>{name}</strong> has an upcoming vaccine due soon!</p>
      <div style="background: #fff; padding: 20px; border-left: 4px solid #667eea;">
        <p><strong>Vaccine:</strong> {vaccine}</p>
        <p><strong>Due Date:</strong> {_long_date(reminder.due_date)}</p>
        <p><strong>Baby:</strong> {name}</p>
      </div>
      <p>Please schedule an appointment with your pediatrician to ensure {name} receives this important vaccination on time.</p>
      <p><a href="{url}">View Vaccine Schedule</a></p>
      <p style="color: #666; font-size: 12px;">This is an automated reminder from BabyTrack</p>
    </div>
  </body>
</html>
"""


def compose_reminder_email(reminder: VaccineReminder, settings: AppConfig) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = f"Vaccine Reminder: {reminder.vaccine_name} for {reminder.display_name}"
    message["From"] = formataddr((settings.email_from_name, settings.smtp_username or ""))
    message["To"] = reminder.address
    message.set_content(render_text_body(reminder, settings))
    message.add_alternative(render_html_body(reminder, settings), subtype="html")
    return message


class ReminderMailer:
    def __init__(self, settings: AppConfig) -> None:
        self.settings = settings

    @property
    def password(self) -> Optional[str]:
        # Gmail app passwords are often pasted with spaces.
        raw = self.settings.smtp_password
        return raw.replace(" ", "") if raw else None

    @property
    def configured(self) -> bool:
        return bool(self.settings.smtp_username and self.password)

    def _connect(self) -> smtplib.SMTP:
        host, port = self.settings.smtp_host, self.settings.smtp_port
        if port == 465:
            return smtplib.SMTP_SSL(host, port, timeout=30)
        server = smtplib.SMTP(host, port, timeout=30)
        try:
            server.starttls()
        except (smtplib.SMTPException, OSError):
            server.close()
            raise
        return server

    def _deliver(self, message: EmailMessage) -> None:
        with self._connect() as server:
            server.login(self.settings.smtp_username, self.password)
            server.send_message(message)

    def _login_only(self) -> None:
        with self._connect() as server:
            server.login(self.settings.smtp_username, self.password)

    async def send(self, reminder: VaccineReminder) -> None:
        if not self.configured:
            raise DeliveryError("Email delivery is not configured (EMAIL_USER/EMAIL_PASSWORD).")
        message = compose_reminder_email(reminder, self.settings)
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP delivery to {reminder.address} failed: {exc}") from exc
        logger.info(
            "vaccine reminder email sent",
            extra={"to": reminder.address, "vaccine_name": reminder.vaccine_name},
        )

    async def verify(self) -> bool:
        if not self.configured:
            return False
        try:
            await asyncio.to_thread(self._login_only)
        except (smtplib.SMTPException, OSError):
            logger.exception("Email service check failed")
            return False
        return True
