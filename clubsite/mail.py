"""Outgoing mail. Delivery is best effort and never blocks a request."""
from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol, Set

import anyio

from .config import MailSettings

logger = logging.getLogger("clubsite.mail")


class Mailer(Protocol):
    def send(self, to: str, subject: str, body: str) -> None:
        ...


class LogMailer:
    """Development transport that only records the message in the log."""

    def send(self, to: str, subject: str, body: str) -> None:
        logger.info("[MAIL] To: %s Subject: %s", to, subject)


class SMTPMailer:
    def __init__(self, settings: MailSettings, *, timeout: float = 10.0) -> None:
        if not settings.host:
            raise ValueError("An SMTP host is required")
        self._settings = settings
        self._timeout = timeout

    def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._settings.sender
        message["To"] = to
        message.set_content(body)

        with smtplib.SMTP(self._settings.host, self._settings.port, timeout=self._timeout) as smtp:
            if self._settings.starttls:
                smtp.starttls()
            if self._settings.username:
                smtp.login(self._settings.username, self._settings.password or "")
            smtp.send_message(message)


def build_mailer(settings: MailSettings) -> Mailer:
    if settings.host:
        return SMTPMailer(settings)
    return LogMailer()


class MailDispatcher:
    """Run each delivery as a detached task whose failure is only logged."""

    def __init__(self, mailer: Mailer) -> None:
        self._mailer = mailer
        self._pending: Set["asyncio.Task[None]"] = set()

    @property
    def mailer(self) -> Mailer:
        return self._mailer

    def dispatch(self, to: str, subject: str, body: str) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(to, subject, body))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, to: str, subject: str, body: str) -> None:
        try:
            await anyio.to_thread.run_sync(self._mailer.send, to, subject, body)
        except Exception as exc:
            logger.warning("Mail error: %s", exc)

    async def wait_idle(self) -> None:
        """Wait for every delivery started so far."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


__all__ = ["LogMailer", "MailDispatcher", "Mailer", "SMTPMailer", "build_mailer"]
