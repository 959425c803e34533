"""Tests for best-effort mail delivery."""

from __future__ import annotations

import asyncio
import logging
import unittest
from unittest import mock

from clubsite.config import MailSettings
from clubsite.mail import LogMailer, MailDispatcher, SMTPMailer, build_mailer


class _RecordingMailer:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append((to, subject, body))


class _FailingMailer:
    def send(self, to: str, subject: str, body: str) -> None:
        raise ConnectionRefusedError("smtp is down")


class MailDispatcherTests(unittest.TestCase):
    def test_dispatch_delivers_in_background(self) -> None:
        mailer = _RecordingMailer()
        dispatcher = MailDispatcher(mailer)

        async def scenario() -> None:
            dispatcher.dispatch("a@example.org", "Hello", "Body")
            await dispatcher.wait_idle()

        asyncio.run(scenario())
        self.assertEqual(mailer.sent, [("a@example.org", "Hello", "Body")])

    def test_failures_are_logged_not_raised(self) -> None:
        dispatcher = MailDispatcher(_FailingMailer())

        async def scenario() -> None:
            dispatcher.dispatch("a@example.org", "Hello", "Body")
            await dispatcher.wait_idle()

        with self.assertLogs("clubsite.mail", level=logging.WARNING) as captured:
            asyncio.run(scenario())
        self.assertIn("smtp is down", captured.output[0])


class BuildMailerTests(unittest.TestCase):
    def test_without_host_only_logs(self) -> None:
        self.assertIsInstance(build_mailer(MailSettings()), LogMailer)

    def test_smtp_mailer_sends_message(self) -> None:
        settings = MailSettings(host="smtp.example.org", port=2525, username="bot", password="pw")
        mailer = build_mailer(settings)
        self.assertIsInstance(mailer, SMTPMailer)

        with mock.patch("clubsite.mail.smtplib.SMTP") as smtp_cls:
            mailer.send("a@example.org", "Subject line", "Body text")

        smtp_cls.assert_called_once_with("smtp.example.org", 2525, timeout=10.0)
        smtp = smtp_cls.return_value.__enter__.return_value
        smtp.starttls.assert_called_once_with()
        smtp.login.assert_called_once_with("bot", "pw")
        message = smtp.send_message.call_args.args[0]
        self.assertEqual(message["To"], "a@example.org")
        self.assertEqual(message["Subject"], "Subject line")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
