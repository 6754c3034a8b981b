"""Outbound credential notifications.

Registration hands a message to a Notifier and moves on. QueueNotifier delivers it
from a background task through an EmailSender; delivery failures are logged and
never reach the caller that queued the message.
"""

from __future__ import annotations

import asyncio
import smtplib
from abc import ABC, abstractmethod
from contextlib import suppress
from dataclasses import dataclass
from email.message import EmailMessage
from typing import List, Optional

from core.errors import NotifyError
from utils.config import Settings
from utils.logger import get_logger

_logger = get_logger(__name__)

CREDENTIALS_SUBJECT = "Your E-Commerce Account Credentials"


@dataclass(frozen=True)
class CredentialsMessage:
    to: str
    subject: str
    body: str

    @classmethod
    def for_account(cls, full_name: str, email: str, user_id: str, pin: str) -> "CredentialsMessage":
        return cls(
            to=email,
            subject=CREDENTIALS_SUBJECT,
            body=f"Hello {full_name},\nUser ID: {user_id}\nPIN: {pin}",
        )


class EmailSender(ABC):
    """Delivers one message or raises NotifyError."""

    @abstractmethod
    async def send(self, message: CredentialsMessage) -> None: ...


class LogEmailSender(EmailSender):
    """Development sender: writes the message to the log instead of mailing it."""

    async def send(self, message: CredentialsMessage) -> None:
        _logger.info(f"Email to {message.to}: {message.subject}")
        _logger.debug(message.body)


class MemoryEmailSender(EmailSender):
    """Keeps sent messages in memory for test assertions."""

    def __init__(self):
        self.sent: List[CredentialsMessage] = []
        self.should_fail = False

    async def send(self, message: CredentialsMessage) -> None:
        if self.should_fail:
            raise NotifyError("Email delivery failed")
        self.sent.append(message)


class SmtpEmailSender(EmailSender):
    """Sends through an SMTP-over-SSL relay; the blocking client runs in a worker thread."""

    def __init__(self, host: str, port: int, user: str, password: str, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    def _send_blocking(self, message: CredentialsMessage) -> None:
        email = EmailMessage()
        email["From"] = self.user
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)
        with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as client:
            if self.user:
                client.login(self.user, self.password)
            client.send_message(email)

    async def send(self, message: CredentialsMessage) -> None:
        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotifyError(f"SMTP delivery to {message.to} failed: {exc}") from exc


def build_sender(settings: Settings) -> EmailSender:
    if settings.email_backend == "smtp":
        return SmtpEmailSender(
            settings.smtp_host, settings.smtp_port, settings.email_user, settings.email_pass
        )
    if settings.email_backend == "log":
        return LogEmailSender()
    raise ValueError(f"Unknown email backend: {settings.email_backend}")


class Notifier(ABC):
    @abstractmethod
    def notify(self, message: CredentialsMessage) -> None:
        """Accept a message for delivery without waiting on it."""


class QueueNotifier(Notifier):
    def __init__(self, sender: EmailSender):
        self.sender = sender
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    def _ensure_worker(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())
        return self._queue

    def notify(self, message: CredentialsMessage) -> None:
        self._ensure_worker().put_nowait(message)

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.sender.send(message)
                _logger.info(f"Credentials delivered to {message.to}")
            except NotifyError as exc:
                _logger.warning(f"Credentials not delivered to {message.to}: {exc.message}")
            except Exception:
                _logger.exception(f"Email sender crashed while delivering to {message.to}")
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued message has been attempted."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            with suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
