"""Outbound email notifications, delivered off the request path."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol
from urllib.parse import quote

from identity_service.config import settings

logger = logging.getLogger(__name__)

PASSWORD_RESET_TEMPLATE = "PASSWORD_RESET"


@dataclass(frozen=True)
class EmailNotificationEvent:
    recipient_email: str
    subject: str
    template_code: str
    variables: Dict[str, str] = field(default_factory=dict)


class NotificationChannel(Protocol):
    def send(self, event: EmailNotificationEvent) -> None:
        ...


def redact_email(email: str) -> str:
    """Redact an email address for logging to avoid PII leakage."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class LoggingNotificationChannel:
    """Dev channel: log the event instead of handing it to a mail service."""

    def send(self, event: EmailNotificationEvent) -> None:
        logger.info(
            "Email notification %s to %s (subject=%r)",
            event.template_code,
            redact_email(event.recipient_email),
            event.subject,
        )


class NotificationPublisher:
    """Fire-and-forget publisher; delivery errors are logged, never raised."""

    def __init__(
        self,
        channel: NotificationChannel,
        executor: Optional[Executor] = None,
        frontend_url: str = settings.FRONTEND_URL,
    ) -> None:
        self.channel = channel
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(1, settings.NOTIFICATION_WORKERS),
            thread_name_prefix="notification",
        )
        self.frontend_url = frontend_url.rstrip("/")

    def publish(self, event: EmailNotificationEvent) -> None:
        try:
            self._executor.submit(self._deliver, event)
        except RuntimeError:
            # Executor already shut down.
            logger.exception("Could not schedule %s notification", event.template_code)

    def _deliver(self, event: EmailNotificationEvent) -> None:
        try:
            self.channel.send(event)
        except Exception:
            logger.exception(
                "Failed to send %s notification to %s",
                event.template_code,
                redact_email(event.recipient_email),
            )

    def send_forgot_password_email(self, email: str, token: str) -> None:
        self.publish(
            EmailNotificationEvent(
                recipient_email=email,
                subject="Reset your Password",
                template_code=PASSWORD_RESET_TEMPLATE,
                variables={
                    "token": token,
                    "resetLink": f"{self.frontend_url}/reset-password?token={quote(token)}",
                },
            )
        )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


notification_publisher = NotificationPublisher(LoggingNotificationChannel())
