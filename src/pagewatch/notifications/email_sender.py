from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

import aiohttp
from pydantic import BaseModel

from pagewatch.main.aiohttp_client import aiohttp_client
from pagewatch.main.logging import get_logger
from pagewatch.notifications.digest import digest_subject, render_digest_html

if TYPE_CHECKING:
    from pagewatch.jobs.job import Item
    from pagewatch.main.config import Settings

logger = get_logger(__name__)


class NotificationResult(BaseModel):
    success: bool
    error: Optional[str] = None


class Notifier(ABC):
    @abstractmethod
    async def send_digest(self, groups: dict[str, list[Item]]) -> NotificationResult:
        """Send one digest covering every group. Failures are reported, not raised."""


class ResendEmailNotifier(Notifier):
    """Sends the digest through the Resend e-mail API."""

    def __init__(
        self,
        settings: Settings,
        session_provider: Callable[[], aiohttp.ClientSession] = aiohttp_client,
    ) -> None:
        self._settings = settings
        self._session_provider = session_provider

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.resend_api_key and self._settings.notification_recipients)

    async def send_digest(self, groups: dict[str, list[Item]]) -> NotificationResult:
        if not self.is_configured:
            logger.info("Email not configured, skipping digest")
            return NotificationResult(success=False, error="Email not configured")

        total = sum(len(items) for items in groups.values())
        if total == 0:
            return NotificationResult(success=True)

        payload = {
            "from": self._settings.email_from,
            "to": self._settings.notification_recipients,
            "subject": digest_subject(self._settings.email_subject, total),
            "html": render_digest_html(groups),
        }
        headers = {"Authorization": f"Bearer {self._settings.resend_api_key}"}

        try:
            session = self._session_provider()
            async with session.post(
                self._settings.resend_api_url, json=payload, headers=headers
            ) as response:
                data = await response.json(content_type=None)
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.exception("Failed to send digest email")
            return NotificationResult(success=False, error=f"{type(e).__name__}: {e}")

        if status >= 400:
            message = (data or {}).get("message") or f"Email API returned {status}"
            logger.error(
                "Email API rejected digest",
                extra={"status_code": status, "error": message},
            )
            return NotificationResult(success=False, error=message)

        logger.info(
            "Sent digest email",
            extra={"item_count": total, "email_id": (data or {}).get("id")},
        )
        return NotificationResult(success=True)
