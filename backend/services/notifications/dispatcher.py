"""Outbound account notifications (verification, welcome, password reset)."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Protocol
from urllib.parse import urlencode

from core import settings

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    async def send_verification(
        self,
        email: str,
        verification_token: str,
        session_token: str,
    ) -> None: ...

    async def send_welcome(self, email: str, first_name: str) -> None: ...

    async def send_password_reset(self, email: str, reset_token: str) -> None: ...


class LoggingNotificationDispatcher:
    """Renders notification links and writes them to the application log.

    Stands in for an email transport, which lives outside this service.
    """

    def __init__(self, frontend_url: str | None = None) -> None:
        self.frontend_url = (frontend_url or settings.frontend_url).rstrip("/")

    def verification_link(self, verification_token: str, session_token: str) -> str:
        query = urlencode({"token": verification_token, "session": session_token})
        return f"{self.frontend_url}/register/verify-email?{query}"

    def password_reset_link(self, reset_token: str) -> str:
        return f"{self.frontend_url}/reset-password?{urlencode({'token': reset_token})}"

    async def send_verification(
        self,
        email: str,
        verification_token: str,
        session_token: str,
    ) -> None:
        link = self.verification_link(verification_token, session_token)
        logger.info("Verification email for %s: %s", email, link)

    async def send_welcome(self, email: str, first_name: str) -> None:
        logger.info("Welcome email for %s (%s)", email, first_name)

    async def send_password_reset(self, email: str, reset_token: str) -> None:
        logger.info("Password reset email for %s: %s", email, self.password_reset_link(reset_token))


async def dispatch_safely(send: Awaitable[None], *, description: str) -> bool:
    """Await a best-effort send; failures are logged and reported as False."""
    try:
        await send
    except Exception:
        logger.warning("Failed to send %s", description, exc_info=True)
        return False
    return True


_cached_dispatcher: NotificationDispatcher | None = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Singleton accessor for the configured dispatcher."""
    global _cached_dispatcher
    if _cached_dispatcher is None:
        _cached_dispatcher = LoggingNotificationDispatcher()
    return _cached_dispatcher


def set_notification_dispatcher(dispatcher: NotificationDispatcher | None) -> None:
    """Override the cached dispatcher (primarily for tests)."""
    global _cached_dispatcher
    _cached_dispatcher = dispatcher
