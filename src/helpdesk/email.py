"""Outgoing email seam.

Delivery itself is outside this service; the default sender only logs.
Swap in a real transport by passing another ``EmailSender`` to
``create_app``.
"""

from __future__ import annotations

from typing import Protocol

import structlog

logger = structlog.get_logger()


class EmailSender(Protocol):
    async def send_password_reset(self, to: str, reset_link: str) -> None: ...


class LoggingEmailSender:
    """Records reset emails in the log instead of sending them."""

    async def send_password_reset(self, to: str, reset_link: str) -> None:
        # reset_link embeds the token and is never logged.
        logger.info("password_reset_email", to=to)
