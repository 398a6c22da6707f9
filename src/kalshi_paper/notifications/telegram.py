"""Telegram Bot API notifications for paper trading cycle summaries."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from kalshi_paper.common.http import HttpClient
from kalshi_paper.config import get_settings
from kalshi_paper.signals.formatters import format_telegram_cycle

if TYPE_CHECKING:
    from kalshi_paper.pipeline import CycleReport

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Send cycle summaries via Telegram Bot API.

    Send errors are logged but never raised; notifications must not break
    the cycle.
    """

    def __init__(
        self,
        bot_token: str | None = None,
        chat_id: str | None = None,
    ) -> None:
        settings = get_settings()
        self._bot_token = bot_token or settings.telegram_bot_token
        self._chat_id = chat_id or settings.telegram_chat_id
        self._client: HttpClient | None = None

    @property
    def _enabled(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    async def _get_client(self) -> HttpClient:
        if self._client is None:
            self._client = HttpClient(base_url="https://api.telegram.org")
        return self._client

    async def send_message(self, text: str, parse_mode: str = "Markdown") -> bool:
        """Send a message. Returns True if it was sent."""
        if not self._enabled:
            logger.debug("Telegram not configured, skipping message")
            return False

        try:
            client = await self._get_client()
            await client.post(
                f"/bot{self._bot_token}/sendMessage",
                json={
                    "chat_id": self._chat_id,
                    "text": text,
                    "parse_mode": parse_mode,
                },
            )
            return True
        except httpx.HTTPError:
            logger.warning("Failed to send Telegram message", exc_info=True)
            return False

    async def notify_cycle(self, report: CycleReport) -> bool:
        """Format and send a cycle summary."""
        if not self._enabled:
            return False
        sent = await self.send_message(format_telegram_cycle(report))
        if sent:
            logger.info(
                "Telegram: sent cycle summary (%d signals, %d opened)",
                len(report.signals), report.batch.opened,
            )
        return sent

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
