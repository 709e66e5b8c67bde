"""Proactive notifications — Slack and Telegram webhooks.

Fires when the keep-alive service looks unhealthy:
- cumulative success rate drops below ``min_success_rate``
- ``consecutive_errors`` probes in a row have failed

One alert on entering the breached state, one recovery message on leaving
it; nothing in between. Webhook failures are logged and swallowed.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from ..config import Settings
    from ..monitor.stats import StatsSnapshot

logger = logging.getLogger(__name__)


class NotifyLevel(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"
    RECOVERY = "recovery"


_EMOJI = {
    NotifyLevel.WARNING: "⚠️",
    NotifyLevel.CRITICAL: "🔴",
    NotifyLevel.RECOVERY: "✅",
}


class NotificationManager:
    """Threshold watcher plus Slack / Telegram dispatch."""

    def __init__(
        self,
        enabled: bool = False,
        min_success_rate: float = 80.0,
        consecutive_errors: int = 3,
        slack_webhook: str = "",
        telegram_token: str = "",
        telegram_chat_id: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.enabled = enabled
        self.min_success_rate = min_success_rate
        self.consecutive_errors = consecutive_errors
        self.slack_webhook = slack_webhook
        self.telegram_token = telegram_token
        self.telegram_chat_id = telegram_chat_id
        self._transport = transport
        self._breached = False

    @classmethod
    def from_settings(cls, settings: Settings) -> NotificationManager:
        return cls(
            enabled=settings.notifications_enabled,
            min_success_rate=settings.min_success_rate,
            consecutive_errors=settings.consecutive_errors,
            slack_webhook=settings.slack_webhook_url,
            telegram_token=settings.telegram_bot_token,
            telegram_chat_id=settings.telegram_chat_id,
        )

    @property
    def breached(self) -> bool:
        return self._breached

    def status(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "breached": self._breached,
            "slack_configured": bool(self.slack_webhook),
            "telegram_configured": bool(self.telegram_token and self.telegram_chat_id),
        }

    def breach_reasons(self, snapshot: StatsSnapshot) -> list[str]:
        reasons = []
        if snapshot.total_requests and snapshot.success_rate < self.min_success_rate:
            reasons.append(
                f"success rate {snapshot.success_rate}% < {self.min_success_rate}%"
            )
        if self.consecutive_errors and snapshot.consecutive_failures >= self.consecutive_errors:
            reasons.append(f"{snapshot.consecutive_failures} consecutive failed probes")
        return reasons

    async def evaluate(self, snapshot: StatsSnapshot) -> NotifyLevel | None:
        """Compare a snapshot with the thresholds; notify on transitions only."""
        if not self.enabled:
            return None

        reasons = self.breach_reasons(snapshot)
        if reasons and not self._breached:
            self._breached = True
            level = NotifyLevel.CRITICAL if snapshot.success_rate == 0 else NotifyLevel.WARNING
            text = (
                f"{_EMOJI[level]} *FanFik keep-alive alert*\n"
                + "\n".join(f"- {r}" for r in reasons)
                + f"\nTotals: {snapshot.successful_requests}/{snapshot.total_requests} ok\n"
            )
        elif not reasons and self._breached:
            self._breached = False
            level = NotifyLevel.RECOVERY
            text = (
                f"{_EMOJI[level]} *FanFik keep-alive recovered*\n"
                f"Success rate: {snapshot.success_rate}%\n"
            )
        else:
            return None

        await self._send(text)
        return level

    # -- Low-level dispatch -------------------------------------------------

    async def _send(self, text: str) -> None:
        tasks = []
        if self.slack_webhook:
            tasks.append(self._send_slack(text))
        if self.telegram_token and self.telegram_chat_id:
            tasks.append(self._send_telegram(text))
        if not tasks:
            logger.warning("Notification not delivered (no channel configured): %s", text.strip())
            return
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error("Notification dispatch crashed: %r", result)

    async def _send_slack(self, text: str) -> bool:
        return await self._post("Slack", self.slack_webhook, {"text": text, "mrkdwn": True})

    async def _send_telegram(self, text: str) -> bool:
        return await self._post(
            "Telegram",
            f"https://api.telegram.org/bot{self.telegram_token}/sendMessage",
            {"chat_id": self.telegram_chat_id, "text": text, "parse_mode": "Markdown"},
        )

    async def _post(self, channel: str, url: str, payload: dict[str, Any]) -> bool:
        """JSON POST to one channel. Delivery problems are logged, never raised."""
        try:
            async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
                resp = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("%s notification failed: %s", channel, exc)
            return False
        if resp.status_code != 200:
            logger.warning("%s returned %d: %s", channel, resp.status_code, resp.text[:200])
            return False
        logger.debug("%s notification delivered", channel)
        return True
