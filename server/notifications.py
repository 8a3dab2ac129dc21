"""
Webhook Notifications

Posts Discord-style embeds for operator-facing events (failed generations,
created quizzes). Delivery is fire-and-forget: notify() schedules a background
task and returns immediately; delivery failures are logged, never raised.
"""

import asyncio
from typing import Optional, Set

import aiohttp

from config import config, get_logger
from pipeline.protocols import NotificationEvent, Notifier, NullNotifier
from vendors.session_manager_async import AsyncSessionManager

logger = get_logger(__name__).bind(component="notifications")

NOTIFIER_USERNAME = "QuizBuilderAI Notifier"

LEVEL_COLOURS = {
    "error": 0xFF0000,
    "warning": 0xFFA500,
    "success": 0x4CAF50,
    "info": 0x2196F3,
}


def build_payload(event: NotificationEvent) -> dict:
    """Discord webhook body for an event"""
    embed = {
        "title": event.title,
        "description": event.description,
        "color": LEVEL_COLOURS.get(event.level, LEVEL_COLOURS["info"]),
        "timestamp": event.timestamp.isoformat(),
    }
    if event.fields:
        embed["fields"] = [
            {"name": name, "value": str(value), "inline": True}
            for name, value in event.fields.items()
        ]
    return {"username": NOTIFIER_USERNAME, "embeds": [embed]}


class WebhookNotifier:
    """Notifier that posts to a Discord-compatible webhook URL"""

    def __init__(self, url: str, session: Optional[aiohttp.ClientSession] = None):
        if not url:
            raise ValueError("webhook URL cannot be empty")
        self.url = url
        self._session = session
        self._pending: Set[asyncio.Task] = set()

    def notify(self, event: NotificationEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("no running event loop, dropping notification", title=event.title)
            return

        task = loop.create_task(self.send(event))
        # Keep a reference until done so the task is not garbage collected mid-flight
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def send(self, event: NotificationEvent) -> bool:
        """Deliver one event; returns True on a 2xx response"""
        payload = build_payload(event)
        try:
            session = self._session or await AsyncSessionManager.get_session("webhook", timeout_total=5)
            async with session.post(self.url, json=payload) as response:
                if response.status >= 300:
                    body = await response.text()
                    logger.error(
                        "notification rejected",
                        status=response.status,
                        body=body[:500],
                        title=event.title
                    )
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("failed to send notification", error=str(e), error_type=type(e).__name__, title=event.title)
            return False

        logger.info("sent notification", title=event.title)
        return True

    async def drain(self) -> None:
        """Wait for in-flight notifications (shutdown and tests)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def create_notifier(url: Optional[str] = None) -> Notifier:
    """Webhook notifier for the configured URL, NullNotifier when unset"""
    url = config.NOTIFY_WEBHOOK_URL if url is None else url
    if not url:
        logger.info("notification webhook not configured, notifications disabled")
        return NullNotifier()
    return WebhookNotifier(url)
