"""Publish/subscribe bus used to tell views that conversation state changed.

Usage:
    bus = EventBus()

    async def on_updated(event):
        render(event.data["session_id"])

    bus.subscribe(CONVERSATION_UPDATED, on_updated)
    await bus.publish(CONVERSATION_UPDATED, {"session_id": "session-1"})
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


@dataclass
class Event:
    """Notification payload."""

    name: str
    data: dict[str, Any]
    source: str | None = None


class EventBus:
    """Deliver notifications to subscribers in subscription order.

    Subscriber failures are logged and never reach the publisher, so a broken
    view cannot abort a streaming turn. Each session owns its own bus.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callable]] = {}

    def subscribe(self, event_name: str, handler: Callable) -> None:
        """Register a sync or async handler for ``event_name``."""
        self._subscribers.setdefault(event_name, []).append(handler)
        LOGGER.debug("Subscribed to event: %s", event_name)

    def unsubscribe(self, event_name: str, handler: Callable) -> None:
        handlers = self._subscribers.get(event_name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    async def publish(
        self, event_name: str, data: dict[str, Any], source: str | None = None
    ) -> None:
        """Publish an event to all subscribers of ``event_name``."""
        handlers = list(self._subscribers.get(event_name, []))
        if not handlers:
            return

        event = Event(name=event_name, data=data, source=source)
        for handler in handlers:
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:  # noqa: BLE001 - subscriber bugs stay local.
                LOGGER.error(
                    "bus.handler_failed",
                    extra={
                        "event": "bus.handler_failed",
                        "event_name": event_name,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )

    def clear(self, event_name: str | None = None) -> None:
        if event_name:
            self._subscribers.pop(event_name, None)
        else:
            self._subscribers.clear()
