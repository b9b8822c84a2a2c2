"""Tests for the per-session notification bus."""

from __future__ import annotations

import unittest

from agentic_chat.events import CONVERSATION_RESET, CONVERSATION_UPDATED, Event, EventBus


class EventBusTests(unittest.IsolatedAsyncioTestCase):
    async def test_sync_and_async_handlers_receive_events_in_order(self) -> None:
        bus = EventBus()
        seen: list[tuple[str, Event]] = []

        def sync_handler(event: Event) -> None:
            seen.append(("sync", event))

        async def async_handler(event: Event) -> None:
            seen.append(("async", event))

        bus.subscribe(CONVERSATION_UPDATED, sync_handler)
        bus.subscribe(CONVERSATION_UPDATED, async_handler)
        await bus.publish(CONVERSATION_UPDATED, {"reason": "text"}, source="controller")

        self.assertEqual([kind for kind, _ in seen], ["sync", "async"])
        self.assertEqual(seen[0][1], Event(CONVERSATION_UPDATED, {"reason": "text"}, "controller"))

    async def test_failing_handler_does_not_reach_publisher(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        def broken(event: Event) -> None:
            raise RuntimeError("view crashed")

        bus.subscribe(CONVERSATION_RESET, broken)
        bus.subscribe(CONVERSATION_RESET, lambda event: seen.append(event.name))

        with self.assertLogs("agentic_chat.events.bus", level="ERROR") as captured:
            await bus.publish(CONVERSATION_RESET, {})

        self.assertEqual(seen, [CONVERSATION_RESET])
        self.assertIn("bus.handler_failed", "\n".join(captured.output))

    async def test_unsubscribe_and_clear(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        def handler(event: Event) -> None:
            seen.append(event.name)

        bus.subscribe(CONVERSATION_UPDATED, handler)
        bus.unsubscribe(CONVERSATION_UPDATED, handler)
        await bus.publish(CONVERSATION_UPDATED, {})

        bus.subscribe(CONVERSATION_RESET, handler)
        bus.clear()
        await bus.publish(CONVERSATION_RESET, {})

        self.assertEqual(seen, [])


if __name__ == "__main__":
    unittest.main()
