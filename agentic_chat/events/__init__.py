"""Notifications published while a conversation changes."""

from .bus import Event, EventBus
from .domain import (
    CONVERSATION_RESET,
    CONVERSATION_UPDATED,
    TURN_FINISHED,
    TURN_STARTED,
)

__all__ = [
    "CONVERSATION_RESET",
    "CONVERSATION_UPDATED",
    "TURN_FINISHED",
    "TURN_STARTED",
    "Event",
    "EventBus",
]
