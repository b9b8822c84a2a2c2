"""Single-flight turn tracking with generation tags."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging

LOGGER = logging.getLogger(__name__)


class TurnOutcome(str, Enum):
    """How a call to ``send`` ended."""

    COMPLETED = "COMPLETED"
    SERVER_ERROR = "SERVER_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    DISCARDED = "DISCARDED"
    SKIPPED = "SKIPPED"
    REJECTED = "REJECTED"
    THREAD_UNAVAILABLE = "THREAD_UNAVAILABLE"


@dataclass
class PendingTurn:
    """A turn currently streaming into the last message."""

    generation: int
    in_flight: bool = True


class TurnTracker:
    """Own the at-most-one pending turn and the generation counter.

    Every method is synchronous: callers claim a turn before their first
    ``await``, so two sends scheduled back to back cannot both pass.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._pending: PendingTurn | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> PendingTurn | None:
        return self._pending

    @property
    def in_flight(self) -> bool:
        return self._pending is not None and self._pending.in_flight

    def try_begin(self) -> PendingTurn | None:
        """Claim the turn slot, or return ``None`` if one is already taken."""
        if self.in_flight:
            return None
        self._pending = PendingTurn(generation=self._generation)
        return self._pending

    def is_current(self, turn: PendingTurn) -> bool:
        """Return True while ``turn`` has not been superseded by a reset."""
        return turn.in_flight and turn.generation == self._generation

    def finish(self, turn: PendingTurn) -> None:
        """Release ``turn``; a stale turn never releases a newer one."""
        turn.in_flight = False
        if self._pending is turn:
            self._pending = None

    def invalidate(self) -> int:
        """Bump the generation and drop any pending turn; return the new value."""
        self._generation += 1
        if self._pending is not None:
            LOGGER.info(
                "turn.invalidated",
                extra={
                    "event": "turn.invalidated",
                    "stale_generation": self._pending.generation,
                    "generation": self._generation,
                },
            )
            self._pending.in_flight = False
            self._pending = None
        return self._generation
