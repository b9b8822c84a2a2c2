"""Incremental parser for ``data: <json>`` framed stream bodies."""

from __future__ import annotations

import json
import logging

from .exceptions import FrameParseError
from .stream_events import StreamEvent, event_from_payload

LOGGER = logging.getLogger(__name__)

FRAME_PREFIX = "data: "


class EventFrameParser:
    """Turn raw text chunks into stream events, one event per line.

    A chunk may end in the middle of a line; the partial tail is buffered
    until a later chunk completes it. Corrupt frames are logged and dropped
    so a single bad line never aborts an otherwise healthy stream.
    """

    def __init__(self, prefix: str = FRAME_PREFIX) -> None:
        self._prefix = prefix
        self._buffer = ""
        self.dropped_frames = 0

    @property
    def pending(self) -> str:
        """Return the buffered, not yet terminated, partial line."""
        return self._buffer

    def feed(self, chunk: str) -> list[StreamEvent]:
        """Consume a chunk and return every event completed by it, in order."""
        if not chunk:
            return []
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")

        events: list[StreamEvent] = []
        for line in lines:
            event = self._parse_line(line.rstrip("\r"))
            if event is not None:
                events.append(event)
        return events

    def finish(self) -> None:
        """Discard any unterminated line left at stream end."""
        if self._buffer:
            LOGGER.debug(
                "frame.partial_discarded",
                extra={"event": "frame.partial_discarded", "length": len(self._buffer)},
            )
        self._buffer = ""

    def _parse_line(self, line: str) -> StreamEvent | None:
        if not line.startswith(self._prefix):
            # Blank separators and SSE comments carry no event.
            return None
        raw = line[len(self._prefix) :]
        try:
            return event_from_payload(json.loads(raw))
        except (json.JSONDecodeError, FrameParseError) as exc:
            self.dropped_frames += 1
            LOGGER.warning(
                "frame.parse_failed",
                extra={
                    "event": "frame.parse_failed",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "frame": raw[:200],
                },
            )
            return None
