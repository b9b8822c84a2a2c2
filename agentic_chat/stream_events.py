"""Typed events carried by the agent service's streamed response."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

from .exceptions import FrameParseError


@dataclass(frozen=True)
class TextEvent:
    """A partial text delta to append to the assistant message."""

    content: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class FunctionCallEvent:
    """An action the agent already executed, reported with its result."""

    name: str
    args: Any = field(default_factory=dict)
    result: dict[str, Any] = field(default_factory=dict)
    type: Literal["function_call"] = "function_call"


@dataclass(frozen=True)
class DoneEvent:
    """Terminal marker for a successful turn."""

    type: Literal["done"] = "done"


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal marker for a failed turn.

    ``origin`` is ``"server"`` for an error frame sent by the agent service
    and ``"transport"`` for one synthesized locally after a failed request
    or read.
    """

    error: str = ""
    origin: Literal["server", "transport"] = "server"
    type: Literal["error"] = "error"


StreamEvent = Union[TextEvent, FunctionCallEvent, DoneEvent, ErrorEvent]

TERMINAL_EVENT_TYPES = frozenset({"done", "error"})


def is_terminal(event: StreamEvent) -> bool:
    """Return True for events that end a turn."""
    return event.type in TERMINAL_EVENT_TYPES


def event_from_payload(payload: Any) -> StreamEvent:
    """Build a typed event from a decoded JSON frame payload.

    Raises:
        FrameParseError: If the payload is not an object or its ``type`` is
            missing, unknown, or carries fields of the wrong shape.
    """
    if not isinstance(payload, dict):
        raise FrameParseError(f"Frame payload must be an object, got {type(payload).__name__}")

    kind = payload.get("type")
    if kind == "text":
        content = payload.get("content", "")
        if not isinstance(content, str):
            raise FrameParseError("Text frame content must be a string.")
        return TextEvent(content=content)
    if kind == "function_call":
        name = payload.get("name")
        if not isinstance(name, str) or not name:
            raise FrameParseError("Function call frame requires a name.")
        result = payload.get("result")
        if result is None:
            result = {}
        if not isinstance(result, dict):
            raise FrameParseError("Function call result must be an object.")
        args = payload.get("args")
        return FunctionCallEvent(
            name=name,
            args={} if args is None else args,
            result=result,
        )
    if kind == "done":
        return DoneEvent()
    if kind == "error":
        error = payload.get("error")
        return ErrorEvent(error="" if error is None else str(error))
    raise FrameParseError(f"Unknown frame type {kind!r}")
