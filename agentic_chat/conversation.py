"""Ordered conversation history with in-place patching of the last message."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
import json
from typing import Any, Literal

from .stream_events import (
    DoneEvent,
    ErrorEvent,
    FunctionCallEvent,
    StreamEvent,
    TextEvent,
)

Role = Literal["user", "assistant"]

DEFAULT_GREETING = (
    "Hi! I'm your autonomous CRM assistant. I can analyze files, create records, "
    "and execute multi-step workflows. Try uploading an Excel file or ask me anything!"
)
EXECUTING_PLACEHOLDER = "Executing actions..."
TRANSPORT_FAILURE_TEXT = "❌ Failed to get response. Please try again."
THREAD_UNAVAILABLE_TEXT = "⚠️ Thread not initialized. Please refresh."
UNKNOWN_ERROR_TEXT = "Unknown error"


def format_server_error(error: str) -> str:
    """Render an error frame's message as assistant content."""
    return f"❌ Error: {error or UNKNOWN_ERROR_TEXT}"


@dataclass
class FunctionCallRecord:
    """An executed action shown to the user as an auditable log entry."""

    name: str
    args: Any = field(default_factory=dict)
    result: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return bool(self.result.get("success"))

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "args": self.args, "result": self.result}


@dataclass
class Message:
    """A single conversation entry."""

    role: Role
    content: str = ""
    function_calls: list[FunctionCallRecord] = field(default_factory=list)

    @property
    def display_content(self) -> str:
        """Return the text to render.

        An assistant message that has run actions but produced no text yet
        shows a transient label; the label is never stored in ``content``.
        """
        if not self.content and self.function_calls:
            return EXECUTING_PLACEHOLDER
        return self.content

    def as_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "function_calls": [record.as_dict() for record in self.function_calls],
        }


def describe_function_call(record: FunctionCallRecord) -> str:
    """Summarise an executed action for the "Actions Executed" log."""
    parts = [record.name]
    if record.succeeded:
        parts.append("✅ Success")
    created = record.result.get("created")
    if created is not None:
        parts.append(f"Created: {created}")
    if len(parts) == 1:
        return record.name
    return f"{parts[0]}: " + " · ".join(parts[1:])


class ConversationState:
    """Ordered message list for one session.

    Messages are append-only except for the last one, which the stream of
    the in-flight turn patches through :meth:`apply_event`.
    """

    def __init__(self, greeting: str = DEFAULT_GREETING) -> None:
        self.greeting = greeting.strip()
        self._messages: list[Message] = []
        self.reset()

    @property
    def messages(self) -> list[Message]:
        """Return a deep copy of the history so callers cannot patch it."""
        return deepcopy(self._messages)

    @property
    def message_count(self) -> int:
        return len(self._messages)

    @property
    def last(self) -> Message | None:
        """Return the live last message, or ``None`` when empty."""
        return self._messages[-1] if self._messages else None

    def reset(self) -> None:
        """Drop all history, keeping only the greeting seed."""
        self._messages = []
        if self.greeting:
            self._messages.append(Message(role="assistant", content=self.greeting))

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def append_user(self, content: str) -> Message:
        message = Message(role="user", content=content)
        self.append(message)
        return message

    def append_assistant(self, content: str = "") -> Message:
        message = Message(role="assistant", content=content)
        self.append(message)
        return message

    def apply_event(self, event: StreamEvent) -> None:
        """Patch the last message with a single stream event.

        Raises:
            IndexError: If the conversation is empty.
        """
        if not self._messages:
            raise IndexError("Cannot apply a stream event to an empty conversation.")
        target = self._messages[-1]

        if isinstance(event, TextEvent):
            target.content += event.content
        elif isinstance(event, FunctionCallEvent):
            target.function_calls.append(
                FunctionCallRecord(
                    name=event.name,
                    args=deepcopy(event.args),
                    result=deepcopy(event.result),
                )
            )
        elif isinstance(event, DoneEvent):
            return
        elif isinstance(event, ErrorEvent):
            if event.origin == "transport":
                target.content = TRANSPORT_FAILURE_TEXT
            else:
                target.content = format_server_error(event.error)
        else:
            raise TypeError(f"Unsupported stream event: {event!r}")

    def export_json(self) -> str:
        """Export history using stable list and field ordering."""
        return json.dumps(
            [message.as_dict() for message in self._messages],
            ensure_ascii=False,
            separators=(",", ":"),
            sort_keys=False,
        )
