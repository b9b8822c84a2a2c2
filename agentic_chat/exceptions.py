"""Domain exception hierarchy for the agentic chat client."""

from __future__ import annotations


class AgenticChatError(RuntimeError):
    """Base class for all domain-level chat errors."""


class ThreadInitializationError(AgenticChatError):
    """Raised when the remote thread cannot be created or is unavailable."""


class TransportError(AgenticChatError):
    """Raised on a non-success status or a network failure during send/read."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FrameParseError(AgenticChatError):
    """Raised when a single stream frame cannot be decoded."""


class UnsupportedAttachmentError(AgenticChatError):
    """Raised when a file falls outside the attachment allow-list."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ServerSignaledError(AgenticChatError):
    """The agent service reported an error frame mid-stream."""


class ConfigValidationError(AgenticChatError):
    """Raised when configuration cannot be validated safely."""
