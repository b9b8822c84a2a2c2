"""Client-side engine for streamed, function-calling assistant conversations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .attachments import Attachment, AttachmentValidator
    from .client import AgentServiceClient
    from .config import ensure_config_dir, load_config
    from .controller import StreamingSendController
    from .conversation import ConversationState, FunctionCallRecord, Message
    from .exceptions import (
        AgenticChatError,
        ConfigValidationError,
        FrameParseError,
        ServerSignaledError,
        ThreadInitializationError,
        TransportError,
        UnsupportedAttachmentError,
    )
    from .frame_parser import EventFrameParser
    from .logging_utils import configure_logging
    from .session import AssistantSession, open_session
    from .state import TurnOutcome
    from .thread_lifecycle import ThreadLifecycleManager, ThreadState

_EXPORTS = {
    "AgentServiceClient": ".client",
    "AgenticChatError": ".exceptions",
    "AssistantSession": ".session",
    "Attachment": ".attachments",
    "AttachmentValidator": ".attachments",
    "ConfigValidationError": ".exceptions",
    "ConversationState": ".conversation",
    "EventFrameParser": ".frame_parser",
    "FrameParseError": ".exceptions",
    "FunctionCallRecord": ".conversation",
    "Message": ".conversation",
    "ServerSignaledError": ".exceptions",
    "StreamingSendController": ".controller",
    "ThreadInitializationError": ".exceptions",
    "ThreadLifecycleManager": ".thread_lifecycle",
    "ThreadState": ".thread_lifecycle",
    "TransportError": ".exceptions",
    "TurnOutcome": ".state",
    "UnsupportedAttachmentError": ".exceptions",
    "configure_logging": ".logging_utils",
    "ensure_config_dir": ".config",
    "load_config": ".config",
    "open_session": ".session",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    """Lazily import symbols so importing the package stays cheap."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(module_name, __name__), name)
