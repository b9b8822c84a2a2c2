"""Session object owning one assistant conversation and its remote thread."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import time
from typing import Any

from .attachments import DEFAULT_MAX_BYTES, Attachment, AttachmentState, AttachmentValidator
from .client import AgentServiceClient
from .config import load_config
from .controller import StreamingSendController
from .conversation import ConversationState, Message
from .events import CONVERSATION_RESET, EventBus
from .exceptions import ThreadInitializationError, UnsupportedAttachmentError
from .logging_utils import configure_logging
from .state import TurnOutcome
from .task_manager import TaskManager
from .thread_lifecycle import ThreadLifecycleManager, ThreadState

LOGGER = logging.getLogger(__name__)

ACTIVE_TURN_TASK = "active_turn"


def new_session_id() -> str:
    """Return a session id in the ``session-<epoch millis>`` form."""
    return f"session-{int(time.time() * 1000)}"


class AssistantSession:
    """Everything scoped to one assistant panel: thread, history, sends.

    Sessions share nothing, so several can run side by side (tabs, tests).
    """

    def __init__(
        self,
        client: AgentServiceClient,
        *,
        session_id: str | None = None,
        greeting: str | None = None,
        validator: AttachmentValidator | None = None,
        default_analysis_prompt: str | None = None,
    ) -> None:
        self.client = client
        self.session_id = session_id or new_session_id()
        self.bus = EventBus()
        self.tasks = TaskManager()
        self.conversation = (
            ConversationState() if greeting is None else ConversationState(greeting)
        )
        self.attachments = AttachmentState()
        self.lifecycle = ThreadLifecycleManager(client, self.session_id)
        controller_options: dict[str, Any] = {}
        if default_analysis_prompt is not None:
            controller_options["default_analysis_prompt"] = default_analysis_prompt
        self.controller = StreamingSendController(
            client,
            self.conversation,
            self.lifecycle,
            validator=validator,
            attachments=self.attachments,
            bus=self.bus,
            **controller_options,
        )

    @classmethod
    def from_config(
        cls,
        config: dict[str, dict[str, Any]],
        *,
        client: AgentServiceClient | None = None,
        session_id: str | None = None,
    ) -> AssistantSession:
        """Build a session from a validated config mapping (see ``load_config``)."""
        agent_cfg = config.get("agent", {})
        attachments_cfg = config.get("attachments", {})
        app_cfg = config.get("app", {})
        if client is None:
            client = AgentServiceClient(
                base_url=str(agent_cfg.get("base_url")),
                timeout=float(agent_cfg.get("timeout_seconds", 120)),
            )
        allowed = attachments_cfg.get("allowed_media_types")
        validator = AttachmentValidator(
            frozenset(allowed) if allowed else None,
            max_bytes=int(attachments_cfg.get("max_bytes", DEFAULT_MAX_BYTES)),
        )
        return cls(
            client,
            session_id=session_id,
            greeting=app_cfg.get("greeting"),
            validator=validator,
            default_analysis_prompt=agent_cfg.get("default_analysis_prompt"),
        )

    @property
    def messages(self) -> list[Message]:
        return self.conversation.messages

    @property
    def thread_id(self) -> str | None:
        return self.lifecycle.thread_id

    @property
    def thread_state(self) -> ThreadState:
        return self.lifecycle.state

    @property
    def in_flight(self) -> bool:
        return self.controller.in_flight

    async def start(self) -> bool:
        """Create the session's thread; return False if that failed.

        A failure leaves the thread ``FAILED``: later sends show a notice
        until :meth:`reset` is called.
        """
        try:
            await self.lifecycle.ensure_thread()
        except ThreadInitializationError:
            return False
        return True

    async def send(self, text: str, attachment: Attachment | None = None) -> TurnOutcome:
        """Run one turn and wait for it to finish."""
        return await self.controller.send(text, attachment)

    def submit(self, text: str, attachment: Attachment | None = None) -> asyncio.Task[Any] | None:
        """Schedule a turn in the background, as a UI send action would.

        Returns ``None`` without scheduling when a turn is already running.
        """
        if self.controller.in_flight or self.tasks.running(ACTIVE_TURN_TASK):
            return None
        return self.tasks.spawn(self.controller.send(text, attachment), name=ACTIVE_TURN_TASK)

    def upload(self, attachment: Attachment, text: str = "") -> asyncio.Task[Any] | None:
        """Hold ``attachment`` as pending and dispatch it with ``text``.

        A rejected file is answered with a notice right away; no task is
        scheduled and nothing is sent.
        """
        if self.controller.in_flight:
            return None
        try:
            self.controller.validator.require(attachment)
        except UnsupportedAttachmentError as exc:
            self.conversation.append_assistant(exc.reason)
            return None
        self.attachments.set(attachment)
        return self.submit(text, attachment)

    async def reset(self) -> bool:
        """Clear the conversation and start over on a fresh thread.

        The generation bump happens before any await, so a stream still
        running for the old conversation can no longer write into it.
        Returns False if the replacement thread could not be created.
        """
        generation = self.controller.invalidate()
        self.conversation.reset()
        LOGGER.info(
            "session.reset",
            extra={"event": "session.reset", "session_id": self.session_id, "generation": generation},
        )
        await self.bus.publish(CONVERSATION_RESET, {"session_id": self.session_id})
        await self.tasks.cancel(ACTIVE_TURN_TASK)
        try:
            await self.lifecycle.reset()
        except ThreadInitializationError:
            return False
        return True

    async def close(self) -> None:
        """End the session: stop background work and release the thread."""
        self.controller.invalidate()
        await self.tasks.cancel_all()
        await self.lifecycle.dispose()
        await self.client.aclose()
        self.bus.clear()
        LOGGER.info("session.closed", extra={"event": "session.closed", "session_id": self.session_id})

    async def __aenter__(self) -> AssistantSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def open_session(
    config_path: Path | None = None,
    *,
    client: AgentServiceClient | None = None,
    session_id: str | None = None,
) -> AssistantSession:
    """Load config, apply its ``[logging]`` section and build a session.

    This is the entry point for hosts embedding the assistant; the returned
    session still needs :meth:`AssistantSession.start` (or ``async with``).
    """
    config = load_config(config_path)
    configure_logging(config["logging"])
    return AssistantSession.from_config(config, client=client, session_id=session_id)
