"""One user turn: request, streamed frames, conversation patches, release."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
import logging
from typing import Any, Protocol

from .attachments import Attachment, AttachmentState, AttachmentValidator
from .conversation import THREAD_UNAVAILABLE_TEXT, UNKNOWN_ERROR_TEXT, ConversationState
from .events import CONVERSATION_UPDATED, TURN_FINISHED, TURN_STARTED, EventBus
from .exceptions import ServerSignaledError, ThreadInitializationError
from .frame_parser import EventFrameParser
from .state import PendingTurn, TurnOutcome, TurnTracker
from .stream_events import ErrorEvent, StreamEvent, is_terminal
from .thread_lifecycle import ThreadLifecycleManager

LOGGER = logging.getLogger(__name__)

DEFAULT_ANALYSIS_PROMPT = "Analyze this file and suggest what to do with the data."


class MessageService(Protocol):
    def stream_message(
        self, thread_id: str, message: str, attachment: Attachment | None = None
    ) -> AsyncIterator[str]: ...


class StreamingSendController:
    """Run user turns against a single conversation, one at a time.

    Responsibilities:
    - Single-flight guard, claimed before the first suspension point
    - Attachment gating before any network I/O
    - Feeding streamed chunks through :class:`EventFrameParser`
    - Discarding events from a turn superseded by a reset
    - Converting every failure into one readable assistant message
    """

    def __init__(
        self,
        service: MessageService,
        conversation: ConversationState,
        lifecycle: ThreadLifecycleManager,
        *,
        validator: AttachmentValidator | None = None,
        attachments: AttachmentState | None = None,
        bus: EventBus | None = None,
        default_analysis_prompt: str = DEFAULT_ANALYSIS_PROMPT,
    ) -> None:
        self.service = service
        self.conversation = conversation
        self.lifecycle = lifecycle
        self.validator = validator or AttachmentValidator()
        self.attachments = attachments or AttachmentState()
        self.bus = bus
        self.default_analysis_prompt = default_analysis_prompt
        self.turns = TurnTracker()

    @property
    def in_flight(self) -> bool:
        return self.turns.in_flight

    @property
    def generation(self) -> int:
        return self.turns.generation

    def invalidate(self) -> int:
        """Supersede any in-flight turn; its remaining events are dropped."""
        self.attachments.clear()
        return self.turns.invalidate()

    async def send(self, text: str, attachment: Attachment | None = None) -> TurnOutcome:
        """Run one turn to completion or failure.

        Never raises for turn-local failures; only cancellation propagates.
        """
        turn = self.turns.try_begin()
        if turn is None:
            LOGGER.debug("turn.skipped", extra={"event": "turn.skipped", "reason": "in_flight"})
            return TurnOutcome.SKIPPED

        try:
            outcome = await self._run_turn(turn, text.strip(), attachment)
        finally:
            # Single release point for every exit path.
            current = self.turns.is_current(turn)
            self.turns.finish(turn)
            if current:
                self.attachments.clear()

        await self._publish(TURN_FINISHED, {"outcome": outcome.value, "generation": turn.generation})
        return outcome

    async def _run_turn(
        self, turn: PendingTurn, text: str, attachment: Attachment | None
    ) -> TurnOutcome:
        if not text and attachment is None:
            return TurnOutcome.SKIPPED

        if attachment is not None:
            check = self.validator.validate(attachment)
            if not check.ok:
                self.conversation.append_assistant(check.reason)
                await self._publish(CONVERSATION_UPDATED, {"reason": "attachment_rejected"})
                return TurnOutcome.REJECTED

        thread_id = await self._resolve_thread()
        if thread_id is None:
            if self.turns.is_current(turn):
                self.conversation.append_assistant(THREAD_UNAVAILABLE_TEXT)
                await self._publish(CONVERSATION_UPDATED, {"reason": "thread_unavailable"})
            return TurnOutcome.THREAD_UNAVAILABLE
        if not self.turns.is_current(turn):
            return TurnOutcome.DISCARDED

        label = text or f"📎 Uploaded: {attachment.filename if attachment else ''}"
        self.conversation.append_user(label)
        self.conversation.append_assistant("")
        LOGGER.info(
            "turn.started",
            extra={
                "event": "turn.started",
                "thread_id": thread_id,
                "generation": turn.generation,
                "has_attachment": attachment is not None,
            },
        )
        await self._publish(TURN_STARTED, {"thread_id": thread_id, "generation": turn.generation})
        await self._publish(CONVERSATION_UPDATED, {"reason": "turn_started"})

        message = text or self.default_analysis_prompt
        return await self._stream(turn, thread_id, message, attachment)

    async def _resolve_thread(self) -> str | None:
        try:
            return await self.lifecycle.ensure_thread()
        except ThreadInitializationError as exc:
            LOGGER.warning(
                "turn.thread_unavailable",
                extra={
                    "event": "turn.thread_unavailable",
                    "session_id": self.lifecycle.session_id,
                    "error": str(exc),
                },
            )
            return None

    async def _stream(
        self,
        turn: PendingTurn,
        thread_id: str,
        message: str,
        attachment: Attachment | None,
    ) -> TurnOutcome:
        parser = EventFrameParser()
        applied = 0
        try:
            async with aclosing(
                self.service.stream_message(thread_id, message, attachment)
            ) as chunks:
                async for chunk in chunks:
                    if not self.turns.is_current(turn):
                        break
                    for event in parser.feed(chunk):
                        if not await self._apply(turn, event):
                            return TurnOutcome.DISCARDED
                        applied += 1
                        if isinstance(event, ErrorEvent):
                            raise ServerSignaledError(event.error or UNKNOWN_ERROR_TEXT)
                        if is_terminal(event):
                            LOGGER.info(
                                "turn.completed",
                                extra={"event": "turn.completed", "events": applied, "terminated_by": "done"},
                            )
                            return TurnOutcome.COMPLETED
            parser.finish()
        except ServerSignaledError as exc:
            # The error frame is already applied to the conversation.
            LOGGER.warning(
                "turn.server_error",
                extra={
                    "event": "turn.server_error",
                    "thread_id": thread_id,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "generation": turn.generation,
                },
            )
            return TurnOutcome.SERVER_ERROR
        except Exception as exc:  # noqa: BLE001 - every failure ends the turn, not the session.
            LOGGER.warning(
                "turn.transport_error",
                extra={
                    "event": "turn.transport_error",
                    "thread_id": thread_id,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            if not await self._apply(turn, ErrorEvent(error=str(exc), origin="transport")):
                return TurnOutcome.DISCARDED
            return TurnOutcome.TRANSPORT_ERROR

        # Connection closed without a terminal frame.
        if not self.turns.is_current(turn):
            return TurnOutcome.DISCARDED
        LOGGER.info(
            "turn.completed",
            extra={"event": "turn.completed", "events": applied, "terminated_by": "close"},
        )
        return TurnOutcome.COMPLETED

    async def _apply(self, turn: PendingTurn, event: StreamEvent) -> bool:
        if not self.turns.is_current(turn):
            LOGGER.info(
                "turn.stale_event_dropped",
                extra={
                    "event": "turn.stale_event_dropped",
                    "stream_event": event.type,
                    "turn_generation": turn.generation,
                    "generation": self.turns.generation,
                },
            )
            return False
        self.conversation.apply_event(event)
        await self._publish(CONVERSATION_UPDATED, {"reason": event.type})
        return True

    async def _publish(self, name: str, data: dict[str, Any]) -> None:
        if self.bus is not None:
            await self.bus.publish(name, data, source="controller")
