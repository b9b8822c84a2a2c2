"""Ownership of the remote conversation thread for one session."""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Protocol

from .exceptions import ThreadInitializationError

LOGGER = logging.getLogger(__name__)


class ThreadState(str, Enum):
    """Lifecycle of the session's remote thread."""

    UNINITIALIZED = "UNINITIALIZED"
    CREATING = "CREATING"
    READY = "READY"
    FAILED = "FAILED"


class ThreadService(Protocol):
    async def create_thread(self, session_id: str) -> str: ...

    async def delete_thread(self, thread_id: str) -> None: ...


class ThreadLifecycleManager:
    """Create, reuse, recreate and dispose the thread bound to a session.

    ``FAILED`` is sticky: :meth:`ensure_thread` raises immediately instead of
    retrying, and only :meth:`reset` re-enters ``CREATING``.
    """

    def __init__(self, service: ThreadService, session_id: str) -> None:
        self.service = service
        self.session_id = session_id
        self._state = ThreadState.UNINITIALIZED
        self._thread_id: str | None = None
        self._creating: asyncio.Task[str] | None = None

    @property
    def state(self) -> ThreadState:
        return self._state

    @property
    def thread_id(self) -> str | None:
        """Return the thread id while ``READY``, else ``None``."""
        return self._thread_id if self._state == ThreadState.READY else None

    async def ensure_thread(self) -> str:
        """Return a ready thread id, creating the thread when needed.

        Raises:
            ThreadInitializationError: If creation fails now or failed before.
        """
        if self._state == ThreadState.READY and self._thread_id is not None:
            return self._thread_id
        if self._state == ThreadState.FAILED:
            raise ThreadInitializationError("Thread not initialized.")
        creating = self._creating
        if self._state == ThreadState.UNINITIALIZED or creating is None:
            creating = self._start_creation()
        # Concurrent callers share the same create request.
        return await asyncio.shield(creating)

    async def reset(self) -> str:
        """Best-effort delete of the current thread, then create a new one.

        Raises:
            ThreadInitializationError: If the replacement thread cannot be
                created; the manager is then ``FAILED``.
        """
        if self._creating is not None and not self._creating.done():
            # Let an in-progress create settle so its thread can be deleted.
            try:
                await asyncio.shield(self._creating)
            except ThreadInitializationError:
                pass
        old_thread_id = self._thread_id
        LOGGER.info(
            "thread.reset",
            extra={"event": "thread.reset", "session_id": self.session_id, "thread_id": old_thread_id},
        )
        self._thread_id = None
        self._state = ThreadState.UNINITIALIZED
        self._creating = None

        if old_thread_id is not None:
            await self._delete_quietly(old_thread_id)
        return await self.ensure_thread()

    async def dispose(self) -> None:
        """Release the thread at session end."""
        old_thread_id = self._thread_id
        if self._creating is not None and not self._creating.done():
            self._creating.cancel()
        self._creating = None
        self._thread_id = None
        self._state = ThreadState.UNINITIALIZED
        if old_thread_id is not None:
            await self._delete_quietly(old_thread_id)

    def _start_creation(self) -> asyncio.Task[str]:
        self._state = ThreadState.CREATING
        self._creating = asyncio.create_task(self._create())
        return self._creating

    async def _create(self) -> str:
        try:
            thread_id = await self.service.create_thread(self.session_id)
            if not thread_id:
                raise ThreadInitializationError("Thread service returned no thread id.")
        except Exception as exc:
            self._state = ThreadState.FAILED
            LOGGER.error(
                "thread.create_failed",
                extra={
                    "event": "thread.create_failed",
                    "session_id": self.session_id,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            if isinstance(exc, ThreadInitializationError):
                raise
            raise ThreadInitializationError(f"Unable to create thread: {exc}") from exc
        self._thread_id = thread_id
        self._state = ThreadState.READY
        return thread_id

    async def _delete_quietly(self, thread_id: str) -> None:
        try:
            await self.service.delete_thread(thread_id)
        except Exception as exc:  # noqa: BLE001 - delete is best-effort.
            LOGGER.warning(
                "thread.delete_failed",
                extra={
                    "event": "thread.delete_failed",
                    "thread_id": thread_id,
                    "error": str(exc),
                },
            )
