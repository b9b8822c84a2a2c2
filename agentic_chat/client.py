"""Async HTTP boundary to the agent service: threads and streamed messages."""

from __future__ import annotations

from collections.abc import AsyncIterator
import logging
from typing import Any

import httpx

from .attachments import Attachment, normalize_media_type
from .exceptions import AgenticChatError, ThreadInitializationError, TransportError

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3001/api/assistant/agentic"


class AgentServiceClient:
    """Thin wrapper over ``httpx.AsyncClient`` for the agentic assistant routes.

    The client never retries: thread creation failures are surfaced to the
    lifecycle manager and stream failures to the send controller, which each
    decide what the user sees.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def create_thread(self, session_id: str) -> str:
        """Create (or reuse) the remote thread bound to ``session_id``.

        Raises:
            ThreadInitializationError: On any transport failure, non-success
                status, or a response without a thread id.
        """
        url = f"{self.base_url}/thread"
        try:
            response = await self._client.post(url, json={"sessionId": session_id})
            response.raise_for_status()
            payload: Any = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ThreadInitializationError(
                f"Unable to create thread: {self._map_exception(exc)}"
            ) from exc

        thread_id = payload.get("threadId") if isinstance(payload, dict) else None
        if not isinstance(thread_id, str) or not thread_id.strip():
            raise ThreadInitializationError("Thread service returned no thread id.")

        LOGGER.info(
            "thread.created",
            extra={"event": "thread.created", "session_id": session_id, "thread_id": thread_id},
        )
        return thread_id

    async def delete_thread(self, thread_id: str) -> None:
        """Delete a remote thread.

        Raises:
            TransportError: On a transport failure or non-success status.
        """
        url = f"{self.base_url}/thread/{thread_id}"
        try:
            response = await self._client.delete(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise self._map_exception(exc) from exc
        LOGGER.info(
            "thread.deleted",
            extra={"event": "thread.deleted", "thread_id": thread_id},
        )

    async def stream_message(
        self,
        thread_id: str,
        message: str,
        attachment: Attachment | None = None,
    ) -> AsyncIterator[str]:
        """Post a message and yield the decoded response body chunk by chunk.

        Chunks are raw text: frame boundaries are not preserved.

        Raises:
            TransportError: On a non-success status or any network failure
                while connecting or reading.
        """
        url = f"{self.base_url}/message"
        # (None, value) parts keep the body multipart even without a file.
        parts: dict[str, tuple[Any, ...]] = {
            "threadId": (None, thread_id),
            "message": (None, message),
        }
        if attachment is not None:
            parts["file"] = (
                attachment.filename,
                attachment.data,
                normalize_media_type(attachment.media_type),
            )

        try:
            async with self._client.stream("POST", url, files=parts) as response:
                if not response.is_success:
                    body = await response.aread()
                    LOGGER.warning(
                        "message.request.failed",
                        extra={
                            "event": "message.request.failed",
                            "status_code": response.status_code,
                            "body": body[:500].decode("utf-8", errors="replace"),
                        },
                    )
                    raise TransportError(
                        f"Agent service returned HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                async for chunk in response.aiter_text():
                    yield chunk
        except httpx.HTTPError as exc:
            raise self._map_exception(exc) from exc

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def _map_exception(exc: Exception) -> AgenticChatError:
        if isinstance(exc, AgenticChatError):
            return exc
        if isinstance(exc, httpx.HTTPStatusError):
            return TransportError(
                f"Agent service returned HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            )
        if isinstance(exc, httpx.TimeoutException):
            return TransportError(f"Agent service timed out: {exc}")
        if isinstance(exc, httpx.TransportError):
            return TransportError(f"Unable to reach agent service: {exc}")
        return TransportError(str(exc) or type(exc).__name__)
