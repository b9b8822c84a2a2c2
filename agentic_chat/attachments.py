"""Attachment validation, pending-attachment state and data-URL conversion."""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
import logging
import mimetypes
from pathlib import Path

from .exceptions import UnsupportedAttachmentError

LOGGER = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MEDIA_TYPE = "application/vnd.ms-excel"
CSV_MEDIA_TYPE = "text/csv"

ALLOWED_MEDIA_TYPES: frozenset[str] = frozenset(
    {PDF_MEDIA_TYPE, XLSX_MEDIA_TYPE, XLS_MEDIA_TYPE, CSV_MEDIA_TYPE}
)

# Upload ceiling enforced by the agent service.
DEFAULT_MAX_BYTES = 20 * 1024 * 1024

UNSUPPORTED_TYPE_TEXT = (
    "Sorry, I can only analyze PDF, Excel (.xlsx, .xls), and CSV files."
)

# mimetypes does not know .xlsx on every platform.
_EXTENSION_MEDIA_TYPES = {
    ".pdf": PDF_MEDIA_TYPE,
    ".xlsx": XLSX_MEDIA_TYPE,
    ".xls": XLS_MEDIA_TYPE,
    ".csv": CSV_MEDIA_TYPE,
}


def normalize_media_type(media_type: str) -> str:
    """Lower-case a media type and drop any parameters."""
    return media_type.split(";", 1)[0].strip().lower()


@dataclass(frozen=True)
class Attachment:
    """A file selected by the user for the next send."""

    filename: str
    media_type: str
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path) -> Attachment:
        """Read a file from disk, guessing its media type from the name."""
        resolved = Path(path).expanduser().resolve()
        media_type = _EXTENSION_MEDIA_TYPES.get(resolved.suffix.lower())
        if media_type is None:
            guessed, _ = mimetypes.guess_type(resolved.name)
            media_type = guessed or "application/octet-stream"
        return cls(filename=resolved.name, media_type=media_type, data=resolved.read_bytes())


@dataclass(frozen=True)
class AttachmentCheck:
    """Outcome of validating one attachment."""

    ok: bool
    reason: str = ""


class AttachmentValidator:
    """Gate files against the media-type allow-list and size ceiling."""

    def __init__(
        self,
        allowed_media_types: frozenset[str] | None = None,
        *,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ) -> None:
        source = ALLOWED_MEDIA_TYPES if allowed_media_types is None else allowed_media_types
        self.allowed_media_types = frozenset(normalize_media_type(t) for t in source)
        self.max_bytes = max_bytes

    def validate(self, attachment: Attachment) -> AttachmentCheck:
        media_type = normalize_media_type(attachment.media_type)
        if media_type not in self.allowed_media_types:
            LOGGER.warning(
                "attachment.rejected",
                extra={
                    "event": "attachment.rejected",
                    "attachment_name": attachment.filename,
                    "media_type": attachment.media_type,
                },
            )
            return AttachmentCheck(ok=False, reason=UNSUPPORTED_TYPE_TEXT)

        if attachment.size > self.max_bytes:
            max_mb = self.max_bytes / (1024 * 1024)
            LOGGER.warning(
                "attachment.too_large",
                extra={
                    "event": "attachment.too_large",
                    "attachment_name": attachment.filename,
                    "size": attachment.size,
                },
            )
            return AttachmentCheck(
                ok=False,
                reason=f"Sorry, {attachment.filename} is too large (max {max_mb:.1f}MB).",
            )
        return AttachmentCheck(ok=True)

    def require(self, attachment: Attachment) -> None:
        """Validate and raise instead of returning a check.

        Raises:
            UnsupportedAttachmentError: If the attachment is rejected.
        """
        check = self.validate(attachment)
        if not check.ok:
            raise UnsupportedAttachmentError(check.reason)


class AttachmentState:
    """The single attachment waiting for the next send."""

    def __init__(self) -> None:
        self.pending: Attachment | None = None

    def set(self, attachment: Attachment) -> None:
        self.pending = attachment

    def clear(self) -> None:
        self.pending = None

    def has_any(self) -> bool:
        return self.pending is not None


def _encode_data_url(attachment: Attachment) -> str:
    payload = base64.b64encode(attachment.data).decode("ascii")
    return f"data:{normalize_media_type(attachment.media_type)};base64,{payload}"


async def to_data_url(attachment: Attachment) -> str:
    """Encode an attachment as a ``data:`` URL off the event loop."""
    return await asyncio.to_thread(_encode_data_url, attachment)
