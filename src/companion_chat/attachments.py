"""Attachment encoding and the staging tray for the next send.

Raw file bytes never travel past this module: the file intake boundary hands
``(bytes, media_type, file_name)`` to ``AttachmentCodec.encode`` and everything
downstream only sees the base64 ``Attachment`` form.
"""

from __future__ import annotations

import base64
import logging
import mimetypes
from pathlib import Path

from .exceptions import PayloadTooLargeError
from .models import Attachment, new_id

LOGGER = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/octet-stream"
DEFAULT_MAX_ATTACHMENT_BYTES = 20 * 1024 * 1024  # 20 MB


class AttachmentCodec:
    """Convert raw file bytes to transport-safe attachments and back."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES) -> None:
        self.max_bytes = max_bytes

    def encode(self, raw: bytes, media_type: str, file_name: str) -> Attachment:
        """Wrap ``raw`` as a base64 attachment.

        Raises:
            PayloadTooLargeError: if ``raw`` exceeds ``max_bytes``.
        """
        size = len(raw)
        if size > self.max_bytes:
            raise PayloadTooLargeError(size, self.max_bytes)
        attachment = Attachment(
            id=new_id(),
            media_type=media_type.strip() or DEFAULT_MEDIA_TYPE,
            file_name=file_name,
            payload=base64.b64encode(raw).decode("ascii"),
        )
        LOGGER.debug(
            "attachment.encoded",
            extra={
                "event": "attachment.encoded",
                "media_type": attachment.media_type,
                "size": size,
            },
        )
        return attachment

    @staticmethod
    def decode(attachment: Attachment) -> bytes:
        """Return the original bytes of ``attachment``."""
        return base64.b64decode(attachment.payload, validate=True)

    def encode_file(
        self, path: str | Path, media_type: str | None = None
    ) -> Attachment:
        """Read a file picked by the user and encode it.

        The size is checked before reading so oversized files are rejected
        without loading them.
        """
        resolved = Path(path).expanduser().resolve()
        if not resolved.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if not resolved.is_file():
            raise IsADirectoryError(f"Not a file: {path}")

        size = resolved.stat().st_size
        if size > self.max_bytes:
            raise PayloadTooLargeError(size, self.max_bytes)

        declared = media_type or mimetypes.guess_type(resolved.name)[0] or ""
        return self.encode(resolved.read_bytes(), declared, resolved.name)


class AttachmentTray:
    """Attachments staged by the user for the next outgoing message."""

    def __init__(self) -> None:
        self._items: list[Attachment] = []

    @property
    def items(self) -> tuple[Attachment, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, attachment: Attachment) -> None:
        self._items.append(attachment)

    def remove(self, attachment_id: str) -> None:
        """Drop a staged attachment; unknown ids are ignored."""
        self._items = [item for item in self._items if item.id != attachment_id]

    def clear(self) -> None:
        self._items.clear()
