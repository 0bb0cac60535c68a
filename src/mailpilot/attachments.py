from __future__ import annotations

import base64
import logging
import mimetypes
from collections.abc import Iterable
from pathlib import Path

from mailpilot.client.errors import MailPilotError
from mailpilot.models import Attachment

DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_MAX_BYTES = 15 * 1024 * 1024  # Gmail attachment limit

# Office formats are missing from mimetypes on some platforms.
EXTRA_MIME_TYPES = {
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".csv": "text/csv",
}

module_logger = logging.getLogger(__name__)


class AttachmentTooLarge(MailPilotError):
    def __init__(self, path: Path, size_bytes: int, max_bytes: int):
        self.path = path
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        super().__init__(
            f"{path.name}: {size_bytes / (1024 * 1024):.2f} MB exceeds the {max_bytes / (1024 * 1024):.0f} MB limit"
        )


def guess_mime_type(file_name: str) -> str:
    ext = Path(file_name).suffix.lower()
    if ext in EXTRA_MIME_TYPES:
        return EXTRA_MIME_TYPES[ext]
    mime, _ = mimetypes.guess_type(file_name)
    return mime or DEFAULT_MIME_TYPE


def read_attachment(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> Attachment:
    size_bytes = path.stat().st_size
    if size_bytes > max_bytes:
        raise AttachmentTooLarge(path, size_bytes, max_bytes)

    content = path.read_bytes()
    return Attachment(
        file_path=str(path),
        file_name=path.name,
        data=base64.b64encode(content).decode("ascii"),
        mime_type=guess_mime_type(path.name),
        enabled=True,
    )


def read_attachments(
    paths: Iterable[Path],
    max_bytes: int = DEFAULT_MAX_BYTES,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> tuple[list[Attachment], list[str]]:
    """Read every readable file; return the attachments and the failures."""
    log = logger or module_logger
    attachments: list[Attachment] = []
    failed: list[str] = []
    for path in paths:
        try:
            attachments.append(read_attachment(path, max_bytes=max_bytes))
        except (OSError, AttachmentTooLarge) as exc:
            log.error("Failed to read attachment %s: %s", path, exc)
            failed.append(f"{path}: {exc}")
    log.info("Attachments read: %s", len(attachments))
    return attachments, failed
