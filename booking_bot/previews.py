"""Local file previews with explicit acquire / release.

A preview is a temporary copy of a file the user sent (package photo,
declaration, insurance policy). It is acquired when the file is selected
and released when the file is removed, when the draft is reset, or when
the session is torn down.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from booking_bot.errors import UploadFailure

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "application/pdf",
})


def check_upload(size: int, mime_type: str, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
    if size > max_bytes:
        raise UploadFailure(f"File size must be less than {max_bytes // (1024 * 1024)}MB")
    if mime_type not in ALLOWED_MIME_TYPES:
        raise UploadFailure("Only images (JPEG, PNG, WEBP) and PDF files are allowed")


@dataclass(eq=False)
class PreviewHandle:
    path: Path
    name: str
    mime_type: str
    released: bool = False


@dataclass
class PreviewRegistry:
    """Owns every live preview of one booking session."""

    directory: Path | None = None
    _handles: list[PreviewHandle] = field(default_factory=list)

    def acquire(self, name: str, mime_type: str) -> PreviewHandle:
        suffix = Path(name).suffix
        fd, raw_path = tempfile.mkstemp(prefix="preview-", suffix=suffix, dir=self.directory)
        os.close(fd)
        handle = PreviewHandle(path=Path(raw_path), name=name, mime_type=mime_type)
        self._handles.append(handle)
        return handle

    def release(self, handle: PreviewHandle | None) -> None:
        if handle is None or handle.released:
            return
        handle.released = True
        try:
            handle.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove preview %s: %s", handle.path, exc)
        if handle in self._handles:
            self._handles.remove(handle)

    def release_all(self) -> None:
        for handle in list(self._handles):
            self.release(handle)

    @property
    def live(self) -> int:
        return len(self._handles)

    def __enter__(self) -> "PreviewRegistry":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release_all()
