"""Stored file entity with its status lifecycle."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..core.exceptions import ConflictError
from ..utils.constants import FileCategory, FileStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FileEntity:
    """
    Metadata for one uploaded file.

    Status transitions:
        pending -> uploading -> uploaded
        pending | uploading -> failed
        uploaded | failed -> deleted
    """

    name: str
    size: int
    mime_type: str
    storage_key: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: FileStatus = FileStatus.PENDING
    url: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def category(self) -> FileCategory:
        return FileCategory.from_mime_type(self.mime_type)

    def mark_as_uploading(self) -> None:
        if self.status != FileStatus.PENDING:
            raise ConflictError("Only pending files can be marked as uploading")
        self._set_status(FileStatus.UPLOADING)

    def mark_as_uploaded(self, url: str) -> None:
        if self.status != FileStatus.UPLOADING:
            raise ConflictError("Only uploading files can be marked as uploaded")
        self.url = url
        self._set_status(FileStatus.UPLOADED)

    def mark_as_failed(self) -> None:
        if self.status in (FileStatus.UPLOADED, FileStatus.DELETED):
            raise ConflictError("Cannot mark uploaded or deleted files as failed")
        self._set_status(FileStatus.FAILED)

    def mark_as_deleted(self) -> None:
        if self.status == FileStatus.DELETED:
            raise ConflictError("File is already deleted")
        self.url = None
        self._set_status(FileStatus.DELETED)

    def can_be_deleted(self) -> bool:
        return self.status in (FileStatus.UPLOADED, FileStatus.FAILED)

    def _set_status(self, status: FileStatus) -> None:
        self.status = status
        self.updated_at = _utcnow()
