"""Application constants and enums."""

from enum import Enum
from typing import Dict, List


class FileStatus(str, Enum):
    """Stored file status enum."""

    PENDING = "pending"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    FAILED = "failed"
    DELETED = "deleted"


class ProgressStatus(str, Enum):
    """Upload progress status enum."""

    PENDING = "pending"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressStatus.COMPLETED, ProgressStatus.FAILED)


class MultipartState(str, Enum):
    """Multipart orchestrator states."""

    NOT_STARTED = "not_started"
    INITIATED = "initiated"
    PARTS_IN_FLIGHT = "parts_in_flight"
    COMPLETING = "completing"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTING = "aborting"
    ABORTED = "aborted"


class FileCategory(str, Enum):
    """File category enum, used as the first storage key segment."""

    IMAGES = "images"
    DOCUMENTS = "documents"
    VIDEOS = "videos"
    AUDIO = "audio"
    ARCHIVES = "archives"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return CATEGORY_DISPLAY_NAMES[self]

    @classmethod
    def from_mime_type(cls, mime_type: str) -> "FileCategory":
        for category, mime_types in CATEGORY_MIME_TYPES.items():
            if mime_type in mime_types:
                return category
        return cls.OTHER

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in {c.value for c in cls}


CATEGORY_MIME_TYPES: Dict[FileCategory, List[str]] = {
    FileCategory.IMAGES: [
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/bmp",
        "image/tiff",
        "image/svg+xml",
    ],
    FileCategory.DOCUMENTS: [
        "application/pdf",
        "text/plain",
        "text/csv",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "application/rtf",
        "text/html",
        "application/json",
    ],
    FileCategory.VIDEOS: [
        "video/mp4",
        "video/mpeg",
        "video/quicktime",
        "video/x-msvideo",  # .avi
        "video/x-ms-wmv",
        "video/webm",
        "video/3gpp",
        "video/x-flv",
    ],
    FileCategory.AUDIO: [
        "audio/mpeg",  # .mp3
        "audio/wav",
        "audio/ogg",
        "audio/aac",
        "audio/x-m4a",
        "audio/flac",
        "audio/webm",
    ],
    FileCategory.ARCHIVES: [
        "application/zip",
        "application/x-rar-compressed",
        "application/x-7z-compressed",
        "application/x-tar",
        "application/gzip",
        "application/x-bzip2",
    ],
    FileCategory.OTHER: [],
}

CATEGORY_DISPLAY_NAMES: Dict[FileCategory, str] = {
    FileCategory.IMAGES: "Images",
    FileCategory.DOCUMENTS: "Documents",
    FileCategory.VIDEOS: "Videos",
    FileCategory.AUDIO: "Audio",
    FileCategory.ARCHIVES: "Compressed Archives",
    FileCategory.OTHER: "Other",
}

ALL_ALLOWED_MIME_TYPES: List[str] = [
    mime for mime_types in CATEGORY_MIME_TYPES.values() for mime in mime_types
]
