"""File validation: size, MIME type, name and content signature."""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..utils.constants import ALL_ALLOWED_MIME_TYPES
from ..utils.helpers import sanitize_filename
from ..utils.logger import get_logger

logger = get_logger(__name__)

MIME_TYPE_PATTERN = re.compile(
    r"^[a-zA-Z0-9][a-zA-Z0-9!#$&\-\^_]*/[a-zA-Z0-9][a-zA-Z0-9!#$&\-\^_.+]*$"
)

# (offset, magic bytes); any matching entry accepts the file.
Signature = Tuple[int, bytes]

BLOCKING_SIGNATURES: Dict[str, List[Signature]] = {
    "image/jpeg": [(0, b"\xff\xd8\xff")],
    "image/png": [(0, b"\x89PNG")],
    "image/gif": [(0, b"GIF8")],
    "application/pdf": [(0, b"%PDF")],
}

VIDEO_SIGNATURES: Dict[str, List[Signature]] = {
    "video/mp4": [(4, b"ftyp")],
    "video/quicktime": [(4, b"ftyp"), (4, b"moov"), (4, b"mdat"), (4, b"wide")],
    "video/3gpp": [(4, b"ftyp")],
    "video/webm": [(0, b"\x1a\x45\xdf\xa3")],
    "video/x-msvideo": [(0, b"RIFF")],
    "video/mpeg": [(0, b"\x00\x00\x01\xba"), (0, b"\x00\x00\x01\xb3")],
    "video/x-flv": [(0, b"FLV")],
    "video/x-ms-wmv": [(0, b"\x30\x26\xb2\x75")],
}


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    sanitized_name: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class FileValidationService:
    """
    Validates an upload from its declared size, MIME type, name and the first
    bytes of its content.

    Video signature mismatches are only reported as warnings unless
    ``strict_video_signature`` is set; other signature mismatches reject the
    file.
    """

    MIN_SAMPLE_SIZE = 4

    def __init__(
        self,
        max_file_size: int,
        allowed_mime_types: Optional[Sequence[str]] = None,
        strict_video_signature: bool = False,
    ):
        self.max_file_size = max_file_size
        self.allowed_mime_types = list(allowed_mime_types or ALL_ALLOWED_MIME_TYPES)
        self.strict_video_signature = strict_video_signature

    def validate_file(
        self, sample: bytes, original_name: str, mime_type: str, size: int
    ) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []

        if size > self.max_file_size:
            errors.append(
                f"File size {size} exceeds maximum allowed size of {self.max_file_size} bytes"
            )
        if size <= 0:
            errors.append("File size must be greater than 0")

        if not mime_type or not MIME_TYPE_PATTERN.match(mime_type):
            errors.append("Invalid MIME type format")
        elif mime_type not in self.allowed_mime_types:
            errors.append(f"MIME type '{mime_type}' is not allowed")

        sanitized_name = sanitize_filename(original_name)

        signature_error = self._check_signature(sample, mime_type)
        if signature_error:
            if mime_type in VIDEO_SIGNATURES and not self.strict_video_signature:
                warnings.append(signature_error)
                logger.warning(
                    "Video signature mismatch, upload allowed",
                    file_name=sanitized_name,
                    mime_type=mime_type,
                )
            else:
                errors.append(signature_error)

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            sanitized_name=sanitized_name,
            warnings=warnings,
        )

    def _check_signature(self, sample: bytes, mime_type: str) -> Optional[str]:
        if len(sample) < self.MIN_SAMPLE_SIZE:
            return "File is too small to validate"

        expected = BLOCKING_SIGNATURES.get(mime_type) or VIDEO_SIGNATURES.get(mime_type)
        if not expected:
            return None

        for offset, magic in expected:
            if sample[offset:offset + len(magic)] == magic:
                return None
        return f"File signature does not match MIME type '{mime_type}'"


@dataclass
class ScanResult:
    is_clean: bool
    threat_found: Optional[str] = None
    scan_id: Optional[str] = None


class VirusScanner:
    """Scanner interface. The default never finds anything."""

    async def scan_file(self, file_path: str) -> ScanResult:
        return ScanResult(is_clean=True)
