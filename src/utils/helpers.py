"""Helper functions for common operations."""

import re
from datetime import datetime, timezone
from typing import Optional

_FORBIDDEN_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_KEY_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.\-]")


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for safe storage.
    Replaces path separators and control characters, strips leading and
    trailing dots and caps the length at 255 characters.
    """
    sanitized = _FORBIDDEN_NAME_CHARS.sub("_", filename or "")
    sanitized = sanitized.lstrip(".").rstrip(".")[:255]
    return sanitized or "unnamed_file"


def generate_storage_key(
    filename: str, category: str, prefix: Optional[str] = None
) -> str:
    """
    Generate S3-compatible storage key.
    Format: [prefix/]category/<iso-timestamp>-filename
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
    safe_name = _KEY_UNSAFE_CHARS.sub("_", filename)
    if prefix:
        return f"{prefix}/{category}/{timestamp}-{safe_name}"
    return f"{category}/{timestamp}-{safe_name}"


def format_file_size(size_bytes: float) -> str:
    """Format file size in human-readable format."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"


def format_speed(bytes_per_second: float) -> str:
    """Format transfer speed."""
    return f"{format_file_size(bytes_per_second)}/s"


def format_duration(seconds: float) -> str:
    """Format a duration as 42s, 3m 5s or 1h 12m."""
    if seconds < 60:
        return f"{round(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m {round(seconds % 60)}s"
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"
