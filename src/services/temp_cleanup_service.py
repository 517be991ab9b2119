"""Cleanup of temporary upload files on local disk."""

import os
import time
from dataclasses import dataclass, asdict

import aiofiles.os

from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CleanupStats:
    files_deleted: int = 0
    total_size: int = 0
    errors: int = 0


@dataclass
class TempDirStats:
    total_files: int = 0
    total_size: int = 0
    old_files: int = 0
    old_files_size: int = 0


class TempFileCleanupService:
    """
    Owns the temporary upload directory.

    Upload requests delete their own file through ``cleanup_file``; the
    periodic ``cleanup`` sweep catches anything left behind by a crashed
    worker once it is older than ``max_age`` seconds.
    """

    def __init__(self, temp_dir: str, max_age: float = 3600.0):
        self.temp_dir = os.path.abspath(temp_dir)
        self.max_age = max_age
        os.makedirs(self.temp_dir, exist_ok=True)

    def _is_inside_temp_dir(self, file_path: str) -> bool:
        path = os.path.abspath(file_path)
        return os.path.commonpath([path, self.temp_dir]) == self.temp_dir

    async def cleanup_file(self, file_path: str) -> bool:
        """Delete one temporary file. Refuses paths outside the temp directory."""
        if not self._is_inside_temp_dir(file_path):
            logger.warning(
                "Refusing to delete file outside temp directory",
                file_path=file_path,
                temp_dir=self.temp_dir,
            )
            return False
        try:
            await aiofiles.os.remove(file_path)
            logger.debug("Temp file deleted", file_path=file_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Failed to delete temp file", file_path=file_path, error=str(e))
            return False
        return True

    async def cleanup(self) -> CleanupStats:
        """Delete regular files older than ``max_age``."""
        stats = CleanupStats()
        if not os.path.isdir(self.temp_dir):
            return stats

        now = time.time()
        for name in await aiofiles.os.listdir(self.temp_dir):
            path = os.path.join(self.temp_dir, name)
            try:
                file_stats = await aiofiles.os.stat(path)
                if not os.path.isfile(path):
                    continue
                if now - file_stats.st_mtime > self.max_age:
                    await aiofiles.os.remove(path)
                    stats.files_deleted += 1
                    stats.total_size += file_stats.st_size
            except FileNotFoundError:
                continue
            except OSError as e:
                stats.errors += 1
                logger.error("Failed to delete temp file", file=name, error=str(e))

        if stats.files_deleted or stats.errors:
            logger.info("Temp file cleanup completed", **asdict(stats))
        return stats

    async def get_stats(self) -> TempDirStats:
        stats = TempDirStats()
        if not os.path.isdir(self.temp_dir):
            return stats

        now = time.time()
        for name in await aiofiles.os.listdir(self.temp_dir):
            path = os.path.join(self.temp_dir, name)
            try:
                file_stats = await aiofiles.os.stat(path)
            except OSError:
                continue
            if not os.path.isfile(path):
                continue
            stats.total_files += 1
            stats.total_size += file_stats.st_size
            if now - file_stats.st_mtime > self.max_age:
                stats.old_files += 1
                stats.old_files_size += file_stats.st_size
        return stats
