"""Upload one byte range of a file on disk as one multipart part."""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import aiofiles

from ..core.exceptions import PartUploadError
from ..repositories.storage_repo import StorageRepository
from ..utils.logger import get_logger
from .partition import ByteRange

logger = get_logger(__name__)


@dataclass(frozen=True)
class PartResult:
    part_number: int
    start: int
    end: int
    etag: str
    completed_at: float

    @property
    def size(self) -> int:
        return self.end - self.start


class PartUploader:
    """
    Reads exactly one part from disk and sends it to storage.

    Failed attempts are retried with exponential backoff. After
    ``max_attempts`` failures a PartUploadError is raised, chained to the last
    cause. Progress state is the caller's business.
    """

    def __init__(
        self,
        storage_repo: StorageRepository,
        max_attempts: int = 3,
        retry_backoff: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.storage_repo = storage_repo
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff = retry_backoff
        self.sleep = sleep

    async def upload_part(
        self, file_path: str, key: str, upload_id: str, byte_range: ByteRange
    ) -> PartResult:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                body = await self._read_range(file_path, byte_range)
                etag = await self.storage_repo.upload_part(
                    key=key,
                    upload_id=upload_id,
                    part_number=byte_range.part_number,
                    body=body,
                )
                logger.debug(
                    "Part uploaded",
                    key=key,
                    part_number=byte_range.part_number,
                    size=byte_range.size,
                    attempt=attempt,
                )
                return PartResult(
                    part_number=byte_range.part_number,
                    start=byte_range.start,
                    end=byte_range.end,
                    etag=etag,
                    completed_at=time.time(),
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    "Part upload attempt failed",
                    key=key,
                    part_number=byte_range.part_number,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(e),
                )
                if attempt < self.max_attempts and self.retry_backoff > 0:
                    await self.sleep(self.retry_backoff * 2 ** (attempt - 1))

        raise PartUploadError(byte_range.part_number) from last_error

    async def _read_range(self, file_path: str, byte_range: ByteRange) -> bytes:
        async with aiofiles.open(file_path, "rb") as f:
            await f.seek(byte_range.start)
            body = await f.read(byte_range.size)
        if len(body) != byte_range.size:
            raise IOError(
                f"Short read for part {byte_range.part_number}: "
                f"expected {byte_range.size} bytes, got {len(body)}"
            )
        return body
