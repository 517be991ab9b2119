"""Upload progress tracking shared across worker processes."""

import asyncio
import time
from typing import Callable, List, Optional

from ..repositories.progress_repo import ProgressBackend
from ..schemas.progress import ProgressRecord
from ..utils.constants import ProgressStatus
from ..utils.helpers import format_duration, format_file_size, format_speed
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ProgressTracker:
    """
    Progress records for in-flight uploads.

    Every operation reads the whole record from the backend, mutates it and
    writes it back. Writes are serialized by a process-local lock; no
    cross-process lock is needed because only the process driving an upload
    writes its record.

    Terminal records carry ``expires_at``; ``get`` hides them once it has
    passed and ``cleanup`` deletes them together with records that saw no
    update within the inactivity window.
    """

    def __init__(
        self,
        backend: ProgressBackend,
        completed_retention: float = 30.0,
        failed_retention: float = 60.0,
        inactivity_timeout: float = 300.0,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend
        self.completed_retention = completed_retention
        self.failed_retention = failed_retention
        self.inactivity_timeout = inactivity_timeout
        self.clock = clock
        self._lock = asyncio.Lock()

    async def start(self, file_id: str, file_name: str, total_size: int) -> ProgressRecord:
        """Create a pending record with nothing uploaded."""
        now = self.clock()
        record = ProgressRecord(
            file_id=file_id,
            file_name=file_name,
            total_size=total_size,
            started_at=now,
            updated_at=now,
        )
        await self._save(record)
        logger.info(
            "Tracking upload",
            file_id=file_id,
            file_name=file_name,
            total_size=format_file_size(total_size),
        )
        return record

    async def update(
        self,
        file_id: str,
        uploaded_size: int,
        status: Optional[ProgressStatus] = None,
        current_part: Optional[int] = None,
        total_parts: Optional[int] = None,
    ) -> Optional[ProgressRecord]:
        """
        Record bytes sent so far and recompute percentage, speed and ETA.
        Unknown, expired or already terminal records are left untouched.
        """
        async with self._lock:
            return await self._update(
                file_id, uploaded_size, status, current_part, total_parts
            )

    async def _update(
        self,
        file_id: str,
        uploaded_size: int,
        status: Optional[ProgressStatus],
        current_part: Optional[int],
        total_parts: Optional[int],
    ) -> Optional[ProgressRecord]:
        record = await self.get(file_id)
        if record is None or record.status.is_terminal:
            return None

        now = self.clock()
        elapsed = now - record.started_at
        speed = uploaded_size / elapsed if elapsed > 0 else 0.0
        remaining = max(record.total_size - uploaded_size, 0)

        if record.total_size > 0:
            percentage = min(round(uploaded_size / record.total_size * 100), 100)
        else:
            percentage = 100

        new_status = status or record.status
        if record.status == new_status == ProgressStatus.UPLOADING:
            percentage = max(percentage, record.percentage)

        record.uploaded_size = uploaded_size
        record.percentage = percentage
        record.status = new_status
        record.speed = speed
        record.estimated_time_remaining = remaining / speed if speed > 0 else None
        record.updated_at = now
        if current_part is not None and total_parts is not None:
            record.current_part = current_part
            record.total_parts = total_parts

        await self._save(record)
        logger.debug(
            "Upload progress",
            file_id=file_id,
            percentage=percentage,
            uploaded=format_file_size(uploaded_size),
            total=format_file_size(record.total_size),
            speed=format_speed(speed),
            part=f"{current_part}/{total_parts}" if current_part and total_parts else None,
        )
        return record

    async def complete(self, file_id: str) -> Optional[ProgressRecord]:
        """Mark the upload completed and schedule removal."""
        async with self._lock:
            record = await self.get(file_id)
            if record is None:
                return None

            now = self.clock()
            record.status = ProgressStatus.COMPLETED
            record.uploaded_size = record.total_size
            record.percentage = 100
            if record.total_parts:
                record.current_part = record.total_parts
            record.estimated_time_remaining = 0.0
            record.updated_at = now
            record.expires_at = now + self.completed_retention
            await self._save(record, ttl=self.completed_retention)

        duration = now - record.started_at
        logger.info(
            "Upload completed",
            file_id=file_id,
            file_name=record.file_name,
            size=format_file_size(record.total_size),
            duration=format_duration(duration),
            average_speed=format_speed(record.total_size / duration) if duration > 0 else None,
        )
        return record

    async def fail(self, file_id: str, error: str) -> Optional[ProgressRecord]:
        """Mark the upload failed with a readable reason and schedule removal."""
        async with self._lock:
            record = await self.get(file_id)
            if record is None:
                return None

            now = self.clock()
            record.status = ProgressStatus.FAILED
            record.error = error or "Upload failed"
            record.updated_at = now
            record.expires_at = now + self.failed_retention
            await self._save(record, ttl=self.failed_retention)

        logger.warning(
            "Upload failed", file_id=file_id, file_name=record.file_name, error=record.error
        )
        return record

    async def get(self, file_id: str) -> Optional[ProgressRecord]:
        data = await self.backend.get(file_id)
        if data is None:
            return None
        record = ProgressRecord.model_validate(data)
        if record.is_expired(self.clock()):
            await self.backend.delete(file_id)
            return None
        return record

    async def get_all(self) -> List[ProgressRecord]:
        now = self.clock()
        records = [ProgressRecord.model_validate(d) for d in await self.backend.list()]
        return [r for r in records if not r.is_expired(now)]

    async def remove(self, file_id: str) -> None:
        await self.backend.delete(file_id)

    async def cleanup(self) -> int:
        """Delete expired and inactive records. Returns how many were removed."""
        now = self.clock()
        removed = 0
        for data in await self.backend.list():
            record = ProgressRecord.model_validate(data)
            inactive = now - record.updated_at > self.inactivity_timeout
            if record.is_expired(now) or inactive:
                await self.backend.delete(record.file_id)
                removed += 1

        if removed:
            logger.info("Cleaned up progress records", removed=removed)
        return removed

    async def _save(self, record: ProgressRecord, ttl: Optional[float] = None) -> None:
        if ttl is None:
            ttl = self.inactivity_timeout
        await self.backend.set(record.file_id, record.model_dump(mode="json"), ttl=ttl)
