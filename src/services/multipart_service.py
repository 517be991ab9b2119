"""Multipart upload orchestration for large files."""

import asyncio
import os
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.exceptions import (
    AbortError,
    CompletionError,
    SessionInitError,
    StorageError,
    UploadServiceError,
)
from ..repositories.storage_repo import StorageRepository
from ..utils.constants import MultipartState, ProgressStatus
from ..utils.logger import get_logger
from .concurrency import ConcurrencyGate
from .part_uploader import PartResult, PartUploader
from .partition import MIN_PART_SIZE, ByteRange, PartitionPlan, plan_parts
from .progress_service import ProgressTracker

logger = get_logger(__name__)


@dataclass
class UploadResult:
    url: str
    key: str
    etag: Optional[str] = None


@dataclass
class UploadSession:
    """One file's multipart transfer. ``upload_id`` is set only while open."""

    key: str
    total_size: int
    part_size: int
    concurrency: int
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    upload_id: Optional[str] = None
    state: MultipartState = MultipartState.NOT_STARTED
    parts: List[PartResult] = field(default_factory=list)
    uploaded_bytes: int = 0


class MultipartOrchestrator:
    """
    Drives an upload from a file on disk to object storage.

    Files under ``large_file_threshold`` take a single PUT. Larger files go
    through multipart upload:

        not_started -> initiated -> parts_in_flight -> completing -> completed

    Any failure after the session is opened moves to ``failed`` and then
    ``aborting -> aborted`` so the backend drops the uncommitted parts.
    Parts are sent in batches of ``concurrency``; a failed part stops the
    plan once its batch has settled.
    """

    def __init__(
        self,
        storage_repo: StorageRepository,
        progress: ProgressTracker,
        part_uploader: PartUploader,
        large_file_threshold: int,
        part_size: int,
        concurrency: int = 3,
        min_part_size: int = MIN_PART_SIZE,
    ):
        self.storage_repo = storage_repo
        self.progress = progress
        self.part_uploader = part_uploader
        self.large_file_threshold = large_file_threshold
        self.part_size = part_size
        self.concurrency = concurrency
        self.min_part_size = min_part_size

    async def upload(
        self,
        session_id: str,
        key: str,
        file_path: str,
        total_size: int,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> UploadResult:
        """Upload ``file_path`` to ``key``, reporting progress under ``session_id``."""
        if total_size < self.large_file_threshold:
            return await self._upload_single(
                session_id, key, file_path, total_size, content_type, metadata
            )

        session = UploadSession(
            session_id=session_id,
            key=key,
            total_size=total_size,
            part_size=self.part_size,
            concurrency=self.concurrency,
        )
        return await self._upload_multipart(session, file_path, content_type, metadata)

    async def _upload_single(
        self,
        session_id: str,
        key: str,
        file_path: str,
        total_size: int,
        content_type: str,
        metadata: Optional[Dict[str, str]],
    ) -> UploadResult:
        await self.progress.update(session_id, 0, ProgressStatus.UPLOADING, 0, 1)
        try:
            etag = await self.storage_repo.upload_file(
                file_path=file_path,
                key=key,
                content_type=content_type,
                metadata=metadata,
            )
        except Exception as e:
            logger.error("Single upload failed", key=key, exc_info=e)
            reason = e.message if isinstance(e, UploadServiceError) else "Upload failed"
            await self._mark_failed(session_id, reason)
            if isinstance(e, UploadServiceError):
                raise
            raise StorageError(reason) from e

        await self.progress.complete(session_id)
        logger.info("Single upload completed", key=key, size=total_size, etag=etag)
        return UploadResult(url=self.storage_repo.get_file_url(key), key=key, etag=etag)

    async def _upload_multipart(
        self,
        session: UploadSession,
        file_path: str,
        content_type: str,
        metadata: Optional[Dict[str, str]],
    ) -> UploadResult:
        try:
            plan = plan_parts(session.total_size, session.part_size, self.min_part_size)
        except UploadServiceError as e:
            session.state = MultipartState.FAILED
            await self._mark_failed(session.session_id, e.message)
            raise

        try:
            session.upload_id = await self.storage_repo.initiate_multipart_upload(
                key=session.key, content_type=content_type, metadata=metadata
            )
        except StorageError as e:
            session.state = MultipartState.FAILED
            await self._mark_failed(session.session_id, "Could not start multipart upload")
            raise SessionInitError("Could not start multipart upload") from e

        session.state = MultipartState.INITIATED
        logger.info(
            "Multipart upload initiated",
            key=session.key,
            upload_id=session.upload_id,
            total_size=session.total_size,
            part_size=plan.part_size,
            total_parts=plan.part_count,
            concurrency=session.concurrency,
        )

        try:
            await self._upload_parts(session, plan, file_path)
            etag = await self._complete(session, plan)
        except Exception as e:
            session.state = MultipartState.FAILED
            reason = e.message if isinstance(e, UploadServiceError) else "Multipart upload failed"
            logger.error(
                "Multipart upload failed",
                key=session.key,
                upload_id=session.upload_id,
                part_number=getattr(e, "part_number", None),
                exc_info=e,
            )
            await self._abort(session)
            await self._mark_failed(session.session_id, reason)
            if isinstance(e, UploadServiceError):
                raise
            raise StorageError(reason) from e

        await self.progress.complete(session.session_id)
        return UploadResult(
            url=self.storage_repo.get_file_url(session.key), key=session.key, etag=etag
        )

    async def _upload_parts(
        self, session: UploadSession, plan: PartitionPlan, file_path: str
    ) -> None:
        session.state = MultipartState.PARTS_IN_FLIGHT
        await self.progress.update(
            session.session_id, 0, ProgressStatus.UPLOADING, 0, plan.part_count
        )
        gate = ConcurrencyGate(session.concurrency)

        for batch_start in range(0, plan.part_count, session.concurrency):
            # Keep the temp file younger than the cleanup sweep's max age
            await asyncio.get_running_loop().run_in_executor(None, os.utime, file_path)
            batch = plan.ranges[batch_start:batch_start + session.concurrency]
            outcomes = await asyncio.gather(
                *(self._upload_one(session, plan, gate, r, file_path) for r in batch),
                return_exceptions=True,
            )

            failure: Optional[BaseException] = None
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    failure = failure or outcome
            if failure is not None:
                raise failure

            logger.info(
                "Parts uploaded",
                key=session.key,
                uploaded_parts=len(session.parts),
                total_parts=plan.part_count,
            )

    async def _upload_one(
        self,
        session: UploadSession,
        plan: PartitionPlan,
        gate: ConcurrencyGate,
        byte_range: ByteRange,
        file_path: str,
    ) -> PartResult:
        async with gate.slot():
            result = await self.part_uploader.upload_part(
                file_path=file_path,
                key=session.key,
                upload_id=session.upload_id,
                byte_range=byte_range,
            )

        session.parts.append(result)
        session.uploaded_bytes += result.size
        await self.progress.update(
            session.session_id,
            session.uploaded_bytes,
            ProgressStatus.UPLOADING,
            len(session.parts),
            plan.part_count,
        )
        return result

    async def _complete(self, session: UploadSession, plan: PartitionPlan) -> Optional[str]:
        session.state = MultipartState.COMPLETING
        ordered = sorted(session.parts, key=lambda p: p.part_number)
        numbers = [p.part_number for p in ordered]
        expected = list(range(1, plan.part_count + 1))
        if numbers != expected:
            missing = sorted(set(expected) - set(numbers))
            raise CompletionError(f"Cannot complete upload, missing parts: {missing}")

        try:
            etag = await self.storage_repo.complete_multipart_upload(
                key=session.key,
                upload_id=session.upload_id,
                parts=[{"part_number": p.part_number, "etag": p.etag} for p in ordered],
            )
        except StorageError as e:
            raise CompletionError("Storage rejected multipart completion") from e

        session.state = MultipartState.COMPLETED
        logger.info(
            "Multipart upload completed",
            key=session.key,
            upload_id=session.upload_id,
            total_parts=plan.part_count,
            etag=etag,
        )
        session.upload_id = None
        return etag

    async def _abort(self, session: UploadSession) -> None:
        if not session.upload_id:
            return
        session.state = MultipartState.ABORTING
        try:
            await self.storage_repo.abort_multipart_upload(
                key=session.key, upload_id=session.upload_id
            )
            logger.info("Multipart upload aborted", key=session.key, upload_id=session.upload_id)
        except Exception as e:
            error = AbortError(f"Failed to abort multipart upload {session.upload_id}")
            error.__cause__ = e
            logger.error(error.message, key=session.key, exc_info=error)
        session.state = MultipartState.ABORTED
        session.upload_id = None

    async def _mark_failed(self, session_id: str, reason: str) -> None:
        # A progress backend outage must not replace the upload error
        try:
            await self.progress.fail(session_id, reason)
        except Exception as e:
            logger.error("Could not record upload failure", file_id=session_id, exc_info=e)
