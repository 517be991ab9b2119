"""File service for file upload and management."""

import os
import re
import tempfile
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional, Set, Tuple

import aiofiles
from fastapi import UploadFile

from ..config.settings import Settings
from ..core.exceptions import (
    AdmissionRejected,
    ConflictError,
    NotFoundError,
    SecurityError,
    StorageError,
    UploadServiceError,
    ValidationError,
)
from ..models.file_entity import FileEntity
from ..repositories.file_repo import FileRepository
from ..repositories.storage_repo import StorageRepository
from ..schemas.file import (
    CategoryCount,
    DeleteFileResponse,
    FileDownloadResponse,
    FileListResponse,
    FileResponse,
    UploadFileResponse,
)
from ..utils.constants import FileCategory, FileStatus, ProgressStatus
from ..utils.helpers import generate_storage_key
from ..utils.logger import get_logger
from .concurrency import AdmissionController
from .multipart_service import MultipartOrchestrator
from .progress_service import ProgressTracker
from .temp_cleanup_service import TempFileCleanupService
from .validation_service import FileValidationService, VirusScanner

logger = get_logger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024
_EXTENSION_PATTERN = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


class FileService:
    """Service for file operations."""

    def __init__(
        self,
        settings: Settings,
        file_repo: FileRepository,
        storage_repo: StorageRepository,
        validation_service: FileValidationService,
        orchestrator: MultipartOrchestrator,
        progress: ProgressTracker,
        admission: AdmissionController,
        temp_cleanup: TempFileCleanupService,
        virus_scanner: Optional[VirusScanner] = None,
    ):
        self.settings = settings
        self.file_repo = file_repo
        self.storage_repo = storage_repo
        self.validation_service = validation_service
        self.orchestrator = orchestrator
        self.progress = progress
        self.admission = admission
        self.temp_cleanup = temp_cleanup
        self.virus_scanner = virus_scanner or VirusScanner()
        self._active_ids: Set[str] = set()

    async def handle_upload(
        self,
        file: UploadFile,
        file_id: Optional[str] = None,
        uploaded_by: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> UploadFileResponse:
        """
        Handle file upload: spool to disk, validate, admit, upload to storage.

        Progress is tracked under ``file_id``. The temporary file is deleted
        and the progress record marked failed on every error path.
        """
        file_id = file_id or str(uuid.uuid4())
        # Reserve the id before the first await so concurrent requests cannot share it
        if file_id in self._active_ids:
            raise ConflictError(f"File with ID {file_id} already exists")
        self._active_ids.add(file_id)
        try:
            if await self.file_repo.find_by_id(file_id):
                raise ConflictError(f"File with ID {file_id} already exists")
            return await self._process_upload(file, file_id, uploaded_by, description, tags)
        finally:
            self._active_ids.discard(file_id)

    async def _process_upload(
        self,
        file: UploadFile,
        file_id: str,
        uploaded_by: Optional[str],
        description: Optional[str],
        tags: Optional[Dict[str, str]],
    ) -> UploadFileResponse:
        original_name = file.filename or "unnamed"
        mime_type = file.content_type or "application/octet-stream"
        threshold = self.settings.large_file_threshold_bytes
        temp_path: Optional[str] = None
        admitted = False

        try:
            # Reject before spooling when the declared size is already known
            if file.size is not None and file.size >= threshold:
                self._admit()
                admitted = True

            temp_path, size = await self._spool_to_disk(file, file_id, original_name)
            await self.progress.start(file_id, original_name, size)
            await self.progress.update(file_id, 0, ProgressStatus.VALIDATING)

            sample = await self._read_sample(temp_path)
            validation = self.validation_service.validate_file(
                sample, original_name, mime_type, size
            )
            if not validation.is_valid:
                raise ValidationError(
                    f"File validation failed: {', '.join(validation.errors)}"
                )

            scan = await self.virus_scanner.scan_file(temp_path)
            if not scan.is_clean:
                raise SecurityError(f"File rejected by virus scan: {scan.threat_found}")

            if size >= threshold and not admitted:
                self._admit()
                admitted = True

            file_name = validation.sanitized_name or original_name
            category = FileCategory.from_mime_type(mime_type)
            entity = FileEntity(
                id=file_id,
                name=file_name,
                size=size,
                mime_type=mime_type,
                storage_key=generate_storage_key(file_name, category.value),
                metadata={
                    "uploaded_by": uploaded_by or "anonymous",
                    "description": description,
                    "tags": tags or {},
                },
            )
            await self.file_repo.save(entity)
            entity.mark_as_uploading()
            await self.file_repo.update(entity)

            try:
                result = await self.orchestrator.upload(
                    session_id=file_id,
                    key=entity.storage_key,
                    file_path=temp_path,
                    total_size=size,
                    content_type=mime_type,
                    metadata=self._storage_metadata(entity, category),
                )
            except Exception as e:
                entity.mark_as_failed()
                await self.file_repo.update(entity)
                summary = e.message if isinstance(e, UploadServiceError) else "unexpected error"
                raise SecurityError(f"Upload failed: {summary}") from e

            entity.mark_as_uploaded(result.url)
            await self.file_repo.update(entity)
            logger.info(
                "File uploaded",
                file_id=file_id,
                key=entity.storage_key,
                size=size,
                category=category.value,
            )

            return UploadFileResponse(
                file_id=entity.id,
                file_name=entity.name,
                size=entity.size,
                mime_type=entity.mime_type,
                category=entity.category.value,
                status=entity.status.value,
                url=entity.url,
                uploaded_at=entity.updated_at,
            )
        except Exception as e:
            reason = e.message if isinstance(e, UploadServiceError) else "Upload failed"
            await self._mark_progress_failed(file_id, reason)
            raise
        finally:
            if admitted:
                self.admission.release()
            if temp_path:
                await self.temp_cleanup.cleanup_file(temp_path)

    async def get_file_details(self, file_id: str) -> FileResponse:
        """Get file details by ID."""
        return self._to_response(await self._get_entity(file_id))

    async def list_files(
        self, category: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> FileListResponse:
        """List files, optionally filtered by category, with per-category counts."""
        all_files = [
            f for f in await self.file_repo.find_all() if f.status != FileStatus.DELETED
        ]

        filtered = all_files
        if category:
            if not FileCategory.is_valid(category):
                raise ValidationError(f"Invalid category: {category}")
            filtered = [f for f in all_files if f.category.value == category]

        counts: Dict[FileCategory, int] = {}
        for f in all_files:
            counts[f.category] = counts.get(f.category, 0) + 1

        return FileListResponse(
            files=[self._to_response(f) for f in filtered[offset:offset + limit]],
            total=len(filtered),
            limit=limit,
            offset=offset,
            categories=[
                CategoryCount(name=c.value, display_name=c.display_name, count=counts.get(c, 0))
                for c in FileCategory
            ],
        )

    async def get_download_url(
        self, file_id: str, expiration: Optional[int] = None
    ) -> FileDownloadResponse:
        """Generate presigned download URL for file."""
        expiration = expiration or self.settings.presigned_url_expiration
        entity = await self._get_entity(file_id)
        if not entity.url:
            raise ConflictError(f"File with ID {file_id} is not available for download")

        try:
            download_url = await self.storage_repo.generate_presigned_url(
                entity.storage_key, expiration=expiration
            )
        except StorageError as e:
            raise SecurityError("Could not generate download URL") from e

        return FileDownloadResponse(
            file_id=entity.id,
            file_name=entity.name,
            download_url=download_url,
            expires_in=expiration,
            size=entity.size,
            mime_type=entity.mime_type,
        )

    async def delete_file(self, file_id: str) -> DeleteFileResponse:
        """Delete the stored object and mark the record deleted."""
        entity = await self._get_entity(file_id)
        if not entity.can_be_deleted():
            raise ConflictError(
                f"File with ID {file_id} cannot be deleted in its current state"
            )

        try:
            await self.storage_repo.delete_file(entity.storage_key)
        except StorageError as e:
            raise ConflictError(f"Failed to delete file: {e.message}") from e

        entity.mark_as_deleted()
        await self.file_repo.update(entity)
        return DeleteFileResponse(
            success=True, message=f"File {entity.name} deleted successfully"
        )

    async def _get_entity(self, file_id: str) -> FileEntity:
        entity = await self.file_repo.find_by_id(file_id)
        if not entity:
            raise NotFoundError(f"File with ID {file_id} not found")
        return entity

    async def _spool_to_disk(
        self, file: UploadFile, file_id: str, original_name: str
    ) -> Tuple[str, int]:
        """Copy the request body to the temp directory in chunks."""
        extension = os.path.splitext(original_name)[1]
        if not _EXTENSION_PATTERN.match(extension):
            extension = ""
        fd, temp_path = tempfile.mkstemp(
            prefix=f"file-{file_id}-", suffix=extension, dir=self.temp_cleanup.temp_dir
        )
        os.close(fd)

        size = 0
        try:
            async with aiofiles.open(temp_path, "wb") as out:
                while True:
                    chunk = await file.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.settings.max_file_size:
                        raise ValidationError(
                            f"File size exceeds maximum allowed size of "
                            f"{self.settings.max_file_size_mb} MB"
                        )
                    await out.write(chunk)
        except BaseException:
            await self.temp_cleanup.cleanup_file(temp_path)
            raise
        return temp_path, size

    async def _read_sample(self, temp_path: str) -> bytes:
        async with aiofiles.open(temp_path, "rb") as f:
            return await f.read(self.settings.validation_sample_size)

    async def _mark_progress_failed(self, file_id: str, reason: str) -> None:
        try:
            record = await self.progress.get(file_id)
            if record is not None and record.status != ProgressStatus.FAILED:
                await self.progress.fail(file_id, reason)
        except Exception as e:
            logger.error("Could not record upload failure", file_id=file_id, exc_info=e)

    def _admit(self) -> None:
        if not self.admission.try_admit():
            raise AdmissionRejected()

    @staticmethod
    def _storage_metadata(entity: FileEntity, category: FileCategory) -> Dict[str, str]:
        # S3 user metadata must be ASCII
        def ascii_only(value: str) -> str:
            return value.encode("ascii", "replace").decode("ascii")

        return {
            "original-name": ascii_only(entity.name),
            "uploaded-by": ascii_only(entity.metadata.get("uploaded_by") or "anonymous"),
            "uploaded-at": datetime.now(timezone.utc).isoformat(),
            "category": category.value,
        }

    @staticmethod
    def _to_response(entity: FileEntity) -> FileResponse:
        return FileResponse(
            file_id=entity.id,
            file_name=entity.name,
            size=entity.size,
            mime_type=entity.mime_type,
            category=entity.category.value,
            status=entity.status.value,
            url=entity.url,
            storage_key=entity.storage_key,
            metadata=entity.metadata,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
