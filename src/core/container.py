"""Service wiring."""

from dataclasses import dataclass
from typing import Optional

from ..config.redis import get_redis
from ..config.settings import Settings
from ..repositories.file_repo import FileRepository
from ..repositories.progress_repo import (
    FileProgressBackend,
    InMemoryProgressBackend,
    ProgressBackend,
    RedisProgressBackend,
)
from ..repositories.storage_repo import StorageRepository
from ..services.concurrency import AdmissionController
from ..services.file_service import FileService
from ..services.multipart_service import MultipartOrchestrator
from ..services.part_uploader import PartUploader
from ..services.progress_service import ProgressTracker
from ..services.temp_cleanup_service import TempFileCleanupService
from ..services.validation_service import FileValidationService


@dataclass
class Services:
    settings: Settings
    file_repo: FileRepository
    storage_repo: StorageRepository
    progress: ProgressTracker
    admission: AdmissionController
    orchestrator: MultipartOrchestrator
    validation: FileValidationService
    temp_cleanup: TempFileCleanupService
    file_service: FileService


def build_progress_backend(settings: Settings) -> ProgressBackend:
    backend = settings.progress_backend.lower()
    if backend == "memory":
        return InMemoryProgressBackend()
    if backend == "file":
        return FileProgressBackend(settings.progress_dir)
    if backend == "redis":
        return RedisProgressBackend(get_redis(settings.redis_url))
    raise ValueError(f"Unknown progress backend: {settings.progress_backend}")


def build_services(
    settings: Settings,
    storage_repo: Optional[StorageRepository] = None,
    progress_backend: Optional[ProgressBackend] = None,
) -> Services:
    """Construct every service explicitly. Overrides are used by tests."""
    storage_repo = storage_repo or StorageRepository(settings)
    file_repo = FileRepository()
    progress = ProgressTracker(
        progress_backend or build_progress_backend(settings),
        completed_retention=settings.progress_completed_retention_seconds,
        failed_retention=settings.progress_failed_retention_seconds,
        inactivity_timeout=settings.progress_inactivity_seconds,
    )
    admission = AdmissionController(settings.max_concurrent_large_uploads)
    orchestrator = MultipartOrchestrator(
        storage_repo=storage_repo,
        progress=progress,
        part_uploader=PartUploader(
            storage_repo,
            max_attempts=settings.part_upload_max_attempts,
            retry_backoff=settings.part_upload_retry_backoff,
        ),
        large_file_threshold=settings.large_file_threshold_bytes,
        part_size=settings.multipart_part_size_bytes,
        concurrency=settings.multipart_queue_size,
        min_part_size=settings.multipart_min_part_size_bytes,
    )
    validation = FileValidationService(
        max_file_size=settings.max_file_size,
        allowed_mime_types=settings.allowed_file_types or None,
        strict_video_signature=settings.strict_video_signature,
    )
    temp_cleanup = TempFileCleanupService(
        settings.temp_upload_dir, max_age=settings.temp_file_max_age_seconds
    )
    file_service = FileService(
        settings=settings,
        file_repo=file_repo,
        storage_repo=storage_repo,
        validation_service=validation,
        orchestrator=orchestrator,
        progress=progress,
        admission=admission,
        temp_cleanup=temp_cleanup,
    )
    return Services(
        settings=settings,
        file_repo=file_repo,
        storage_repo=storage_repo,
        progress=progress,
        admission=admission,
        orchestrator=orchestrator,
        validation=validation,
        temp_cleanup=temp_cleanup,
        file_service=file_service,
    )
