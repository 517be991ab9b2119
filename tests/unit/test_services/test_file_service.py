"""Unit tests for file service."""

import asyncio
import os
from unittest.mock import AsyncMock

import pytest

from src.core.container import build_services
from src.core.exceptions import (
    AdmissionRejected,
    ConflictError,
    NotFoundError,
    SecurityError,
    StorageError,
    ValidationError,
)
from src.repositories.progress_repo import InMemoryProgressBackend
from src.schemas.file import UploadFileResponse
from src.utils.constants import FileStatus, ProgressStatus

MIB = 1024 * 1024
PNG = b"\x89PNG\r\n\x1a\n"


def _services(settings, storage_repo):
    return build_services(
        settings, storage_repo=storage_repo, progress_backend=InMemoryProgressBackend()
    )


def _temp_files(services):
    return os.listdir(services.temp_cleanup.temp_dir)


@pytest.mark.asyncio
async def test_small_upload_success(services, storage_repo, make_upload):
    """A 3 MiB file takes the single PUT path."""
    content = PNG + b"\x00" * (3 * MIB - len(PNG))

    result = await services.file_service.handle_upload(
        make_upload(content, "holiday photo.png", "image/png"),
        file_id="file-1",
        uploaded_by="alice",
    )

    assert isinstance(result, UploadFileResponse)
    assert result.status == "uploaded"
    assert result.size == 3 * MIB
    assert result.category == "images"
    assert result.url.startswith("https://test-bucket.s3.us-east-1.amazonaws.com/images/")

    storage_repo.upload_file.assert_awaited_once()
    storage_repo.initiate_multipart_upload.assert_not_awaited()
    kwargs = storage_repo.upload_file.call_args.kwargs
    assert kwargs["content_type"] == "image/png"
    assert kwargs["key"].startswith("images/")
    assert kwargs["key"].endswith("-holiday_photo.png")
    assert kwargs["metadata"]["uploaded-by"] == "alice"

    record = await services.progress.get("file-1")
    assert record.status == ProgressStatus.COMPLETED
    assert record.percentage == 100
    assert _temp_files(services) == []


@pytest.mark.asyncio
async def test_large_upload_uses_multipart(small_part_settings, storage_repo, make_upload):
    services = _services(small_part_settings, storage_repo)
    content = PNG + b"\x01" * (100 * 1024 - len(PNG))

    result = await services.file_service.handle_upload(
        make_upload(content), file_id="file-2"
    )

    assert result.status == "uploaded"
    assert storage_repo.upload_part.await_count == 7
    storage_repo.complete_multipart_upload.assert_awaited_once()
    storage_repo.upload_file.assert_not_awaited()
    assert services.admission.active == 0
    assert _temp_files(services) == []


@pytest.mark.asyncio
async def test_validation_failure(services, storage_repo, make_upload):
    content = b"%PDF-1.7 not really a png"

    with pytest.raises(ValidationError, match="File validation failed"):
        await services.file_service.handle_upload(
            make_upload(content, "fake.png", "image/png"), file_id="file-3"
        )

    storage_repo.upload_file.assert_not_awaited()
    record = await services.progress.get("file-3")
    assert record.status == ProgressStatus.FAILED
    assert "File signature does not match" in record.error
    assert await services.file_repo.find_by_id("file-3") is None
    assert _temp_files(services) == []


@pytest.mark.asyncio
async def test_oversize_body_rejected_while_spooling(test_settings, storage_repo, make_upload):
    services = _services(test_settings.model_copy(update={"max_file_size": 1024}), storage_repo)

    with pytest.raises(ValidationError, match="exceeds maximum"):
        await services.file_service.handle_upload(make_upload(PNG + b"\x00" * 2048))

    storage_repo.upload_file.assert_not_awaited()
    assert _temp_files(services) == []


@pytest.mark.asyncio
async def test_admission_rejected_when_two_large_uploads_run(
    small_part_settings, storage_repo, make_upload
):
    services = _services(small_part_settings, storage_repo)
    assert services.admission.try_admit()
    assert services.admission.try_admit()

    with pytest.raises(AdmissionRejected):
        await services.file_service.handle_upload(
            make_upload(PNG + b"\x00" * (80 * 1024)), file_id="file-4"
        )

    storage_repo.initiate_multipart_upload.assert_not_awaited()
    assert services.admission.active == 2
    assert (await services.progress.get("file-4")).status == ProgressStatus.FAILED
    assert _temp_files(services) == []


@pytest.mark.asyncio
async def test_small_files_bypass_admission(small_part_settings, storage_repo, make_upload):
    services = _services(small_part_settings, storage_repo)
    services.admission.try_admit()
    services.admission.try_admit()

    result = await services.file_service.handle_upload(make_upload(PNG + b"\x00" * 1024))

    assert result.status == "uploaded"


@pytest.mark.asyncio
async def test_storage_failure_is_wrapped(services, storage_repo, make_upload):
    storage_repo.upload_file = AsyncMock(side_effect=StorageError("Access Denied"))

    with pytest.raises(SecurityError, match="^Upload failed: Access Denied") as exc_info:
        await services.file_service.handle_upload(
            make_upload(PNG + b"\x00" * 64), file_id="file-5"
        )

    assert isinstance(exc_info.value.__cause__, StorageError)
    entity = await services.file_repo.find_by_id("file-5")
    assert entity.status == FileStatus.FAILED
    assert (await services.progress.get("file-5")).status == ProgressStatus.FAILED
    assert _temp_files(services) == []


@pytest.mark.asyncio
async def test_duplicate_file_id_conflicts(services, make_upload):
    await services.file_service.handle_upload(make_upload(PNG + b"\x00" * 64), file_id="same")

    with pytest.raises(ConflictError):
        await services.file_service.handle_upload(
            make_upload(PNG + b"\x00" * 64), file_id="same"
        )

    assert (await services.progress.get("same")).status == ProgressStatus.COMPLETED


@pytest.mark.asyncio
async def test_concurrent_uploads_with_same_file_id(services, storage_repo, make_upload):
    outcomes = await asyncio.gather(
        services.file_service.handle_upload(
            make_upload(PNG + b"\x00" * 64, "a.png"), file_id="same"
        ),
        services.file_service.handle_upload(
            make_upload(PNG + b"\x00" * 64, "b.png"), file_id="same"
        ),
        return_exceptions=True,
    )

    assert isinstance(outcomes[0], UploadFileResponse)
    assert isinstance(outcomes[1], ConflictError)
    storage_repo.upload_file.assert_awaited_once()
    entity = await services.file_repo.find_by_id("same")
    assert entity.name == "a.png"
    assert entity.status == FileStatus.UPLOADED
    assert (await services.progress.get("same")).status == ProgressStatus.COMPLETED
    assert _temp_files(services) == []


@pytest.mark.asyncio
async def test_file_id_is_reusable_after_failed_reservation(services, make_upload):
    with pytest.raises(ValidationError):
        await services.file_service.handle_upload(
            make_upload(b"not a png", "a.png"), file_id="retry-me"
        )

    result = await services.file_service.handle_upload(
        make_upload(PNG + b"\x00" * 64, "a.png"), file_id="retry-me"
    )

    assert result.file_id == "retry-me"


@pytest.mark.asyncio
async def test_declared_large_upload_rejected_before_spooling(
    small_part_settings, storage_repo, make_upload
):
    services = _services(small_part_settings, storage_repo)
    services.admission.try_admit()
    services.admission.try_admit()
    upload = make_upload(PNG + b"\x00" * (80 * 1024), size=80 * 1024 + len(PNG))

    with pytest.raises(AdmissionRejected):
        await services.file_service.handle_upload(upload, file_id="file-early")

    assert upload.file.tell() == 0
    assert _temp_files(services) == []
    assert await services.progress.get("file-early") is None
    assert services.admission.active == 2


@pytest.mark.asyncio
async def test_pre_admitted_upload_releases_slot(small_part_settings, storage_repo, make_upload):
    services = _services(small_part_settings, storage_repo)
    content = PNG + b"\x01" * (100 * 1024 - len(PNG))

    result = await services.file_service.handle_upload(
        make_upload(content, size=len(content)), file_id="file-hinted"
    )

    assert result.status == "uploaded"
    storage_repo.complete_multipart_upload.assert_awaited_once()
    assert services.admission.active == 0


@pytest.mark.asyncio
async def test_progress_outage_keeps_upload_error(services, storage_repo, make_upload):
    storage_repo.upload_file = AsyncMock(side_effect=StorageError("Access Denied"))
    services.progress.fail = AsyncMock(side_effect=ConnectionError("progress store down"))

    with pytest.raises(SecurityError, match="^Upload failed: Access Denied"):
        await services.file_service.handle_upload(
            make_upload(PNG + b"\x00" * 64), file_id="file-outage"
        )

    assert _temp_files(services) == []


@pytest.mark.asyncio
async def test_get_file_details_not_found(services):
    with pytest.raises(NotFoundError):
        await services.file_service.get_file_details("missing")


@pytest.mark.asyncio
async def test_list_files_filters_and_counts(services, make_upload):
    await services.file_service.handle_upload(make_upload(PNG + b"\x00" * 64, "a.png"))
    await services.file_service.handle_upload(make_upload(PNG + b"\x00" * 64, "b.png"))
    await services.file_service.handle_upload(
        make_upload(b"%PDF-1.4" + b"\x00" * 64, "c.pdf", "application/pdf")
    )

    result = await services.file_service.list_files(category="images", limit=1)

    assert result.total == 2
    assert len(result.files) == 1
    counts = {c.name: c.count for c in result.categories}
    assert counts["images"] == 2
    assert counts["documents"] == 1
    assert counts["videos"] == 0
    display = {c.name: c.display_name for c in result.categories}
    assert display["archives"] == "Compressed Archives"


@pytest.mark.asyncio
async def test_list_files_rejects_unknown_category(services):
    with pytest.raises(ValidationError, match="Invalid category"):
        await services.file_service.list_files(category="spreadsheets")


@pytest.mark.asyncio
async def test_delete_file(services, storage_repo, make_upload):
    uploaded = await services.file_service.handle_upload(make_upload(PNG + b"\x00" * 64))

    result = await services.file_service.delete_file(uploaded.file_id)

    assert result.success is True
    storage_repo.delete_file.assert_awaited_once()
    entity = await services.file_repo.find_by_id(uploaded.file_id)
    assert entity.status == FileStatus.DELETED
    assert (await services.file_service.list_files()).total == 0

    with pytest.raises(ConflictError):
        await services.file_service.delete_file(uploaded.file_id)


@pytest.mark.asyncio
async def test_delete_storage_failure_is_conflict(services, storage_repo, make_upload):
    uploaded = await services.file_service.handle_upload(make_upload(PNG + b"\x00" * 64))
    storage_repo.delete_file = AsyncMock(side_effect=StorageError("denied"))

    with pytest.raises(ConflictError, match="Failed to delete file"):
        await services.file_service.delete_file(uploaded.file_id)

    entity = await services.file_repo.find_by_id(uploaded.file_id)
    assert entity.status == FileStatus.UPLOADED


@pytest.mark.asyncio
async def test_get_download_url(services, storage_repo, make_upload):
    uploaded = await services.file_service.handle_upload(make_upload(PNG + b"\x00" * 64))

    result = await services.file_service.get_download_url(uploaded.file_id, expiration=600)

    assert result.expires_in == 600
    assert result.download_url.startswith("https://test-bucket.s3.amazonaws.com/signed")
    entity = await services.file_repo.find_by_id(uploaded.file_id)
    storage_repo.generate_presigned_url.assert_awaited_once_with(
        entity.storage_key, expiration=600
    )
