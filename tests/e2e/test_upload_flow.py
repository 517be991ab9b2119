"""End-to-end upload flows through the HTTP API."""

import os
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport

from src.core.container import build_services
from src.core.exceptions import StorageError
from src.main import create_app
from src.repositories.progress_repo import FileProgressBackend

MIB = 1024 * 1024
KIB = 1024
PNG = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def multipart_services(small_part_settings, storage_repo):
    """Services sharing a file-backed progress store, as multiple workers would."""
    settings = small_part_settings.model_copy(update={"progress_backend": "file"})
    return build_services(settings, storage_repo=storage_repo)


@pytest.fixture
async def multipart_client(multipart_services):
    app = create_app(multipart_services)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def _png(size: int) -> bytes:
    return PNG + b"\x07" * (size - len(PNG))


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_small_file_single_put(client: AsyncClient, services, storage_repo):
    response = await client.post(
        "/files/upload",
        files={"file": ("small.png", _png(3 * MIB), "image/png")},
        data={"file_id": "scenario-1"},
    )

    assert response.status_code == 201
    assert response.json()["status"] == "uploaded"
    assert storage_repo.upload_file.await_count == 1
    storage_repo.initiate_multipart_upload.assert_not_awaited()

    progress = (await client.get("/files/progress/scenario-1")).json()
    assert progress["percentage"] == 100
    assert progress["status"] == "completed"
    assert os.listdir(services.temp_cleanup.temp_dir) == []


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_multipart_upload(multipart_client: AsyncClient, multipart_services, storage_repo):
    size = 25 * 16 * KIB

    response = await multipart_client.post(
        "/files/upload",
        files={"file": ("big.png", _png(size), "image/png")},
        data={"file_id": "scenario-2"},
    )

    assert response.status_code == 201
    assert storage_repo.upload_part.await_count == 25
    parts = storage_repo.complete_multipart_upload.call_args.kwargs["parts"]
    assert [p["part_number"] for p in parts] == list(range(1, 26))
    first_part = next(
        c for c in storage_repo.upload_part.await_args_list if c.kwargs["part_number"] == 1
    )
    assert first_part.kwargs["body"].startswith(PNG)
    assert len(first_part.kwargs["body"]) == 16 * KIB

    progress = (await multipart_client.get("/files/progress/scenario-2")).json()
    assert progress["status"] == "completed"
    assert progress["total_parts"] == 25
    assert multipart_services.admission.active == 0


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_part_failure_aborts_and_cleans_up(
    multipart_client: AsyncClient, multipart_services, storage_repo
):
    async def upload_part(key, upload_id, part_number, body):
        if part_number == 14:
            raise StorageError("We encountered an internal error")
        return f'"etag-{part_number}"'

    storage_repo.upload_part = AsyncMock(side_effect=upload_part)

    response = await multipart_client.post(
        "/files/upload",
        files={"file": ("big.png", _png(25 * 16 * KIB), "image/png")},
        data={"file_id": "scenario-3"},
    )

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Upload failed: Part 14 failed to upload"
    storage_repo.abort_multipart_upload.assert_awaited_once()
    storage_repo.complete_multipart_upload.assert_not_awaited()

    progress = (await multipart_client.get("/files/progress/scenario-3")).json()
    assert progress["status"] == "failed"
    assert progress["error"]

    details = (await multipart_client.get("/files/scenario-3")).json()
    assert details["status"] == "failed"
    assert os.listdir(multipart_services.temp_cleanup.temp_dir) == []
    assert multipart_services.admission.active == 0


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_same_name_uploads_keep_separate_progress(
    multipart_client: AsyncClient, multipart_services, storage_repo
):
    first = await multipart_client.post(
        "/files/upload",
        files={"file": ("report.png", _png(2 * KIB), "image/png")},
        data={"file_id": "session-a"},
    )
    storage_repo.upload_file = AsyncMock(side_effect=StorageError("denied"))
    second = await multipart_client.post(
        "/files/upload",
        files={"file": ("report.png", _png(4 * KIB), "image/png")},
        data={"file_id": "session-b"},
    )

    assert first.status_code == 201
    assert second.status_code == 403

    a = (await multipart_client.get("/files/progress/session-a")).json()
    b = (await multipart_client.get("/files/progress/session-b")).json()
    assert (a["status"], a["total_size"]) == ("completed", 2 * KIB)
    assert (b["status"], b["total_size"]) == ("failed", 4 * KIB)

    # A second worker reading the same directory sees both records
    other_worker = FileProgressBackend(multipart_services.settings.progress_dir)
    assert {r["file_id"] for r in await other_worker.list()} == {"session-a", "session-b"}
