"""Pytest configuration and fixtures."""

import io
from typing import AsyncGenerator, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import UploadFile
from httpx import AsyncClient, ASGITransport
from starlette.datastructures import Headers

from src.config.settings import MIB, Settings
from src.core.container import Services, build_services
from src.main import create_app
from src.middleware.rate_limit import limiter
from src.repositories.progress_repo import InMemoryProgressBackend
from src.repositories.storage_repo import StorageRepository
from src.services.progress_service import ProgressTracker

PNG_HEADER = b"\x89PNG\r\n\x1a\n"
MP4_HEADER = b"\x00\x00\x00\x18ftypmp42"


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def disable_rate_limit():
    """The limiter is module-global; keep counts from leaking across tests."""
    limiter.enabled = False
    limiter.reset()
    yield
    limiter.enabled = False
    limiter.reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with production thresholds and per-test directories."""
    return Settings(
        temp_upload_dir=str(tmp_path / "temp-uploads"),
        progress_backend="memory",
        progress_dir=str(tmp_path / "progress"),
        s3_bucket_name="test-bucket",
        aws_region="us-east-1",
        large_file_threshold_bytes=100 * MIB,
        multipart_part_size_bytes=8 * MIB,
        multipart_min_part_size_bytes=5 * MIB,
        multipart_queue_size=3,
        max_concurrent_large_uploads=2,
        part_upload_retry_backoff=0,
        rate_limit_enabled=False,
    )


@pytest.fixture
def small_part_settings(test_settings: Settings) -> Settings:
    """Tiny thresholds so multipart flows run on kilobyte files."""
    return test_settings.model_copy(
        update={
            "large_file_threshold_bytes": 64 * 1024,
            "multipart_part_size_bytes": 16 * 1024,
            "multipart_min_part_size_bytes": 1,
        }
    )


@pytest.fixture
def storage_repo() -> MagicMock:
    """Storage repository fake recording every S3 call."""
    repo = MagicMock(spec=StorageRepository)
    repo.upload_file = AsyncMock(return_value='"etag-single"')
    repo.initiate_multipart_upload = AsyncMock(return_value="upload-123")
    repo.upload_part = AsyncMock(side_effect=lambda **kwargs: f'"etag-{kwargs["part_number"]}"')
    repo.complete_multipart_upload = AsyncMock(return_value='"etag-final"')
    repo.abort_multipart_upload = AsyncMock(return_value=None)
    repo.generate_presigned_url = AsyncMock(
        return_value="https://test-bucket.s3.amazonaws.com/signed?X-Amz-Signature=abc"
    )
    repo.delete_file = AsyncMock(return_value=None)
    repo.file_exists = AsyncMock(return_value=True)
    repo.get_file_url = MagicMock(
        side_effect=lambda key: f"https://test-bucket.s3.us-east-1.amazonaws.com/{key}"
    )
    return repo


@pytest.fixture
def progress(clock: FakeClock) -> ProgressTracker:
    return ProgressTracker(InMemoryProgressBackend(), clock=clock)


@pytest.fixture
def services(test_settings: Settings, storage_repo: MagicMock) -> Services:
    return build_services(
        test_settings, storage_repo=storage_repo, progress_backend=InMemoryProgressBackend()
    )


@pytest.fixture
def make_upload() -> Callable[..., UploadFile]:
    """Build an UploadFile the way FastAPI hands it to the service."""

    def _make(
        content: bytes,
        filename: str = "photo.png",
        content_type: str = "image/png",
        size: Optional[int] = None,
    ):
        return UploadFile(
            file=io.BytesIO(content),
            size=size,
            filename=filename,
            headers=Headers({"content-type": content_type}),
        )

    return _make


@pytest.fixture
def sparse_file(tmp_path) -> Callable[[int], str]:
    """Create a file of the given size without writing its bytes."""

    def _make(size: int, name: str = "sparse.bin") -> str:
        path = tmp_path / name
        with open(path, "wb") as f:
            f.truncate(size)
        return str(path)

    return _make


@pytest.fixture
async def client(services: Services) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    app = create_app(services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
