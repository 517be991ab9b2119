"""File upload and management routes."""

import json
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status

from ..core.dependencies import get_file_service, get_progress_tracker
from ..core.exceptions import NotFoundError, ValidationError
from ..middleware.rate_limit import limiter, upload_rate_limit
from ..schemas.file import (
    DeleteFileResponse,
    FileDownloadResponse,
    FileListResponse,
    FileResponse,
    UploadFileResponse,
)
from ..schemas.progress import ProgressRecord
from ..services.file_service import FileService
from ..services.progress_service import ProgressTracker

router = APIRouter(prefix="/files", tags=["files"])


def _parse_tags(raw: Optional[str]) -> Optional[Dict[str, str]]:
    if not raw:
        return None
    try:
        tags = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("Tags must be a JSON object")
    if not isinstance(tags, dict):
        raise ValidationError("Tags must be a JSON object")
    return {str(k): str(v) for k, v in tags.items()}


@router.post("/upload", response_model=UploadFileResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(upload_rate_limit)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    file_id: Optional[str] = Form(None, pattern=r"^[A-Za-z0-9-]{1,64}$"),
    uploaded_by: Optional[str] = Form(None, max_length=255),
    description: Optional[str] = Form(None, max_length=1000),
    tags: Optional[str] = Form(None, description="JSON object of string tags"),
    file_service: FileService = Depends(get_file_service),
):
    """
    Upload a file.

    Files at or above the large file threshold go through multipart upload.
    Pass ``file_id`` to poll ``/files/progress/{file_id}`` while the request
    is in flight.
    """
    return await file_service.handle_upload(
        file=file,
        file_id=file_id,
        uploaded_by=uploaded_by,
        description=description,
        tags=_parse_tags(tags),
    )


@router.get("/progress", response_model=List[ProgressRecord])
async def list_progress(progress: ProgressTracker = Depends(get_progress_tracker)):
    """List progress of uploads that are active or recently finished."""
    return await progress.get_all()


@router.get("/progress/{file_id}", response_model=ProgressRecord)
async def get_progress(
    file_id: str, progress: ProgressTracker = Depends(get_progress_tracker)
):
    record = await progress.get(file_id)
    if record is None:
        raise NotFoundError(f"No upload progress for file {file_id}")
    return record


@router.get("", response_model=FileListResponse)
async def list_files(
    category: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    file_service: FileService = Depends(get_file_service),
):
    """List files with per-category counts."""
    return await file_service.list_files(category=category, limit=limit, offset=offset)


@router.get("/{file_id}", response_model=FileResponse)
async def get_file_details(
    file_id: str, file_service: FileService = Depends(get_file_service)
):
    """Get file details by ID."""
    return await file_service.get_file_details(file_id)


@router.get("/{file_id}/download", response_model=FileDownloadResponse)
async def get_download_url(
    file_id: str,
    expiration: Optional[int] = Query(None, ge=60, le=86400),
    file_service: FileService = Depends(get_file_service),
):
    """Get presigned download URL for file."""
    return await file_service.get_download_url(file_id, expiration=expiration)


@router.delete("/{file_id}", response_model=DeleteFileResponse)
async def delete_file(
    file_id: str, file_service: FileService = Depends(get_file_service)
):
    return await file_service.delete_file(file_id)
