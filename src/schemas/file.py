"""File upload and management schemas."""

from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class UploadFileResponse(BaseModel):
    """Response for a completed upload."""

    file_id: str
    file_name: str
    size: int
    mime_type: str
    category: str
    status: str = Field(..., description="uploaded, failed")
    url: Optional[str] = None
    uploaded_at: datetime


class FileResponse(BaseModel):
    """File details response schema."""

    file_id: str
    file_name: str
    size: int
    mime_type: str
    category: str
    status: str = Field(..., description="pending, uploading, uploaded, failed, deleted")
    url: Optional[str] = None
    storage_key: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class CategoryCount(BaseModel):
    name: str
    display_name: str
    count: int


class FileListResponse(BaseModel):
    """File list response with category counts."""

    files: List[FileResponse]
    total: int
    limit: int
    offset: int
    categories: List[CategoryCount]


class FileDownloadResponse(BaseModel):
    """File download response with presigned URL."""

    file_id: str
    file_name: str
    download_url: str
    expires_in: int = Field(default=3600, description="URL expiration time in seconds")
    size: int
    mime_type: str


class DeleteFileResponse(BaseModel):
    success: bool
    message: str
