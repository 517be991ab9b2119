"""Upload progress schemas."""

from typing import Optional
from pydantic import BaseModel, Field
from ..utils.constants import ProgressStatus


class ProgressRecord(BaseModel):
    """Shared progress state for one upload, readable from any worker."""

    file_id: str
    file_name: str
    total_size: int = Field(..., ge=0)
    uploaded_size: int = Field(default=0, ge=0)
    percentage: int = Field(default=0, ge=0, le=100)
    status: ProgressStatus = ProgressStatus.PENDING
    current_part: Optional[int] = None
    total_parts: Optional[int] = None
    speed: Optional[float] = Field(default=None, description="Bytes per second")
    estimated_time_remaining: Optional[float] = Field(
        default=None, description="Seconds until completion"
    )
    started_at: float = Field(..., description="Epoch seconds")
    updated_at: float = Field(..., description="Epoch seconds")
    error: Optional[str] = None
    expires_at: Optional[float] = Field(
        default=None, description="Epoch seconds after which the record is dropped"
    )

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at
