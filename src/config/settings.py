"""Application settings using Pydantic Settings."""

import os
import tempfile
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


def parse_comma_separated_list(v):
    """Parse comma-separated string into list."""
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    if isinstance(v, list):
        return v
    return []


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="File Upload API", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Storage
    aws_access_key_id: str = Field(default="", alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str = Field(default="", alias="AWS_SECRET_ACCESS_KEY")
    aws_region: str = Field(default="us-east-1", alias="AWS_REGION")
    s3_bucket_name: str = Field(default="file-uploads", alias="S3_BUCKET_NAME")
    s3_endpoint_url: str = Field(default="", alias="S3_ENDPOINT_URL")
    storage_max_attempts: int = Field(default=3, ge=1, alias="STORAGE_MAX_ATTEMPTS")
    presigned_url_expiration: int = Field(default=3600, alias="PRESIGNED_URL_EXPIRATION")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # File Upload
    max_file_size: int = Field(default=1536 * MIB, alias="MAX_FILE_SIZE")
    allowed_file_types_str: str = Field(
        default="",
        alias="ALLOWED_FILE_TYPES",
        exclude=True,  # Don't include in model dump
    )
    large_file_threshold_bytes: int = Field(
        default=100 * MIB, alias="LARGE_FILE_THRESHOLD_BYTES"
    )
    multipart_part_size_bytes: int = Field(
        default=8 * MIB, alias="MULTIPART_PART_SIZE_BYTES"
    )
    multipart_min_part_size_bytes: int = Field(
        default=5 * MIB, alias="MULTIPART_MIN_PART_SIZE_BYTES"
    )
    multipart_queue_size: int = Field(default=3, ge=1, alias="MULTIPART_QUEUE_SIZE")
    max_concurrent_large_uploads: int = Field(
        default=2, ge=1, alias="MAX_CONCURRENT_LARGE_UPLOADS"
    )
    part_upload_max_attempts: int = Field(default=3, ge=1, alias="PART_UPLOAD_MAX_ATTEMPTS")
    part_upload_retry_backoff: float = Field(default=0.5, ge=0, alias="PART_UPLOAD_RETRY_BACKOFF")
    validation_sample_size: int = Field(default=8192, alias="VALIDATION_SAMPLE_SIZE")
    strict_video_signature: bool = Field(default=False, alias="STRICT_VIDEO_SIGNATURE")

    # Temporary upload files
    temp_upload_dir: str = Field(
        default=os.path.join(os.getcwd(), "temp-uploads"), alias="TEMP_UPLOAD_DIR"
    )
    temp_file_max_age_seconds: int = Field(default=3600, alias="TEMP_FILE_MAX_AGE_SECONDS")
    temp_cleanup_interval_seconds: int = Field(
        default=300, alias="TEMP_CLEANUP_INTERVAL_SECONDS"
    )

    # Upload progress
    progress_backend: str = Field(default="file", alias="PROGRESS_BACKEND")
    progress_dir: str = Field(
        default=os.path.join(tempfile.gettempdir(), "s3-upload-progress"),
        alias="PROGRESS_DIR",
    )
    progress_completed_retention_seconds: float = Field(
        default=30.0, alias="PROGRESS_COMPLETED_RETENTION_SECONDS"
    )
    progress_failed_retention_seconds: float = Field(
        default=60.0, alias="PROGRESS_FAILED_RETENTION_SECONDS"
    )
    progress_inactivity_seconds: float = Field(
        default=300.0, alias="PROGRESS_INACTIVITY_SECONDS"
    )
    progress_cleanup_interval_seconds: float = Field(
        default=60.0, alias="PROGRESS_CLEANUP_INTERVAL_SECONDS"
    )

    # CORS (stored as string, parsed via property)
    allowed_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:3001",
        alias="ALLOWED_ORIGINS",
        exclude=True,  # Don't include in model dump
    )

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return parse_comma_separated_list(self.allowed_origins_str)

    # Rate Limiting
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    upload_rate_limit: str = Field(default="10/15minutes", alias="UPLOAD_RATE_LIMIT")
    rate_limit_per_minute: int = Field(default=100, alias="RATE_LIMIT_PER_MINUTE")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @property
    def allowed_file_types(self) -> List[str]:
        """Allowed MIME types; empty means every type in the category table."""
        return parse_comma_separated_list(self.allowed_file_types_str)

    @property
    def max_file_size_mb(self) -> float:
        """Max file size in MB, for messages."""
        return round(self.max_file_size / MIB, 2)


# Global settings instance
settings = Settings()
