"""Storage client configuration for S3 and S3-compatible endpoints."""

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from .settings import Settings


def get_storage_client(settings: Settings) -> BaseClient:
    """
    Build the boto3 S3 client.
    An S3_ENDPOINT_URL switches to an S3-compatible provider (MinIO, Wasabi).
    The client retries transient failures itself (standard retry mode).
    """
    config = Config(
        signature_version="s3v4",
        retries={"max_attempts": settings.storage_max_attempts, "mode": "standard"},
    )

    if settings.s3_endpoint_url:
        return boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.aws_region,
            config=config,
        )

    return boto3.client(
        "s3",
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        region_name=settings.aws_region,
        config=config,
    )


def get_file_url(settings: Settings, key: str) -> str:
    """Public object URL for a key in the configured bucket."""
    if settings.s3_endpoint_url:
        return f"{settings.s3_endpoint_url.rstrip('/')}/{settings.s3_bucket_name}/{key}"
    return f"https://{settings.s3_bucket_name}.s3.amazonaws.com/{key}"
