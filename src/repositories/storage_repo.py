"""Storage repository for S3 object and multipart operations."""

import asyncio
from functools import partial
from typing import Any, Callable, Dict, List, Optional
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from ..config.settings import Settings
from ..config.storage import get_storage_client, get_file_url
from ..core.exceptions import StorageError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class StorageRepository:
    """
    Repository for storage operations.

    boto3 is blocking, so every call runs in the default executor to keep the
    event loop free. Backend errors are wrapped into StorageError; the
    original exception stays on ``__cause__``.
    """

    def __init__(self, settings: Settings, client: Optional[BaseClient] = None):
        self.settings = settings
        self.bucket_name = settings.s3_bucket_name
        self.client = client

    def _get_client(self) -> BaseClient:
        """Get or create storage client."""
        if self.client is None:
            self.client = get_storage_client(self.settings)
        return self.client

    async def _call(self, operation: str, func: Callable[..., Any], **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(func, **kwargs))
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                "Storage operation failed",
                operation=operation,
                key=kwargs.get("Key"),
                error=str(e),
            )
            raise StorageError(f"Storage operation '{operation}' failed") from e

    async def upload_file(
        self,
        file_path: str,
        key: str,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Optional[str]:
        """
        Upload a file from disk with a single PUT.
        Args:
            file_path: Path of the file to send
            key: Storage key (path)
            content_type: MIME type
            metadata: User metadata stored with the object
        Returns:
            ETag of the stored object
        """
        client = self._get_client()

        def _put() -> Dict[str, Any]:
            with open(file_path, "rb") as body:
                return client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                    Metadata=metadata or {},
                    ServerSideEncryption="AES256",
                )

        response = await self._call("put_object", _put, Key=key)
        return response.get("ETag")

    async def initiate_multipart_upload(
        self,
        key: str,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Initiate multipart upload and return upload_id."""
        client = self._get_client()
        response = await self._call(
            "create_multipart_upload",
            client.create_multipart_upload,
            Bucket=self.bucket_name,
            Key=key,
            ContentType=content_type,
            Metadata=metadata or {},
            ServerSideEncryption="AES256",
        )
        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("Storage did not return an upload ID")
        return upload_id

    async def upload_part(
        self, key: str, upload_id: str, part_number: int, body: bytes
    ) -> str:
        """Upload one part and return its ETag."""
        client = self._get_client()
        response = await self._call(
            "upload_part",
            client.upload_part,
            Bucket=self.bucket_name,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
        etag = response.get("ETag")
        if not etag:
            raise StorageError(f"Storage did not return an ETag for part {part_number}")
        return etag

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: List[Dict[str, Any]],  # [{"part_number": 1, "etag": "..."}]
    ) -> Optional[str]:
        """Complete multipart upload by combining all parts. Returns the final ETag."""
        client = self._get_client()
        multipart_upload = {
            "Parts": [
                {"PartNumber": part["part_number"], "ETag": part["etag"]}
                for part in sorted(parts, key=lambda x: x["part_number"])
            ]
        }
        response = await self._call(
            "complete_multipart_upload",
            client.complete_multipart_upload,
            Bucket=self.bucket_name,
            Key=key,
            UploadId=upload_id,
            MultipartUpload=multipart_upload,
        )
        return response.get("ETag")

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Abort multipart upload and release stored parts."""
        client = self._get_client()
        await self._call(
            "abort_multipart_upload",
            client.abort_multipart_upload,
            Bucket=self.bucket_name,
            Key=key,
            UploadId=upload_id,
        )

    async def generate_presigned_url(self, key: str, expiration: int = 3600) -> str:
        """
        Generate presigned URL for file download.
        Args:
            key: Storage key
            expiration: URL expiration time in seconds
        Returns:
            Presigned URL
        """
        client = self._get_client()
        return await self._call(
            "generate_presigned_url",
            client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=expiration,
        )

    async def delete_file(self, key: str) -> None:
        """Delete file from storage."""
        client = self._get_client()
        await self._call(
            "delete_object", client.delete_object, Bucket=self.bucket_name, Key=key
        )

    async def file_exists(self, key: str) -> bool:
        """Check if file exists in storage."""
        try:
            await self._call(
                "head_object",
                self._get_client().head_object,
                Bucket=self.bucket_name,
                Key=key,
            )
            return True
        except StorageError:
            return False

    def get_file_url(self, key: str) -> str:
        return get_file_url(self.settings, key)
