import asyncio
import sys
import os

# Ensure src is in python path
sys.path.append(os.getcwd())

from src.config import settings
from src.core.exceptions import StorageError
from src.repositories.storage_repo import StorageRepository


async def check_storage():
    """Open and abort a multipart session to confirm credentials and bucket access."""
    repo = StorageRepository(settings)
    key = "healthcheck/multipart-probe"

    print("--- Checking Storage Connectivity ---")
    print(f"   Endpoint: {repo._get_client().meta.endpoint_url}")
    print(f"   Bucket: {repo.bucket_name}")

    try:
        upload_id = await repo.initiate_multipart_upload(key, "application/octet-stream")
        print(f"✅ Multipart upload initiated ({upload_id})")
        await repo.abort_multipart_upload(key, upload_id)
        print("✅ Multipart upload aborted")
    except StorageError as e:
        print(f"❌ {e.message}: {e.__cause__}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(check_storage()))
