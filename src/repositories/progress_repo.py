"""Progress store backends shared between worker processes."""

import hashlib
import json
import math
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os
import redis.asyncio as aioredis

from ..utils.logger import get_logger

logger = get_logger(__name__)

Record = Dict[str, Any]


class ProgressBackend(ABC):
    """
    Whole-record key/value store for progress records.

    Records are replaced as a unit (last writer wins). Writers to different
    keys never interfere with each other.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Record]:
        ...

    @abstractmethod
    async def set(self, key: str, record: Record, ttl: Optional[float] = None) -> None:
        """Store a record. ``ttl`` is a hint for backends with native expiry."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def list(self) -> List[Record]:
        ...


class InMemoryProgressBackend(ProgressBackend):
    """Process-local backend for single-process deployments and tests."""

    def __init__(self):
        self._records: Dict[str, Record] = {}

    async def get(self, key: str) -> Optional[Record]:
        record = self._records.get(key)
        return dict(record) if record is not None else None

    async def set(self, key: str, record: Record, ttl: Optional[float] = None) -> None:
        self._records[key] = dict(record)

    async def delete(self, key: str) -> None:
        self._records.pop(key, None)

    async def list(self) -> List[Record]:
        return [dict(r) for r in self._records.values()]


class FileProgressBackend(ProgressBackend):
    """
    One JSON file per record in a directory visible to every worker.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace`` so readers never see a partial record.
    """

    SUFFIX = ".json"

    def __init__(self, directory: str):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, key: str) -> str:
        # Keys are caller-supplied; hash them into safe file names.
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self.directory, digest + self.SUFFIX)

    async def _read(self, path: str) -> Optional[Record]:
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return json.loads(await f.read())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Unreadable progress record", path=path, error=str(e))
            return None

    async def get(self, key: str) -> Optional[Record]:
        return await self._read(self._path(key))

    async def set(self, key: str, record: Record, ttl: Optional[float] = None) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        os.close(fd)
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(record))
            await aiofiles.os.replace(tmp_path, self._path(key))
        except BaseException:
            try:
                await aiofiles.os.remove(tmp_path)
            except FileNotFoundError:
                pass
            raise

    async def delete(self, key: str) -> None:
        try:
            await aiofiles.os.remove(self._path(key))
        except FileNotFoundError:
            pass

    async def list(self) -> List[Record]:
        records = []
        for name in await aiofiles.os.listdir(self.directory):
            if not name.endswith(self.SUFFIX):
                continue
            record = await self._read(os.path.join(self.directory, name))
            if record is not None:
                records.append(record)
        return records


class RedisProgressBackend(ProgressBackend):
    """One Redis key per record. Terminal records get a native key TTL."""

    def __init__(self, client: aioredis.Redis, prefix: str = "upload-progress:"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[Record]:
        raw = await self.client.get(self._key(key))
        return json.loads(raw) if raw else None

    async def set(self, key: str, record: Record, ttl: Optional[float] = None) -> None:
        ex = max(1, math.ceil(ttl)) if ttl is not None else None
        await self.client.set(self._key(key), json.dumps(record), ex=ex)

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))

    async def list(self) -> List[Record]:
        keys = [k async for k in self.client.scan_iter(match=f"{self.prefix}*")]
        if not keys:
            return []
        values = await self.client.mget(keys)
        return [json.loads(v) for v in values if v]
