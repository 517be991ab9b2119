"""File repository for file metadata operations."""

from typing import Dict, List, Optional
from ..core.exceptions import NotFoundError
from ..models.file_entity import FileEntity
from ..utils.constants import FileStatus


class FileRepository:
    """In-memory repository for file metadata, keyed by file ID."""

    def __init__(self):
        self._files: Dict[str, FileEntity] = {}

    async def save(self, file: FileEntity) -> None:
        """Create or replace a file record."""
        self._files[file.id] = file

    async def find_by_id(self, file_id: str) -> Optional[FileEntity]:
        return self._files.get(file_id)

    async def find_all(self) -> List[FileEntity]:
        return list(self._files.values())

    async def find_by_status(self, status: FileStatus) -> List[FileEntity]:
        return [f for f in self._files.values() if f.status == status]

    async def update(self, file: FileEntity) -> None:
        """Update an existing record. Raises NotFoundError if it was never saved."""
        if file.id not in self._files:
            raise NotFoundError(f"File with ID {file.id} not found")
        self._files[file.id] = file

    async def delete(self, file_id: str) -> bool:
        return self._files.pop(file_id, None) is not None
