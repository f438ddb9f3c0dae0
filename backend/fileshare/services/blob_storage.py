"""Local filesystem blob storage for FILE_STORAGE_TYPE=local."""
import os
import uuid
from pathlib import Path

import aiofiles


class LocalBlobStorage:
    """Handles blob read/write on local disk.

    Blob names are random; client filenames never reach the filesystem.
    """

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    async def save(self, file_bytes: bytes) -> str:
        """Save file bytes. Returns the storage path."""
        file_path = self.base_path / f"{uuid.uuid4().hex}.bin"
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(file_bytes)
        return str(file_path)

    async def read(self, storage_path: str) -> bytes:
        """Read file bytes. Raises FileNotFoundError for a missing blob."""
        async with aiofiles.open(storage_path, "rb") as f:
            return await f.read()

    async def delete(self, storage_path: str) -> None:
        """Delete a blob. Missing blobs are ignored."""
        path = Path(storage_path)
        if path.exists():
            os.remove(path)
