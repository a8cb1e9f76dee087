"""Blob storage for uploaded bytes. Local filesystem only.

Keys are derived from the file id (plus a sanitized extension), never from
the client-supplied name, so nothing the client sends can steer the path.
Bytes are streamed in fixed-size chunks in both directions.
"""
import logging
import os
import re
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional

import aiofiles

from dropshell.config import settings
from dropshell.services.errors import BlobMissing, UploadTooLarge

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB

_EXTENSION_RE = re.compile(r"^[a-z0-9]{1,16}$")

# Anything with an async read(size) -> bytes, e.g. starlette's UploadFile.
ChunkReader = Callable[[int], Awaitable[bytes]]


def sanitize_extension(original_name: str) -> str:
    """Return ".ext" for a safe trailing extension of `original_name`, else ""."""
    name = original_name.replace("\\", "/").rsplit("/", 1)[-1]
    suffix = Path(name).suffix.lower()[1:]
    if not _EXTENSION_RE.match(suffix):
        return ""
    return f".{suffix}"


def storage_key_for(file_id: str, original_name: str) -> str:
    return f"{file_id}{sanitize_extension(original_name)}"


class FileStorageService:
    """Handles blob write/stream/delete under a single base directory."""

    def __init__(self, base_path: Optional[str] = None, storage_type: Optional[str] = None):
        self.storage_type = storage_type or settings.FILE_STORAGE_TYPE
        if self.storage_type != "local":
            raise ValueError(f"Unknown storage type: {self.storage_type}")
        self.base_path = Path(base_path or settings.FILE_STORAGE_PATH).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, storage_key: str) -> Path:
        path = (self.base_path / storage_key).resolve()
        if path.parent != self.base_path:
            raise ValueError(f"Storage key escapes storage root: {storage_key!r}")
        return path

    async def save(self, storage_key: str, read: ChunkReader, max_bytes: int) -> int:
        """Stream chunks from `read` into the blob. Returns the byte count.

        Raises UploadTooLarge once more than `max_bytes` arrive. Any failure
        removes the partial blob before propagating.
        """
        path = self._path(storage_key)
        size = 0
        try:
            async with aiofiles.open(path, "wb") as out:
                while True:
                    chunk = await read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_bytes:
                        raise UploadTooLarge(f"File exceeds the maximum upload size of {max_bytes} bytes")
                    await out.write(chunk)
        except BaseException:
            await self.delete(storage_key)
            raise
        return size

    async def open(self, storage_key: str) -> AsyncIterator[bytes]:
        """Open the blob now and return an iterator that streams it.

        The handle is acquired before returning, so a later delete of the
        path does not interrupt a stream that has already started.
        """
        path = self._path(storage_key)
        try:
            handle = await aiofiles.open(path, "rb")
        except FileNotFoundError:
            raise BlobMissing(storage_key)
        return self._iter_chunks(handle)

    @staticmethod
    async def _iter_chunks(handle) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await handle.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        finally:
            await handle.close()

    async def delete(self, storage_key: str) -> None:
        """Delete the blob. No-op when it does not exist."""
        path = self._path(storage_key)
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        logger.debug(f"Deleted blob {storage_key}")

    def exists(self, storage_key: str) -> bool:
        return self._path(storage_key).exists()
