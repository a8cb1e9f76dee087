"""Metadata store: file id -> FileRecord.

Two backends behind one interface. Which one runs is a deployment decision
(settings.METADATA_STORE):

- "memory": process-local dict, empty on startup, lost on restart.
- "database": the `files` table through async SQLAlchemy, durable.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dropshell.models.stored_file import StoredFile
from dropshell.services.records import FileRecord, ensure_utc


class MetadataStore(ABC):
    """put/get/delete by id. No ordering guarantees across ids."""

    name: str = "abstract"

    @abstractmethod
    async def put(self, record: FileRecord) -> None:
        """Insert or replace the record with the same id."""

    @abstractmethod
    async def get(self, file_id: str) -> Optional[FileRecord]:
        """Return the record, or None when absent."""

    @abstractmethod
    async def delete(self, file_id: str) -> None:
        """Remove the record. No error if it is already gone."""

    @abstractmethod
    async def expired_ids(self, now: datetime) -> list[str]:
        """Ids whose expiry is strictly before `now`."""


class InMemoryMetadataStore(MetadataStore):
    name = "memory"

    def __init__(self):
        self._records: dict[str, FileRecord] = {}

    async def put(self, record: FileRecord) -> None:
        self._records[record.id] = record

    async def get(self, file_id: str) -> Optional[FileRecord]:
        return self._records.get(file_id)

    async def delete(self, file_id: str) -> None:
        self._records.pop(file_id, None)

    async def expired_ids(self, now: datetime) -> list[str]:
        return [r.id for r in self._records.values() if r.expires_at < now]

    def __len__(self) -> int:
        return len(self._records)


def _to_record(row: StoredFile) -> FileRecord:
    return FileRecord(
        id=row.id,
        original_name=row.original_name,
        storage_key=row.storage_key,
        size_bytes=row.size_bytes,
        created_at=ensure_utc(row.created_at),
        expires_at=ensure_utc(row.expires_at),
        credential_hash=row.credential_hash,
        mime_type=row.mime_type,
    )


class DatabaseMetadataStore(MetadataStore):
    name = "database"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def put(self, record: FileRecord) -> None:
        async with self._session_factory() as db:
            await db.merge(
                StoredFile(
                    id=record.id,
                    original_name=record.original_name,
                    storage_key=record.storage_key,
                    mime_type=record.mime_type,
                    size_bytes=record.size_bytes,
                    created_at=record.created_at,
                    expires_at=record.expires_at,
                    credential_hash=record.credential_hash,
                )
            )
            await db.commit()

    async def get(self, file_id: str) -> Optional[FileRecord]:
        async with self._session_factory() as db:
            row = await db.get(StoredFile, file_id)
            return _to_record(row) if row else None

    async def delete(self, file_id: str) -> None:
        async with self._session_factory() as db:
            await db.execute(delete(StoredFile).where(StoredFile.id == file_id))
            await db.commit()

    async def expired_ids(self, now: datetime) -> list[str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(StoredFile.id).where(StoredFile.expires_at < now)
            )
            return list(result.scalars().all())
