"""File transfer lifecycle: create, inspect, unlock, download, reap.

The only place access policy is enforced. Expiry is lazy: whichever
operation first sees an expired record reaps it (blob + metadata) and reports
not-found. Every per-id read/reap runs under that id's lock so a reap and a
download can never interleave into a half-deleted state.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Optional, Union

from dropshell.config import settings
from dropshell.services.credentials import CredentialHasher
from dropshell.services.errors import (
    AccessDenied,
    BlobMissing,
    FileNotFoundOrExpired,
    InvalidCredential,
    UploadValidationError,
)
from dropshell.services.file_storage import ChunkReader, FileStorageService, storage_key_for
from dropshell.services.locks import KeyedLocks
from dropshell.services.metadata_store import MetadataStore
from dropshell.services.records import FileRecord
from dropshell.services.tokens import DownloadTokenSigner

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FileInfo:
    """What inspect may disclose. Protected files carry only id + flag."""
    id: str
    is_protected: bool
    original_name: Optional[str] = None
    size_bytes: Optional[int] = None
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class UnlockResult:
    id: str
    original_name: str
    size_bytes: int
    expires_at: datetime
    download_token: str


@dataclass(frozen=True)
class Download:
    record: FileRecord
    chunks: AsyncIterator[bytes]


class FileLifecycleManager:
    def __init__(
        self,
        store: MetadataStore,
        storage: FileStorageService,
        signer: DownloadTokenSigner,
        hasher: Optional[CredentialHasher] = None,
        clock: Callable[[], datetime] = utcnow,
        max_upload_bytes: Optional[int] = None,
        default_ttl_hours: Optional[int] = None,
        max_ttl_hours: Optional[int] = None,
    ):
        self.store = store
        self.storage = storage
        self.signer = signer
        self.hasher = hasher or CredentialHasher()
        self.clock = clock
        self.max_upload_bytes = max_upload_bytes or settings.MAX_UPLOAD_BYTES
        self.default_ttl_hours = default_ttl_hours or settings.DEFAULT_EXPIRATION_HOURS
        self.max_ttl_hours = max_ttl_hours or settings.MAX_EXPIRATION_HOURS
        self._locks = KeyedLocks()

    # ── Create ───────────────────────────────────────────────────────

    def resolve_ttl(self, ttl_hours: Union[int, str, None]) -> int:
        """Validate a requested TTL in hours; blank means default, too large is clamped."""
        if ttl_hours is None or (isinstance(ttl_hours, str) and not ttl_hours.strip()):
            return self.default_ttl_hours
        try:
            hours = int(ttl_hours)
        except (TypeError, ValueError):
            raise UploadValidationError(f"Expiration must be a whole number of hours, got {ttl_hours!r}")
        if hours <= 0:
            raise UploadValidationError("Expiration must be at least 1 hour")
        if hours > self.max_ttl_hours:
            logger.info(f"Clamping requested expiration of {hours}h to {self.max_ttl_hours}h")
            return self.max_ttl_hours
        return hours

    async def create(
        self,
        read: ChunkReader,
        original_name: Optional[str],
        ttl_hours: Union[int, str, None] = None,
        credential: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> FileRecord:
        """Store the uploaded bytes and write the record. Returns the new record.

        If the blob cannot be written, no record is written. If the record
        cannot be written, the blob is removed again.
        """
        hours = self.resolve_ttl(ttl_hours)
        original_name = original_name or "unnamed"
        credential_hash = await self.hasher.hash_async(credential) if credential else None

        file_id = uuid.uuid4().hex
        storage_key = storage_key_for(file_id, original_name)
        size = await self.storage.save(storage_key, read, self.max_upload_bytes)

        created_at = self.clock()
        record = FileRecord(
            id=file_id,
            original_name=original_name,
            storage_key=storage_key,
            size_bytes=size,
            created_at=created_at,
            expires_at=created_at + timedelta(hours=hours),
            credential_hash=credential_hash,
            mime_type=mime_type,
        )
        try:
            await self.store.put(record)
        except BaseException:
            logger.exception(f"Metadata write failed for {file_id}; removing blob {storage_key}")
            await self.storage.delete(storage_key)
            raise

        logger.info(
            f"Stored file {file_id} ({size} bytes, expires in {hours}h, "
            f"{'protected' if record.is_protected else 'public'})"
        )
        return record

    # ── Read paths ───────────────────────────────────────────────────

    async def _live_record(self, file_id: str) -> FileRecord:
        """Fetch a live record. Caller must hold the id's lock."""
        record = await self.store.get(file_id)
        if record is None:
            raise FileNotFoundOrExpired()
        if not record.is_live(self.clock()):
            await self._reap_locked(record)
            raise FileNotFoundOrExpired("File expired")
        return record

    async def inspect(self, file_id: str) -> FileInfo:
        async with self._locks.hold(file_id):
            record = await self._live_record(file_id)
        if record.is_protected:
            return FileInfo(id=record.id, is_protected=True)
        return FileInfo(
            id=record.id,
            is_protected=False,
            original_name=record.original_name,
            size_bytes=record.size_bytes,
            expires_at=record.expires_at,
        )

    async def unlock(self, file_id: str, password: Optional[str]) -> UnlockResult:
        async with self._locks.hold(file_id):
            record = await self._live_record(file_id)
        if record.is_protected and not await self.hasher.verify_async(password, record.credential_hash):
            logger.info(f"Rejected unlock for {file_id}: incorrect password")
            raise InvalidCredential()
        return UnlockResult(
            id=record.id,
            original_name=record.original_name,
            size_bytes=record.size_bytes,
            expires_at=record.expires_at,
            download_token=self.signer.mint(record.id, self.clock(), not_after=record.expires_at),
        )

    async def open_download(self, file_id: str, token: Optional[str]) -> Download:
        """Authorize and open the blob. Not-found always wins over access-denied."""
        async with self._locks.hold(file_id):
            record = await self._live_record(file_id)
            if record.is_protected and not self.signer.verify(file_id, token, self.clock()):
                logger.info(f"Rejected download for {file_id}: invalid or expired token")
                raise AccessDenied()
            try:
                chunks = await self.storage.open(record.storage_key)
            except BlobMissing:
                logger.warning(f"Blob {record.storage_key} missing for live record {file_id}; reaping")
                await self._reap_locked(record)
                raise FileNotFoundOrExpired()
        return Download(record=record, chunks=chunks)

    # ── Removal ──────────────────────────────────────────────────────

    async def _reap_locked(self, record: FileRecord) -> None:
        # Blob first: a failure here leaves metadata that the next access reaps again.
        await self.storage.delete(record.storage_key)
        await self.store.delete(record.id)
        logger.info(f"Reaped file {record.id}")

    async def reap(self, file_id: str) -> bool:
        """Remove a record and its blob together. Returns False if there was nothing to remove."""
        async with self._locks.hold(file_id):
            record = await self.store.get(file_id)
            if record is None:
                return False
            await self._reap_locked(record)
            return True

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Reap every record already expired at `now`. Storage reclamation only."""
        now = now or self.clock()
        reaped = 0
        for file_id in await self.store.expired_ids(now):
            async with self._locks.hold(file_id):
                record = await self.store.get(file_id)
                # Re-check under the lock; the record may be gone already.
                if record is None or record.is_live(now):
                    continue
                await self._reap_locked(record)
                reaped += 1
        if reaped:
            logger.info(f"Sweep reaped {reaped} expired file(s)")
        return reaped
