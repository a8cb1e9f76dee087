"""Domain record for an uploaded file.

Both metadata store backends hand these out, so the lifecycle manager never
sees an ORM object.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class FileRecord:
    id: str
    original_name: str
    storage_key: str
    size_bytes: int
    created_at: datetime
    expires_at: datetime
    credential_hash: Optional[str] = None
    mime_type: Optional[str] = None

    def __post_init__(self):
        if self.size_bytes < 0:
            raise ValueError(f"size_bytes must be non-negative, got {self.size_bytes}")
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")

    @property
    def is_protected(self) -> bool:
        return self.credential_hash is not None

    def is_live(self, now: datetime) -> bool:
        return now <= self.expires_at
