"""Shared fixtures: a controllable clock, a temp blob dir and an in-process API client."""
import io
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator

import httpx
import pytest
from fastapi import FastAPI

from dropshell.config import Settings
from dropshell.database import build_engine, build_session_factory
from dropshell.main import create_app
from dropshell.models import Base
from dropshell.services.credentials import CredentialHasher
from dropshell.services.file_storage import FileStorageService
from dropshell.services.lifecycle import FileLifecycleManager
from dropshell.services.metadata_store import DatabaseMetadataStore, InMemoryMetadataStore, MetadataStore
from dropshell.services.tokens import DownloadTokenSigner


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def reader(data: bytes):
    """Async read(size) over in-memory bytes, shaped like UploadFile.read."""
    buf = io.BytesIO(data)

    async def read(size: int) -> bytes:
        return buf.read(size)

    return read


async def drain(chunks) -> bytes:
    return b"".join([chunk async for chunk in chunks])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage(tmp_path) -> FileStorageService:
    return FileStorageService(str(tmp_path / "blobs"), "local")


@pytest.fixture(params=["memory", "database"])
async def store(request, tmp_path) -> AsyncIterator[MetadataStore]:
    """Run every lifecycle and API test against both metadata backends."""
    if request.param == "memory":
        yield InMemoryMetadataStore()
        return
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'meta.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield DatabaseMetadataStore(build_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def lifecycle(store, storage, clock) -> FileLifecycleManager:
    return FileLifecycleManager(
        store=store,
        storage=storage,
        signer=DownloadTokenSigner("test-secret", ttl_seconds=900),
        hasher=CredentialHasher(rounds=4),
        clock=clock,
        max_upload_bytes=1024 * 1024,
        default_ttl_hours=24,
        max_ttl_hours=168,
    )


@pytest.fixture
def app(lifecycle, tmp_path) -> FastAPI:
    app_settings = Settings(
        METADATA_STORE="memory",
        FILE_STORAGE_PATH=str(tmp_path / "blobs"),
        SWEEP_INTERVAL_SECONDS=0,
        PUBLIC_BASE_URL="",
    )
    return create_app(app_settings, lifecycle=lifecycle)


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """HTTPX client over ASGI, no real server."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
