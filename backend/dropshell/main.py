"""FastAPI application entry point."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dropshell.config import Settings, settings as default_settings
from dropshell.database import build_engine, build_session_factory
from dropshell.models import Base
from dropshell.routes.files import router as files_router
from dropshell.services.credentials import CredentialHasher
from dropshell.services.errors import LifecycleError
from dropshell.services.file_storage import FileStorageService
from dropshell.services.lifecycle import FileLifecycleManager
from dropshell.services.metadata_store import DatabaseMetadataStore, InMemoryMetadataStore
from dropshell.services.sweeper import sweep_loop
from dropshell.services.tokens import DownloadTokenSigner

logger = logging.getLogger(__name__)


def build_lifecycle(app_settings: Settings, session_factory=None) -> FileLifecycleManager:
    """Wire the lifecycle manager from settings."""
    if app_settings.METADATA_STORE == "memory":
        logger.warning("Using in-memory metadata store: all files are forgotten on restart")
        store = InMemoryMetadataStore()
    elif app_settings.METADATA_STORE == "database":
        store = DatabaseMetadataStore(session_factory)
    else:
        raise ValueError(f"Unknown metadata store: {app_settings.METADATA_STORE}")

    return FileLifecycleManager(
        store=store,
        storage=FileStorageService(app_settings.FILE_STORAGE_PATH, app_settings.FILE_STORAGE_TYPE),
        signer=DownloadTokenSigner(app_settings.TOKEN_SECRET, app_settings.DOWNLOAD_TOKEN_TTL_SECONDS),
        hasher=CredentialHasher(app_settings.BCRYPT_ROUNDS),
        max_upload_bytes=app_settings.MAX_UPLOAD_BYTES,
        default_ttl_hours=app_settings.DEFAULT_EXPIRATION_HOURS,
        max_ttl_hours=app_settings.MAX_EXPIRATION_HOURS,
    )


def create_app(
    app_settings: Optional[Settings] = None,
    lifecycle: Optional[FileLifecycleManager] = None,
) -> FastAPI:
    app_settings = app_settings or default_settings
    engine = None
    if lifecycle is None:
        session_factory = None
        if app_settings.METADATA_STORE == "database":
            engine = build_engine(app_settings.DATABASE_URL)
            session_factory = build_session_factory(engine)
        lifecycle = build_lifecycle(app_settings, session_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables on startup, start the expiry sweeper."""
        if engine is not None:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        sweep_task = None
        if app_settings.SWEEP_INTERVAL_SECONDS > 0:
            sweep_task = asyncio.create_task(sweep_loop(lifecycle, app_settings.SWEEP_INTERVAL_SECONDS))

        yield

        # Cleanup
        if sweep_task is not None:
            sweep_task.cancel()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Dropshell API",
        version="1.0.0",
        description="Ephemeral, optionally password-protected file sharing.",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.lifecycle = lifecycle

    # CORS
    origins = [o.strip() for o in app_settings.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LifecycleError)
    async def lifecycle_error_handler(request: Request, exc: LifecycleError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.get("/api/health")
    async def health_check():
        """Verify API and metadata store connectivity."""
        store = app.state.lifecycle.store
        try:
            await store.get("0" * 32)
            return {"status": "ok", "metadataStore": store.name}
        except Exception as e:
            return {"status": "error", "metadataStore": store.name, "error": str(e)}

    app.include_router(files_router)
    return app


app = create_app()
