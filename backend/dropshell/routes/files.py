"""File sharing API routes: upload, info, unlock, download."""
from typing import Optional, Union
from urllib.parse import quote

from fastapi import APIRouter, Depends, File as FastAPIFile, Form, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from dropshell.schemas.file import (
    ErrorResponse,
    ProtectedFileInfo,
    PublicFileInfo,
    UnlockRequest,
    UnlockResponse,
    UploadResponse,
)
from dropshell.services.errors import UploadValidationError
from dropshell.services.lifecycle import FileLifecycleManager

router = APIRouter(prefix="/api", tags=["files"])

_ERRORS = {404: {"model": ErrorResponse}}


def get_lifecycle(request: Request) -> FileLifecycleManager:
    """FastAPI dependency returning the app's lifecycle manager."""
    return request.app.state.lifecycle


def _share_url(request: Request, file_id: str) -> str:
    base = request.app.state.settings.PUBLIC_BASE_URL or str(request.base_url)
    return f"{base.rstrip('/')}/?file={file_id}"


def _content_disposition(filename: str) -> str:
    quoted = quote(filename, safe="")
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}},
)
async def upload_file(
    request: Request,
    file: Optional[UploadFile] = FastAPIFile(None),
    password: Optional[str] = Form(None),
    expiration: Optional[str] = Form(None),
    lifecycle: FileLifecycleManager = Depends(get_lifecycle),
):
    """Upload a file, optionally password-protected, with an expiration in hours."""
    if file is None:
        raise UploadValidationError("No file uploaded")
    try:
        record = await lifecycle.create(
            file.read,
            file.filename,
            ttl_hours=expiration,
            credential=password or None,
            mime_type=file.content_type,
        )
    finally:
        await file.close()
    return UploadResponse(file_id=record.id, download_url=_share_url(request, record.id))


@router.get(
    "/info/{file_id}",
    response_model=Union[ProtectedFileInfo, PublicFileInfo],
    responses=_ERRORS,
)
async def get_file_info(
    file_id: str,
    lifecycle: FileLifecycleManager = Depends(get_lifecycle),
):
    """Describe a file. Protected files reveal nothing but their id."""
    info = await lifecycle.inspect(file_id)
    if info.is_protected:
        return ProtectedFileInfo(file_id=info.id)
    return PublicFileInfo(
        original_name=info.original_name,
        size=info.size_bytes,
        expires_at=info.expires_at,
    )


@router.post(
    "/unlock/{file_id}",
    response_model=UnlockResponse,
    responses={**_ERRORS, 401: {"model": ErrorResponse}},
)
async def unlock_file(
    file_id: str,
    body: Optional[UnlockRequest] = None,
    lifecycle: FileLifecycleManager = Depends(get_lifecycle),
):
    """Check the password and hand out a download token."""
    result = await lifecycle.unlock(file_id, body.password if body else None)
    return UnlockResponse(
        original_name=result.original_name,
        size=result.size_bytes,
        expires_at=result.expires_at,
        download_token=result.download_token,
    )


@router.get("/download/{file_id}", responses={**_ERRORS, 403: {"model": ErrorResponse}})
async def download_file(
    file_id: str,
    token: Optional[str] = Query(None),
    lifecycle: FileLifecycleManager = Depends(get_lifecycle),
):
    """Stream the file back under its original name."""
    download = await lifecycle.open_download(file_id, token)
    record = download.record
    return StreamingResponse(
        download.chunks,
        media_type=record.mime_type or "application/octet-stream",
        headers={
            "Content-Disposition": _content_disposition(record.original_name),
            "Content-Length": str(record.size_bytes),
        },
    )
