"""File sharing request/response schemas."""
from datetime import datetime
from typing import Literal, Optional

from dropshell.schemas.base import CamelModel


class UploadResponse(CamelModel):
    success: bool = True
    file_id: str
    download_url: str


class ProtectedFileInfo(CamelModel):
    is_protected: Literal[True] = True
    file_id: str


class PublicFileInfo(CamelModel):
    is_protected: Literal[False] = False
    original_name: str
    size: int
    expires_at: datetime


class UnlockRequest(CamelModel):
    password: Optional[str] = None


class UnlockResponse(CamelModel):
    success: bool = True
    original_name: str
    size: int
    expires_at: datetime
    download_token: str


class ErrorResponse(CamelModel):
    error: str
