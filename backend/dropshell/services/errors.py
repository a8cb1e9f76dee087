"""Error taxonomy for the file lifecycle.

Each error carries the HTTP status the API layer renders it with. Not-found
and access-denied stay distinct so clients can tell "link expired" apart from
"password required".
"""


class LifecycleError(Exception):
    """Base class for client-facing lifecycle errors."""
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class FileNotFoundOrExpired(LifecycleError):
    status_code = 404
    default_message = "File not found or expired"


class InvalidCredential(LifecycleError):
    """Wrong password presented to unlock."""
    status_code = 401
    default_message = "Incorrect password"


class AccessDenied(LifecycleError):
    """Missing, forged or stale download token for a protected file."""
    status_code = 403
    default_message = "Access denied"


class UploadValidationError(LifecycleError):
    status_code = 400
    default_message = "Invalid upload"


class UploadTooLarge(UploadValidationError):
    status_code = 413
    default_message = "File exceeds the maximum upload size"


class BlobMissing(Exception):
    """Raised by blob storage when a key has no bytes behind it."""
    pass
