"""Short-lived download tokens.

A token is "<expiry-epoch>.<sig>" where sig is base64url(HMAC-SHA256(secret,
"<file_id>:<expiry-epoch>")). It binds one file id and one expiry, so it can
neither be replayed against another file nor used past its expiry, and the
stored credential is never echoed back to clients.
"""
import base64
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

logger = logging.getLogger(__name__)


class DownloadTokenSigner:
    def __init__(self, secret: Optional[str] = None, ttl_seconds: int = 900):
        if not secret:
            logger.warning("TOKEN_SECRET not set; generated a per-process secret (tokens will not survive restart)")
            secret = secrets.token_urlsafe(32)
        self._key = secret.encode("utf-8")
        self.ttl = timedelta(seconds=ttl_seconds)

    def _sign(self, file_id: str, expires_epoch: int) -> str:
        mac = hmac.new(self._key, f"{file_id}:{expires_epoch}".encode("utf-8"), hashlib.sha256)
        return base64.urlsafe_b64encode(mac.digest()).rstrip(b"=").decode("ascii")

    def mint(self, file_id: str, now: datetime, not_after: Optional[datetime] = None) -> str:
        """Issue a token for `file_id`, valid until now + ttl (capped at `not_after`)."""
        expires = now + self.ttl
        if not_after is not None and not_after < expires:
            expires = not_after
        expires_epoch = int(expires.timestamp())
        return f"{expires_epoch}.{self._sign(file_id, expires_epoch)}"

    def verify(self, file_id: str, token: Optional[str], now: datetime) -> bool:
        if not token:
            return False
        expires_raw, sep, signature = token.partition(".")
        if not sep or not (expires_raw.isascii() and expires_raw.isdigit()) or len(expires_raw) > 12:
            return False
        expires_epoch = int(expires_raw)
        expected = self._sign(file_id, expires_epoch)
        if not hmac.compare_digest(expected.encode("ascii"), signature.encode("ascii", "replace")):
            return False
        return now.timestamp() <= expires_epoch
