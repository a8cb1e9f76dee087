"""Salted password hashing for protected files (bcrypt).

The password is SHA-256'd and base64-encoded before bcrypt, which keeps long
passwords inside bcrypt's 72-byte input limit without truncating them.
Hashing is CPU-bound, so the async helpers run it in a worker thread.
"""
import asyncio
import base64
import hashlib
from typing import Optional

import bcrypt

from dropshell.config import settings


def _prehash(password: str) -> bytes:
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


class CredentialHasher:
    def __init__(self, rounds: Optional[int] = None):
        self.rounds = rounds or settings.BCRYPT_ROUNDS

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_prehash(password), salt).decode("ascii")

    def verify(self, password: Optional[str], stored_hash: str) -> bool:
        """Constant-time check of `password` against `stored_hash`."""
        if password is None:
            # Still burn a comparison so a missing password costs the same.
            password = ""
        try:
            return bcrypt.checkpw(_prehash(password), stored_hash.encode("ascii"))
        except ValueError:
            return False

    async def hash_async(self, password: str) -> str:
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, password: Optional[str], stored_hash: str) -> bool:
        return await asyncio.to_thread(self.verify, password, stored_hash)
