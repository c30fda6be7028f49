"""Hashing helpers for one-time codes."""

from functools import lru_cache

import anyio
from passlib.context import CryptContext


@lru_cache
def _otp_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


class OTPHasher:
    """bcrypt hashing of codes at a configurable cost factor."""

    def __init__(self, rounds: int):
        self.context = _otp_context(rounds)

    def hash(self, code: str) -> str:
        return self.context.hash(code)

    def verify(self, code: str, code_hash: str) -> bool:
        """Compare a plaintext code to its stored bcrypt hash; malformed hashes never match."""
        if not code or not code_hash:
            return False
        try:
            return self.context.verify(code, code_hash)
        except ValueError:
            return False

    async def hash_async(self, code: str) -> str:
        """Run bcrypt in a worker thread so the event loop is not blocked."""
        return await anyio.to_thread.run_sync(self.hash, code)

    async def verify_async(self, code: str, code_hash: str) -> bool:
        return await anyio.to_thread.run_sync(self.verify, code, code_hash)
