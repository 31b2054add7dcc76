"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

bcrypt gives us the three properties that matter for low-entropy secrets:
  - a random salt per hash (gensalt), so equal passwords hash differently,
  - a tunable cost factor (BCRYPT_ROUNDS),
  - checkpw compares the recomputed hash in constant time.

The hashing cost is CPU-bound. Route handlers never call the hasher on the
shared threadpool: they go through run_hashing(), which runs the call on a
worker thread of its own CapacityLimiter (HASH_MAX_CONCURRENCY slots).
Requests waiting for a slot wait on the event loop and hold no thread, so a
burst of logins leaves the threadpool free for every other route.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

import anyio
import anyio.to_thread
import bcrypt

logger = logging.getLogger("userdesk.auth")

# bcrypt only looks at the first 72 bytes of input (bcrypt >= 5 raises instead).
MAX_PASSWORD_BYTES = 72

T = TypeVar("T")


class PasswordHasher:
    """Salted, adaptive hashing and verification of plaintext passwords."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Timing equalization hash [C1]. Computed once so a login for an
        # unknown email still pays one full bcrypt verification.
        self.dummy_hash: str = self.hash("userdesk_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of plain using a fresh salt at the configured cost."""
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed.

        Never raises: a malformed or non-bcrypt hash, or an over-long password,
        is reported as a mismatch.
        """
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            logger.debug("Password verification failed on an unusable hash")
            return False


def hashing_limiter(max_concurrency: int) -> anyio.CapacityLimiter:
    """Return the limiter that caps concurrent bcrypt-bound calls.

    Create it inside the running event loop (the lifespan does).
    """
    return anyio.CapacityLimiter(max_concurrency)


async def run_hashing(limiter: anyio.CapacityLimiter, func: Callable[..., T], *args) -> T:
    """Run func(*args) on a worker thread once limiter has a free slot.

    func is a blocking call that hashes or verifies a password (register,
    login, create or update). Exceptions raised by func propagate unchanged.
    """
    return await anyio.to_thread.run_sync(func, *args, limiter=limiter)
