"""Account lockout tracking for repeated failed logins.

The login view only depends on the :class:`LoginLockout` protocol so the
backing store can be swapped. :class:`CacheLockoutStore` keeps attempt
counters in the Flask-Caching backend configured for the app. The default
``SimpleCache`` is per-process, so each worker counts on its own and a
restart forgets every lock. Set ``CACHE_TYPE=RedisCache`` to share lockouts
between workers and keep them across restarts.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from flask_caching import Cache

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LockoutStatus:
    """Result of a lockout check."""

    locked: bool
    remaining_minutes: int = 0


def normalize_login_key(username: str) -> str:
    """Return the case-insensitive form of ``username`` used for throttling."""

    return username.strip().lower()


class LoginLockout(Protocol):
    """Capability interface consulted by the login view."""

    def check(self, key: str) -> LockoutStatus: ...

    def record_failure(self, key: str) -> LockoutStatus: ...

    def clear(self, key: str) -> None: ...


class CacheLockoutStore:
    """Count failed logins per key and lock the key after too many.

    ``max_attempts`` failures where each follows the previous one within
    ``window_seconds`` lock the key for ``lock_seconds``. A failure after a
    longer gap restarts the count at one.
    """

    prefix = "login-lockout:"

    def __init__(
        self,
        cache: Cache,
        *,
        max_attempts: int = 5,
        window_seconds: int = 15 * 60,
        lock_seconds: int = 30 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self._cache = cache
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.lock_seconds = lock_seconds
        self._clock = clock

    def _key(self, key: str) -> str:
        return f"{self.prefix}{normalize_login_key(key)}"

    def _load(self, key: str) -> Optional[dict]:
        return self._cache.get(self._key(key))

    def check(self, key: str) -> LockoutStatus:
        record = self._load(key)
        if not record or not record.get("locked_until"):
            return LockoutStatus(locked=False)
        now = self._clock()
        if record["locked_until"] > now:
            remaining = math.ceil((record["locked_until"] - now) / 60)
            return LockoutStatus(locked=True, remaining_minutes=remaining)
        self.clear(key)
        return LockoutStatus(locked=False)

    def record_failure(self, key: str) -> LockoutStatus:
        now = self._clock()
        record = self._load(key)
        if not record or record.get("locked_until", now + 1) <= now:
            record = {"count": 0, "last_attempt": now}
        if now - record["last_attempt"] > self.window_seconds:
            record["count"] = 1
        else:
            record["count"] += 1
        record["last_attempt"] = now
        if record["count"] >= self.max_attempts:
            record["locked_until"] = now + self.lock_seconds
            logger.warning(
                "Locked login for %s after %d failed attempts", key, record["count"]
            )
        self._cache.set(
            self._key(key),
            record,
            timeout=max(self.window_seconds, self.lock_seconds),
        )
        if record.get("locked_until", 0) > now:
            return LockoutStatus(
                locked=True, remaining_minutes=math.ceil(self.lock_seconds / 60)
            )
        return LockoutStatus(locked=False)

    def clear(self, key: str) -> None:
        self._cache.delete(self._key(key))
