# plan_store.py
"""
Key-value storage for plan state.

Values are opaque strings (the orchestrator owns serialization). Every write
carries a TTL so abandoned requests are evicted without any cleanup job.
Both stores also hand out a short-lived per-key lock used to serialize
read-modify-write cycles on a single request.
"""

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Dict, Optional, Tuple

import redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "request:"
LOCK_PREFIX = "lock:request:"


def plan_key(request_id: str) -> str:
    return f"{KEY_PREFIX}{request_id}"


class MemoryPlanStore:
    """In-process store for local development and tests.

    Expiry is checked lazily on read, using a monotonic clock.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._values: Dict[str, Tuple[str, float]] = {}
        self._locks: Dict[str, Tuple[str, float]] = {}
        self._mutex = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._mutex:
            entry = self._values.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._values[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._mutex:
            now = self._clock()
            # Abandoned requests are never read again; drop them here
            expired = [k for k, (_, expires_at) in self._values.items() if now >= expires_at]
            for k in expired:
                del self._values[k]
            self._values[key] = (value, now + ttl_seconds)

    def __len__(self) -> int:
        with self._mutex:
            return len(self._values)

    @contextmanager
    def lock(self, key: str, timeout: float):
        """Yield True if the lock was taken, False if someone else holds it."""
        token = str(uuid.uuid4())
        now = self._clock()
        with self._mutex:
            holder = self._locks.get(key)
            if holder is not None and holder[1] > now:
                acquired = False
            else:
                self._locks[key] = (token, now + timeout)
                acquired = True

        if not acquired:
            logger.debug("Lock busy: %s", key)
            yield False
            return

        try:
            yield True
        finally:
            with self._mutex:
                holder = self._locks.get(key)
                if holder is not None and holder[0] == token:
                    del self._locks[key]


class RedisPlanStore:
    """Redis-backed store. Connection errors propagate to the caller."""

    def __init__(self, client: redis.Redis):
        self.redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisPlanStore":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        return self.redis.get(key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.redis.set(key, value, ex=ttl_seconds)

    @contextmanager
    def lock(self, key: str, timeout: float):
        """SET NX lock with a token-checked release.

        The TTL bounds how long a crashed handler can keep the key locked.
        """
        token = str(uuid.uuid4())
        acquired = self.redis.set(key, token, nx=True, px=int(timeout * 1000))

        if not acquired:
            logger.debug("Lock busy: %s", key)
            yield False
            return

        try:
            yield True
        finally:
            if self.redis.get(key) == token:
                self.redis.delete(key)


def build_store(redis_url: Optional[str]):
    """Redis when a URL is configured, otherwise the in-memory store."""
    if redis_url:
        logger.info("Plan state stored in Redis")
        return RedisPlanStore.from_url(redis_url)
    logger.info("REDIS_URL not set, using in-memory plan storage")
    return MemoryPlanStore()
