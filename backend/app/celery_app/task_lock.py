"""
Redis-based lease for sync runs.

At most one run may write a given target branch at a time, whether it was
started from the SSE endpoint, a manual enqueue or the beat scanner.
Keys look like "repolease:sync:<owner>/<name>:<branch>".
"""

import logging
from contextlib import contextmanager
from typing import Optional

import redis

from app.core.config import REDIS_URL

logger = logging.getLogger(__name__)


class TaskLock:
    """Distributed lease using Redis SET NX EX."""

    KEY_PREFIX = "repolease:"

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self.redis = client or redis.from_url(redis_url or REDIS_URL, decode_responses=True)

    def _key(self, lock_key: str) -> str:
        return f"{self.KEY_PREFIX}{lock_key}"

    def acquire(self, lock_key: str, ttl_seconds: int = 300, task_id: Optional[str] = None) -> bool:
        """
        Try to take the lease.

        Args:
            lock_key: Lease identifier (e.g., "sync:acme/mirror:main")
            ttl_seconds: Expiry, so a crashed holder cannot block forever
            task_id: Holder identity, required to release

        Returns:
            True if taken, False if someone else holds it
        """
        acquired = self.redis.set(self._key(lock_key), task_id or "1", nx=True, ex=ttl_seconds)
        if not acquired:
            holder = self.redis.get(self._key(lock_key))
            logger.debug(f"Lease {lock_key} held by {holder}")
        return bool(acquired)

    def release(self, lock_key: str, task_id: Optional[str] = None) -> bool:
        """Release the lease; with task_id, only if we still hold it."""
        full_key = self._key(lock_key)

        if task_id:
            current = self.redis.get(full_key)
            if current != task_id:
                logger.warning(f"Lease {lock_key} not held by {task_id}, current holder: {current}")
                return False

        return bool(self.redis.delete(full_key))

    @contextmanager
    def lock(self, lock_key: str, ttl_seconds: int = 300, task_id: Optional[str] = None):
        """
        Usage:
            with task_lock.lock("scan:due-syncs", 55) as acquired:
                if acquired:
                    do_work()
        """
        acquired = self.acquire(lock_key, ttl_seconds, task_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(lock_key, task_id)


_task_lock: Optional[TaskLock] = None


def get_task_lock() -> TaskLock:
    """Process-wide TaskLock."""
    global _task_lock
    if _task_lock is None:
        _task_lock = TaskLock()
    return _task_lock
