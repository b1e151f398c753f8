"""Per-user lease that keeps two reconciliations of the same user from overlapping.

The lease is a Redis key set with NX and a TTL. Whoever set it holds it until
the block exits or the TTL runs out; the value is a random token so a worker
whose lease expired never deletes a lease someone else took over.

Holding the lease is an optimisation. Correctness does not depend on it: the
unique (user, workout, day) constraint and the status compare-and-set still
apply when two runs do overlap, for example after a TTL expiry.
"""

from __future__ import annotations

import uuid
from collections.abc import Generator
from contextlib import contextmanager

import redis
from loguru import logger

from app.config.settings import settings

RECONCILE_LOCK_PREFIX = "lock:playlists:reconcile"


def reconcile_lock_key(user_id: str) -> str:
    return f"{RECONCILE_LOCK_PREFIX}:{user_id}"


class ReconcileLease:
    def __init__(self, client: redis.Redis | None = None, ttl_seconds: int | None = None) -> None:
        self.redis = client if client is not None else redis.from_url(settings.redis_url, decode_responses=True)
        self.ttl_seconds = ttl_seconds or settings.reconcile_lock_ttl_seconds

    @contextmanager
    def hold(self, user_id: str) -> Generator[bool, None, None]:
        """Yield True while this worker holds the user's lease, False if another run has it."""
        key = reconcile_lock_key(user_id)
        token = uuid.uuid4().hex

        if not self.redis.set(key, token, nx=True, ex=self.ttl_seconds):
            logger.debug(f"[RECONCILE] Lease busy for user_id={user_id}")
            yield False
            return

        try:
            yield True
        finally:
            if self.redis.get(key) == token:
                self.redis.delete(key)
            else:
                logger.warning(f"[RECONCILE] Lease for user_id={user_id} expired before the run finished")


reconcile_lease = ReconcileLease()
