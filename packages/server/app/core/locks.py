"""
Short-lived Redis leases for periodic jobs.

A lease is a ``SET NX EX`` key holding a random token. Whoever set the key
owns the tick until it releases it or the TTL runs out.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from app.core.redis import get_redis, redis_key

logger = logging.getLogger(__name__)

# Delete the key only if it still holds our token
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class TickLease:
    """Lease per job name under ``<ns>:lease:<name>``."""

    def __init__(self, ttl_seconds: int = 55) -> None:
        self.ttl_seconds = ttl_seconds

    async def acquire(self, name: str) -> Optional[str]:
        """Return an owner token, or None if another process holds the lease."""
        token = uuid.uuid4().hex
        redis = await get_redis()
        acquired = await redis.set(redis_key("lease", name), token, nx=True, ex=self.ttl_seconds)
        if not acquired:
            logger.info("Lease %s is held elsewhere", name)
            return None
        return token

    async def release(self, name: str, token: str) -> bool:
        redis = await get_redis()
        released = await redis.eval(_RELEASE_SCRIPT, 1, redis_key("lease", name), token)
        return bool(released)
