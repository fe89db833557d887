"""
Redis connection and owner-checked distributed locks
"""

from typing import Optional
import logging
import time

import redis.asyncio as redis

from cinebook.config import settings

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


async def init_redis():
    """Connect to Redis; used only with the redis lock backend"""
    global redis_client
    try:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True
        )
        await redis_client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise


async def close_redis():
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")


async def get_redis() -> redis.Redis:
    if not redis_client:
        await init_redis()
    return redis_client


class CircuitBreaker:
    """
    Stops calling Redis for ``recovery_timeout`` seconds after
    ``failure_threshold`` consecutive failures
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 30):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.opened_at: Optional[float] = None

    @property
    def is_open(self) -> bool:
        if self.opened_at is None:
            return False
        if time.monotonic() - self.opened_at >= self.recovery_timeout:
            # Half open: let the next call through
            self.opened_at = None
            self.failure_count = self.failure_threshold - 1
            return False
        return True

    async def call(self, func, *args, **kwargs):
        if self.is_open:
            raise ConnectionError("Redis circuit breaker is open")
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.failure_count += 1
            if self.failure_count >= self.failure_threshold:
                self.opened_at = time.monotonic()
                logger.warning("Redis circuit breaker opened")
            raise
        self.failure_count = 0
        return result


# Delete only when the caller still owns the lock
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisManager:
    """
    Showtime locks stored as ``lock:<resource>`` keys with a TTL
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self.client = client
        self.circuit_breaker = CircuitBreaker()
        self.logger = logging.getLogger(__name__)

    async def get_client(self) -> redis.Redis:
        if not self.client:
            self.client = await get_redis()
        return self.client

    async def ping(self) -> bool:
        client = await self.get_client()
        return bool(await client.ping())

    async def acquire_lock(self, resource: str, identifier: str, ttl: int = 30) -> bool:
        """
        ``SET lock:<resource> <identifier> NX EX ttl``. Redis errors count as
        not acquired so callers keep retrying until their deadline.
        """
        client = await self.get_client()
        try:
            acquired = await self.circuit_breaker.call(
                client.set, f"lock:{resource}", identifier, nx=True, ex=ttl
            )
        except Exception as e:
            self.logger.error(f"Error acquiring lock for {resource}: {e}")
            return False
        if acquired:
            self.logger.debug(f"Lock acquired for {resource} by {identifier}")
        return bool(acquired)

    async def release_lock(self, resource: str, identifier: str) -> bool:
        client = await self.get_client()
        try:
            result = await client.eval(RELEASE_LOCK_SCRIPT, 1, f"lock:{resource}", identifier)
        except Exception as e:
            self.logger.error(f"Error releasing lock for {resource}: {e}")
            return False
        if result != 1:
            self.logger.warning(f"Lock for {resource} expired before release")
            return False
        return True


redis_manager = RedisManager()
