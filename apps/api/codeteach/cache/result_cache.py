"""TTL result cache for tool executions (in-process, or Redis when configured)."""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from ..core.config import settings


logger = logging.getLogger(__name__)


class ResultCache:
    """
    Key/value cache with per-entry TTL.

    Entries live in a process-local dict unless REDIS_URL is set, in which
    case they are stored in Redis with native expiry. There is no eviction
    other than TTL expiry, and no cross-key locking.
    """

    def __init__(self, redis_url: Optional[str] = None, clock: Callable[[], float] = time.monotonic):
        self.redis_url = redis_url
        self.redis: Optional[Any] = None
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}

    @property
    def backend(self) -> str:
        return "redis" if self.redis is not None else "memory"

    async def connect(self):
        """Connect to Redis if a URL is configured."""
        if not self.redis_url:
            logger.info("Tool result cache using in-process memory (REDIS_URL not set)")
            return

        try:
            self.redis = redis.from_url(
                self.redis_url,
                decode_responses=True,
                encoding="utf-8"
            )
            await self.redis.ping()
            logger.info(f"Tool result cache connected to Redis at {self.redis_url}")
        except (redis.RedisError, OSError) as e:
            logger.warning(f"Failed to connect to Redis: {e}. Falling back to in-process cache.")
            self.redis = None

    async def disconnect(self):
        """Disconnect from Redis."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Disconnected from Redis")

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if missing or expired
        """
        if self.redis is not None:
            try:
                value = await self.redis.get(key)
            except redis.RedisError as e:
                logger.error(f"Cache get error for key {key}: {e}")
                return None
            return json.loads(value) if value else None

        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return json.loads(value)

    async def set(self, key: str, value: Any, ttl: int = 60) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache (must be JSON serializable)
            ttl: Time to live in seconds

        Returns:
            True if stored
        """
        payload = json.dumps(value)
        if self.redis is not None:
            try:
                await self.redis.set(key, payload, ex=ttl)
                return True
            except redis.RedisError as e:
                logger.error(f"Cache set error for key {key}: {e}")
                return False

        now = self._clock()
        self._evict_expired(now)
        self._entries[key] = (now + ttl, payload)
        return True

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired cache entries")

    @property
    def size(self) -> int:
        """Number of entries held in memory (0 on the Redis backend)."""
        return len(self._entries)


def tool_cache_key(tool_name: str, args: Dict[str, Any]) -> str:
    """Canonical cache key: tool name plus normalized, key-sorted arguments."""
    normalized = {
        key: value.strip() if isinstance(value, str) else value
        for key, value in args.items()
        if value is not None
    }
    return f"tool:{tool_name}:" + json.dumps(normalized, sort_keys=True, separators=(",", ":"))


# Global cache instance
cache = ResultCache(redis_url=settings.REDIS_URL)
