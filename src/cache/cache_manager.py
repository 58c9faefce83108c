"""Cache manager for the assessment server.

This module provides a high-level interface for caching operations using Redis,
with support for JSON serialization, TTL management, distributed locks and
event fan-out.
"""

import asyncio
import hashlib
import json
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from src.cache.cache_keys import CacheKeys
from src.core.config import get_settings
from src.database.redis_client import RedisClient
from src.utils.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


class CacheManager:
    """High-level cache management interface."""

    def __init__(self, redis_client: Optional[RedisClient] = None):
        """Initialize cache manager.

        Args:
            redis_client: Optional Redis client (class or instance)
        """
        self.redis = redis_client or RedisClient
        self.enabled = settings.ENABLE_CACHE
        self._lock_tokens: Dict[str, str] = {}

    async def get(self, key: str, default: Any = None) -> Any:
        """Get value from cache.

        Args:
            key: Cache key
            default: Default value if key not found

        Returns:
            Cached value or default
        """
        if not self.enabled:
            return default

        try:
            value = await self.redis.get(key)
            if value is None:
                return default

            try:
                return json.loads(value)
            except (json.JSONDecodeError, TypeError):
                return value

        except Exception as e:
            logger.error(f"Cache get error for key {key}: {str(e)}")
            return default

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        nx: bool = False,
    ) -> bool:
        """Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds
            nx: Only set if key doesn't exist

        Returns:
            True if successful
        """
        if not self.enabled:
            return True

        try:
            if not isinstance(value, (str, int, float, bytes)):
                value = json.dumps(value, default=str)

            return await self.redis.set(key, value, ttl=ttl, nx=nx)

        except Exception as e:
            logger.error(f"Cache set error for key {key}: {str(e)}")
            return False

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys from cache."""
        if not self.enabled or not keys:
            return 0

        try:
            return await self.redis.delete(*keys)
        except Exception as e:
            logger.error(f"Cache delete error: {str(e)}")
            return 0

    async def get_or_set(
        self,
        key: str,
        func: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
        force_refresh: bool = False
    ) -> Any:
        """Get value from cache or compute and cache it.

        Args:
            key: Cache key
            func: Async function to compute value
            ttl: Time to live in seconds
            force_refresh: Force recompute value

        Returns:
            Cached or computed value
        """
        if not self.enabled:
            return await func()

        if not force_refresh:
            cached = await self.get(key)
            if cached is not None:
                logger.debug(f"Cache hit for key: {key}")
                return cached

        logger.debug(f"Cache miss for key: {key}")
        value = await func()
        await self.set(key, value, ttl=ttl)
        return value

    # Scoring result cache

    async def cache_result(self, session_id: str, result_data: dict, ttl: Optional[int] = None) -> bool:
        """Cache a scored result keyed by its session."""
        key = CacheKeys.result_by_session(session_id)
        return await self.set(key, result_data, ttl=ttl or settings.CACHE_TTL_DEFAULT)

    async def get_cached_result(self, session_id: str) -> Optional[dict]:
        return await self.get(CacheKeys.result_by_session(session_id))

    # Distributed locks

    async def acquire_lock(self, resource: str, ttl: int = 30, retry_times: int = 3) -> bool:
        """Acquire a distributed lock.

        Locking is independent of ``ENABLE_CACHE``; when Redis is not
        reachable the lock cannot be taken and False is returned.

        Args:
            resource: Resource identifier
            ttl: Lock timeout in seconds
            retry_times: Number of attempts before giving up

        Returns:
            True if lock acquired
        """
        lock_key = f"lock:{resource}"
        token = uuid.uuid4().hex

        for attempt in range(retry_times):
            if await self.redis.set(lock_key, token, ttl=ttl, nx=True):
                self._lock_tokens[lock_key] = token
                return True
            if attempt < retry_times - 1:
                await asyncio.sleep(0.1)

        logger.debug(f"Lock busy: {lock_key}")
        return False

    async def release_lock(self, resource: str) -> bool:
        """Release a distributed lock held by this manager.

        Args:
            resource: Resource identifier

        Returns:
            True if lock released
        """
        lock_key = f"lock:{resource}"
        token = self._lock_tokens.pop(lock_key, None)
        if token is None:
            return False

        current = await self.redis.get(lock_key)
        if current is not None and current != token:
            logger.warning(f"Lock {lock_key} expired and was taken by another holder")
            return False
        return await self.redis.delete(lock_key) > 0

    # Events

    async def publish(self, channel: str, payload: Dict[str, Any]) -> int:
        """Publish a JSON payload on a Redis channel.

        Returns:
            Number of subscribers that received it
        """
        try:
            message = json.dumps(payload, default=str)
        except (TypeError, ValueError) as e:
            logger.error(f"Event encode error for channel {channel}: {str(e)}")
            return 0
        return await self.redis.publish(channel, message)

    def compute_hash(self, data: Union[str, dict, list]) -> str:
        """Compute a short stable hash for use in cache keys."""
        if not isinstance(data, str):
            data = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(data.encode()).hexdigest()[:16]


__all__ = ["CacheManager"]
