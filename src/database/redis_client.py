"""Redis client for the assessment server.

Connection pooling plus the small set of operations the services rely on:
JSON caching of simulation and scoring artefacts, the ``SET NX`` primitive
behind distributed locks, and pub/sub for domain events.
"""

import asyncio
from typing import Any, Optional, Union

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
)

from src.core.config import get_settings
from src.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


class RedisClient:
    """Redis client manager with connection pooling and operations."""

    _pool: Optional[ConnectionPool] = None
    _client: Optional[redis.Redis] = None
    _initialized: bool = False
    _lock: asyncio.Lock = asyncio.Lock()

    @classmethod
    async def connect(
        cls,
        url: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        """Connect to Redis with connection pooling.

        Args:
            url: Redis connection URL
            **kwargs: Additional connection parameters
        """
        async with cls._lock:
            if cls._initialized:
                logger.warning("Redis already connected")
                return

            try:
                connection_url = url or settings.get_redis_url()

                pool_kwargs = {
                    "max_connections": kwargs.get("max_connections", settings.REDIS_MAX_CONNECTIONS),
                    "decode_responses": kwargs.get("decode_responses", settings.REDIS_DECODE_RESPONSES),
                    "encoding": "utf-8",
                    "health_check_interval": kwargs.get(
                        "health_check_interval",
                        settings.REDIS_HEALTH_CHECK_INTERVAL
                    ),
                    "socket_keepalive": True,
                    "socket_connect_timeout": kwargs.get("socket_connect_timeout", 5),
                    "retry_on_timeout": True,
                    "retry_on_error": [RedisConnectionError, RedisTimeoutError],
                }

                if settings.REDIS_PASSWORD:
                    pool_kwargs["password"] = settings.REDIS_PASSWORD

                cls._pool = ConnectionPool.from_url(connection_url, **pool_kwargs)
                cls._client = redis.Redis(connection_pool=cls._pool)

                await cls._client.ping()

                cls._initialized = True
                logger.info(
                    "Redis connected successfully",
                    extra={"max_connections": pool_kwargs["max_connections"]}
                )

            except Exception as e:
                cls._pool = None
                cls._client = None
                cls._initialized = False
                logger.error(f"Redis connection failed: {str(e)}", exc_info=True)
                raise

    @classmethod
    async def disconnect(cls) -> None:
        """Disconnect from Redis and release the pool."""
        async with cls._lock:
            if cls._client is None:
                return
            try:
                await cls._client.close()
                if cls._pool is not None:
                    await cls._pool.disconnect()
                logger.info("Redis disconnected successfully")
            except Exception as e:
                logger.error(f"Error disconnecting from Redis: {str(e)}", exc_info=True)
            finally:
                cls._client = None
                cls._pool = None
                cls._initialized = False

    @classmethod
    async def ping(cls) -> bool:
        """Check if Redis connection is alive."""
        if not cls._initialized or cls._client is None:
            return False

        try:
            return await cls._client.ping() is True
        except Exception as e:
            logger.error(f"Redis ping failed: {str(e)}")
            return False

    @classmethod
    async def get(cls, key: str) -> Optional[str]:
        """Get value by key.

        Args:
            key: Cache key

        Returns:
            Value or None if not found or Redis is unavailable
        """
        if cls._client is None:
            return None

        try:
            return await cls._client.get(key)
        except Exception as e:
            logger.error(f"Redis GET error for key {key}: {str(e)}")
            return None

    @classmethod
    async def set(
        cls,
        key: str,
        value: Union[str, int, float],
        ttl: Optional[int] = None,
        nx: bool = False,
    ) -> bool:
        """Set key-value pair with optional TTL.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time to live in seconds
            nx: Only set if key doesn't exist

        Returns:
            bool: True if the value was written
        """
        if cls._client is None:
            return False

        try:
            result = await cls._client.set(key, value, ex=ttl, nx=nx)
            return bool(result)
        except Exception as e:
            logger.error(f"Redis SET error for key {key}: {str(e)}")
            return False

    @classmethod
    async def delete(cls, *keys: str) -> int:
        """Delete one or more keys, returning how many existed."""
        if cls._client is None or not keys:
            return 0

        try:
            return await cls._client.delete(*keys)
        except Exception as e:
            logger.error(f"Redis DELETE error: {str(e)}")
            return 0

    @classmethod
    async def publish(cls, channel: str, message: str) -> int:
        """Publish message to channel.

        Args:
            channel: Channel name
            message: Message to publish

        Returns:
            Number of subscribers that received the message
        """
        if cls._client is None:
            return 0

        try:
            return await cls._client.publish(channel, message)
        except Exception as e:
            logger.error(f"Redis PUBLISH error for channel {channel}: {str(e)}")
            return 0


__all__ = ["RedisClient"]
