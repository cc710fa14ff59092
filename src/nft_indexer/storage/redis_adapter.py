"""Redis storage adapter"""

from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from loguru import logger

from .base import StorageAdapter
from ..config import Config
from ..errors import StorageError


class RedisStorage(StorageAdapter):
    """Redis-based storage adapter, durable across runs"""

    def __init__(self, config: Config, client: Optional[Any] = None):
        self.config = config
        self.redis_client: Optional[Any] = client
        self._initialized = client is not None

    async def _ensure_connected(self):
        """Ensure Redis connection is established"""
        if not self._initialized:
            if not self.config.redis_url:
                raise StorageError("Redis URL not configured")
            self.redis_client = redis.from_url(
                self.config.redis_url,
                decode_responses=True,
            )
            self._initialized = True

    async def get_cache(self, key: str) -> Optional[str]:
        """Get stored value from Redis"""
        try:
            await self._ensure_connected()
            value = await self.redis_client.get(key)
        except RedisError as e:
            raise StorageError(f"Redis get_cache error for {key}: {e}") from e
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set_cache(self, key: str, value: str) -> None:
        """Store value in Redis"""
        try:
            await self._ensure_connected()
            await self.redis_client.set(key, value)
        except RedisError as e:
            # Writes are best effort, the next write of the key wins
            logger.warning(f"Redis set_cache error for {key}: {e}")

    async def delete_cache(self, key: str) -> None:
        """Delete stored value from Redis"""
        try:
            await self._ensure_connected()
            await self.redis_client.delete(key)
        except RedisError as e:
            logger.warning(f"Redis delete_cache error for {key}: {e}")

    async def close(self):
        """Close Redis connection"""
        if self.redis_client:
            await self.redis_client.aclose()
