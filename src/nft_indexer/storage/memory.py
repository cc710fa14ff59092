"""In-memory storage adapter"""

import asyncio
from typing import Optional
from cachetools import LRUCache

from .base import StorageAdapter
from ..config import Config


class MemoryStorage(StorageAdapter):
    """In-memory bounded cache, lost when the process exits"""

    def __init__(self, config: Config):
        self.config = config
        # Least recently used keys are dropped once the cache is full
        self.cache: LRUCache = LRUCache(maxsize=config.memory_cache_size)
        self._lock = asyncio.Lock()

    async def get_cache(self, key: str) -> Optional[str]:
        """Get stored value"""
        async with self._lock:
            return self.cache.get(key)

    async def set_cache(self, key: str, value: str) -> None:
        """Store value"""
        async with self._lock:
            self.cache[key] = value

    async def delete_cache(self, key: str) -> None:
        """Delete stored value"""
        async with self._lock:
            self.cache.pop(key, None)
