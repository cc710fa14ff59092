"""Base storage adapter"""

from abc import ABC, abstractmethod
from typing import Optional


class StorageAdapter(ABC):
    """
    String key-value store behind the persistent cache.

    Adapters offer no key enumeration; the cache keeps its own index keys.
    Read failures other than a missing key raise ``StorageError``.
    """

    @abstractmethod
    async def get_cache(self, key: str) -> Optional[str]:
        """Get stored value, None if the key is missing"""
        pass

    @abstractmethod
    async def set_cache(self, key: str, value: str) -> None:
        """Store value"""
        pass

    @abstractmethod
    async def delete_cache(self, key: str) -> None:
        """Delete stored value"""
        pass

    async def close(self) -> None:
        """Release any connection held by the adapter"""
        pass
