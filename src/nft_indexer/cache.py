"""
Persistent cache of collections and tokens on top of a storage adapter.

Keys are namespaced strings; because adapters cannot enumerate keys, index
entries record which records exist:

    Collection:<id>                 collection record
    Collections                     index of collection ids
    Token:<collection>:<id>         token record
    CollectionTokens:<collection>   index of token ids per collection
    Tokens:Viewed                   bounded map of recently viewed tokens
    RecentlyViewed                  ring of recently viewed items

A missing key is a miss. Any other read failure is logged, treated as a miss
and clears the namespace it was read from so a bad value cannot stick.
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

from .config import Config
from .errors import StorageError
from .models import Collection, RecentlyViewedItem, Token
from .storage import StorageAdapter, get_storage_adapter

COLLECTION = "Collection"
COLLECTIONS = "Collections"
TOKEN = "Token"
COLLECTION_TOKENS = "CollectionTokens"
VIEWED_TOKENS = "Tokens:Viewed"
RECENTLY_VIEWED = "RecentlyViewed"

# Errors raised while decoding a stored value (pydantic's ValidationError is a ValueError)
DECODE_ERRORS = (ValueError, TypeError, KeyError)


class _Namespace:
    def __init__(self, storage: StorageAdapter):
        self.storage = storage

    async def _read(self, key: str, load: Callable[[Any], Any]) -> Optional[Any]:
        """Read and decode ``key``; None on a miss or on a failure (which clears ``key``)"""
        try:
            raw = await self.storage.get_cache(key)
            if raw is None:
                return None
            return load(json.loads(raw))
        except (StorageError, *DECODE_ERRORS) as e:
            logger.error(f"Could not read {key} from the cache, clearing it: {e}")
            await self.storage.delete_cache(key)
            return None

    async def _write(self, key: str, value: Any) -> None:
        await self.storage.set_cache(key, json.dumps(value))


class CollectionCache(_Namespace):
    """Collections keyed by address or encoded url identifier"""

    @staticmethod
    def key(id: str) -> str:
        return f"{COLLECTION}:{id}"

    async def _index(self) -> List[str]:
        ids = await self._read(COLLECTIONS, lambda value: [str(i) for i in value])
        return ids or []

    async def get(self, id: str) -> Optional[Collection]:
        collection = await self._read(self.key(id), Collection.model_validate)
        if collection is None:
            await self._discard_missing(id)
        return collection

    async def _discard_missing(self, id: str) -> None:
        # Record gone (or cleared after a failed read): drop it from the index too
        ids = await self._index()
        if id in ids:
            ids.remove(id)
            await self._write(COLLECTIONS, ids)

    async def contains(self, id: str) -> bool:
        return id in await self._index()

    async def put(self, collection: Collection) -> None:
        id = collection.key
        await self._write(self.key(id), collection.model_dump(mode="json", exclude_none=True))
        ids = await self._index()
        if id not in ids:
            ids.append(id)
            await self._write(COLLECTIONS, ids)

    async def values(self) -> List[Collection]:
        collections = []
        for id in await self._index():
            collection = await self._read(self.key(id), Collection.model_validate)
            if collection is not None:
                collections.append(collection)
        return collections


class TokenStore(_Namespace):
    """Unbounded per collection token store, used for pagination"""

    @staticmethod
    def key(collection: str, id: int) -> str:
        return f"{TOKEN}:{collection}:{id}"

    @staticmethod
    def index_key(collection: str) -> str:
        return f"{COLLECTION_TOKENS}:{collection}"

    async def _index(self, collection: str) -> List[int]:
        ids = await self._read(self.index_key(collection), lambda value: [int(i) for i in value])
        return sorted(ids or [])

    async def get(self, collection: str, id: int) -> Optional[Token]:
        token = await self._read(self.key(collection, id), Token.model_validate)
        if token is None:
            ids = await self._index(collection)
            if id in ids:
                ids.remove(id)
                await self._write(self.index_key(collection), ids)
        return token

    async def contains(self, collection: str, id: int) -> bool:
        return id in await self._index(collection)

    async def put(self, collection: str, token: Token) -> int:
        """Store ``token``, returning the number of tokens indexed for the collection"""
        await self._write(
            self.key(collection, token.id), token.model_dump(mode="json", exclude_none=True)
        )
        ids = await self._index(collection)
        if token.id not in ids:
            ids.append(token.id)
            ids.sort()
            await self._write(self.index_key(collection), ids)
        return len(ids)

    async def count(self, collection: str) -> int:
        return len(await self._index(collection))

    async def values(self, collection: str) -> List[Token]:
        tokens = []
        for id in await self._index(collection):
            token = await self._read(self.key(collection, id), Token.model_validate)
            if token is not None:
                tokens.append(token)
        return tokens

    async def page(self, collection: str, page: int, page_size: int) -> Tuple[List[Token], int]:
        """Tokens of ``page`` (1-based) ordered by id, plus the total indexed"""
        ids = await self._index(collection)
        start = max(page - 1, 0) * page_size
        tokens = []
        for id in ids[start:start + page_size]:
            token = await self._read(self.key(collection, id), Token.model_validate)
            if token is not None:
                tokens.append(token)
        return tokens, len(ids)


def _load_tokens(value: Dict[str, Any]) -> Dict[str, Token]:
    return {str(key): Token.model_validate(token) for key, token in value.items()}


class ViewedTokenCache(_Namespace):
    """
    Bounded map of viewed tokens.

    Inserting into a full cache evicts the entries with the oldest
    ``last_viewed``; entries never viewed count as viewed now, so they go
    after every timestamped entry. Ties keep insertion order.
    """

    def __init__(self, storage: StorageAdapter, capacity: int = 10):
        super().__init__(storage)
        self.capacity = capacity

    @staticmethod
    def key(collection: str, id: int) -> str:
        return f"{collection}:{id}"

    async def _cache(self) -> Dict[str, Token]:
        return await self._read(VIEWED_TOKENS, _load_tokens) or {}

    async def get(self, key: str) -> Optional[Token]:
        return (await self._cache()).get(key)

    async def contains(self, key: str) -> bool:
        return key in await self._cache()

    async def put(self, key: str, token: Token) -> None:
        cache = await self._cache()
        if len(cache) >= self.capacity:
            now = datetime.now(timezone.utc)

            def viewed(item: Tuple[str, Token]) -> datetime:
                last_viewed = item[1].last_viewed or now
                if last_viewed.tzinfo is None:
                    last_viewed = last_viewed.replace(tzinfo=timezone.utc)
                return last_viewed

            expired = sorted(cache.items(), key=viewed)[: len(cache) - self.capacity + 1]
            for expired_key, _ in expired:
                logger.debug(f"Evicting {expired_key} from the viewed token cache")
                del cache[expired_key]

        cache[key] = token
        await self._write(
            VIEWED_TOKENS,
            {k: t.model_dump(mode="json", exclude_none=True) for k, t in cache.items()},
        )

    async def values(self) -> List[Token]:
        return list((await self._cache()).values())


class RecentlyViewed(_Namespace):
    """Fixed size ring of recently viewed items, oldest inserted dropped first"""

    def __init__(self, storage: StorageAdapter, capacity: int = 10):
        super().__init__(storage)
        self.capacity = capacity

    async def items(self) -> List[RecentlyViewedItem]:
        items = await self._read(
            RECENTLY_VIEWED, lambda value: [RecentlyViewedItem.model_validate(i) for i in value]
        )
        return items or []

    async def add(self, item: RecentlyViewedItem) -> None:
        items = await self.items()
        while items and len(items) >= self.capacity:
            items.pop(0)
        if item in items:
            items.remove(item)
        items.append(item)
        await self._write(RECENTLY_VIEWED, [i.model_dump(mode="json") for i in items])


class PersistentCache:
    """All cache namespaces sharing one storage adapter"""

    def __init__(
        self,
        storage: StorageAdapter,
        viewed_size: int = 10,
        recently_viewed_size: int = 10,
    ):
        self.storage = storage
        self.collections = CollectionCache(storage)
        self.tokens = TokenStore(storage)
        self.viewed = ViewedTokenCache(storage, viewed_size)
        self.recently_viewed = RecentlyViewed(storage, recently_viewed_size)

    @classmethod
    def from_config(cls, config: Config) -> "PersistentCache":
        return cls(
            get_storage_adapter(config),
            viewed_size=config.viewed_cache_size,
            recently_viewed_size=config.recently_viewed_size,
        )

    async def close(self) -> None:
        await self.storage.close()
