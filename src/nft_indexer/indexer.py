"""
Collection indexing state machine.

A ``CollectionIndexer`` turns an identifier (contract address or encoded
metadata url) into a cached, paginated list of tokens. It reacts to events,
posted by its owner or translated from resolver responses, one at a time:

* identity: cached collection, contract lookup for an address, or a url
  collection straight from the decoded identifier
* contract facts: base/token uri and total supply, resolved concurrently
* indexing: token ``i + 1`` is only requested once the outcome of token ``i``
  is known, so at most one metadata request per collection is in flight
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from loguru import logger

from . import events, uri
from .adapter import to_event
from .cache import PersistentCache, ViewedTokenCache
from .config import Config, config as default_config
from .errors import IdentifierError
from .models import Collection, Metadata, RecentlyViewedItem, Token
from .normalizer import resolve_uri
from .notifications import Notifier, Severity, log_notifier
from .resolvers.contract import ContractRequest, ContractResolver, TotalSupplyRequest, UriRequest
from .resolvers.metadata import MetadataFetcher, MetadataRequest
from .utils import parse_address

MISSING_API_KEY = (
    "Warning: No API key has been configured for the etherscan.io API. "
    "Requests are therefore throttled."
)
URL_UNDETERMINED = "Could not determine the collection url"
URL_LOOKUP_FAILED = "Unable to determine the collection url via etherscan.io. Please try again..."
INDEXING_IPFS = "Indexing collection from IPFS, this may take some time..."
INDEXING = "Indexing collection..."


class IndexerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RESOLVING_IDENTITY = "resolving_identity"
    RESOLVING_URI = "resolving_uri"
    RESOLVING_SUPPLY = "resolving_supply"
    INDEXING = "indexing"
    PAGE_READY = "page_ready"
    # Background indexing has ended, the current page can still be changed
    HALTED = "halted"


@dataclass
class IndexerSnapshot:
    """What a renderer needs to draw the collection view"""

    state: IndexerState
    collection: Optional[Collection]
    page: int
    page_size: int
    tokens: List[Token] = field(default_factory=list)
    indexed: int = 0
    working: bool = False


class CollectionIndexer:
    """Builds the token list of one collection, page by page"""

    def __init__(
        self,
        identifier: str,
        cache: PersistentCache,
        contracts: ContractResolver,
        metadata: MetadataFetcher,
        notify: Notifier = log_notifier,
        config: Optional[Config] = None,
        on_change: Optional[Callable[[IndexerSnapshot], None]] = None,
    ):
        self.identifier = identifier
        self.cache = cache
        self.contracts = contracts
        self.metadata = metadata
        self.notify = notify
        self.config = config or default_config
        self.on_change = on_change

        self.state = IndexerState.UNINITIALIZED
        self.collection: Optional[Collection] = None
        self.tokens: List[Token] = []
        self.indexed = 0
        self.page = 1
        self.page_size = self.config.page_size
        self.working = False

        self._notified_indexing = False
        self._redirected: Set[int] = set()
        # Requests sent by this indexer and not yet answered. Resolvers are
        # shared, so any response that does not answer one of them is dropped.
        self._pending_contract = False
        self._pending_uri = False
        self._pending_token: Optional[int] = None
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._handles: Dict[str, int] = {}
        self._closed = False

        self._handlers = {
            events.MissingApiKey: self._missing_api_key,
            events.RequestContract: self._request_contract,
            events.ContractFound: self._contract_found,
            events.ContractNotFound: self._contract_not_found,
            events.ContractLookupFailed: self._contract_lookup_failed,
            events.RequestUri: self._request_uri,
            events.UriFound: self._uri_found,
            events.UriLookupFailed: self._uri_lookup_failed,
            events.RequestTotalSupply: self._request_total_supply,
            events.TotalSupplyFound: self._total_supply_found,
            events.RequestMetadata: self._request_metadata,
            events.MetadataResolved: self._metadata_resolved,
            events.TokenNotFound: self._token_missing,
            events.MetadataLookupFailed: self._token_missing,
            events.MetadataRedirected: self._metadata_redirected,
            events.Page: self._page,
            events.ViewToken: self._view_token,
        }

    # Lifecycle

    async def start(self) -> None:
        """Subscribe to the resolvers, start the event loop and load the collection"""
        self._queue = asyncio.Queue()
        self._handles["contracts"] = self.contracts.subscribe(self._on_contract_response)
        self._handles["metadata"] = self.metadata.subscribe(self._on_metadata_response)
        self._task = asyncio.get_running_loop().create_task(self._run())
        await self._create()
        self._changed()

    def post(self, event: events.Event) -> None:
        """Queue ``event`` for the event loop"""
        if self._closed:
            return
        if self._queue is None:
            raise RuntimeError("Indexer has not been started")
        self._queue.put_nowait(event)

    async def dispatch(self, event: events.Event) -> None:
        """Handle a single event now"""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported event {event!r}")
        if await handler(event):
            self._changed()

    @property
    def idle(self) -> bool:
        """No events waiting to be handled"""
        return self._queue is None or self._queue.empty()

    async def settle(self) -> None:
        """Wait until no events are queued and no resolver requests are outstanding"""
        while not self._closed:
            await self._queue.join()
            if self.idle and not self.contracts.pending and not self.metadata.pending:
                return
            await asyncio.gather(self.contracts.drain(), self.metadata.drain())

    async def close(self) -> None:
        """Stop receiving responses and stop the event loop"""
        self._closed = True
        for name, handle in self._handles.items():
            resolver = self.contracts if name == "contracts" else self.metadata
            resolver.unsubscribe(handle)
        self._handles.clear()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def snapshot(self) -> IndexerSnapshot:
        return IndexerSnapshot(
            state=self.state,
            collection=self.collection.model_copy() if self.collection else None,
            page=self.page,
            page_size=self.page_size,
            tokens=list(self.tokens),
            indexed=self.indexed,
            working=self.working,
        )

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.dispatch(event)
            except Exception:
                logger.exception(f"Failed to handle {event!r} for {self.identifier}")
            finally:
                self._queue.task_done()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self.snapshot())

    def _on_contract_response(self, response) -> None:
        event = to_event(response)
        if event is not None:
            self.post(event)

    def _on_metadata_response(self, response) -> None:
        # Requests without a token are not ours
        if response.token is None:
            return
        event = to_event(response)
        if event is not None:
            self.post(event)

    # Helpers

    @property
    def key(self) -> str:
        return self.collection.key if self.collection else self.identifier

    async def _store(self) -> None:
        if self.collection is not None:
            await self.cache.collections.put(self.collection)

    def _halt(self, reason: str) -> None:
        logger.debug(f"Indexing of {self.identifier} halted: {reason}")
        self.state = IndexerState.HALTED
        self.working = False

    def _is_current(self, address: str) -> bool:
        """Contract responses must answer for the collection being indexed"""
        if self.collection is None or self.collection.address is None:
            return False
        return address.lower() == self.collection.address.lower()

    def _is_current_url(self, url: str) -> bool:
        """Metadata responses must start with the collection's base uri"""
        if self.collection is None or not self.collection.base_uri:
            return False
        return url.startswith(self.collection.base_uri)

    def _answers_token(self, event) -> bool:
        """Metadata responses must answer the token request this indexer has outstanding"""
        if event.token is None or event.token != self._pending_token:
            return False
        return self._is_current_url(event.subject)

    # Creation

    async def _create(self) -> None:
        address = parse_address(self.identifier)
        collection = await self.cache.collections.get(address or self.identifier)

        if collection is not None:
            self.collection = collection
            if collection.is_contract:
                if not collection.base_uri:
                    self.post(events.RequestUri(collection.address))
                else:
                    self.post(events.RequestMetadata(collection.start_token))
                if collection.total_supply is None:
                    self.post(events.RequestTotalSupply(collection.address))
            else:
                self.post(events.RequestMetadata(collection.start_token))

            self.post(events.Page(1))
            collection.set_last_viewed()
            await self._store()
            return

        if address is not None:
            self.collection = Collection.from_contract(address)
            if not self.config.has_api_key:
                self.post(events.MissingApiKey())
            self.post(events.RequestContract(address))
            return

        try:
            base_uri = uri.parse(uri.decode(self.identifier), self.config.ipfs_gateway)
        except IdentifierError as e:
            logger.error(f"Unable to load the collection '{self.identifier}': {e}")
            self.notify(f"Unable to load the collection {self.identifier}", Severity.DANGER)
            self._halt("invalid identifier")
            return

        self.collection = Collection.from_url(self.identifier, base_uri)
        await self._store()
        self.post(events.RequestMetadata(0))

    # Contract

    async def _missing_api_key(self, event: events.MissingApiKey) -> bool:
        self.notify(MISSING_API_KEY, Severity.WARNING)
        return False

    async def _request_contract(self, event: events.RequestContract) -> bool:
        self._pending_contract = True
        self.contracts.send(ContractRequest(event.address))
        self.notify(
            f"Checking if address {event.address} is a contract via etherscan.io...", Severity.NONE
        )
        self.state = IndexerState.RESOLVING_IDENTITY
        self.working = True
        return True

    async def _contract_found(self, event: events.ContractFound) -> bool:
        if not self._pending_contract or not self._is_current(event.address):
            return False
        self._pending_contract = False

        collection = await self.cache.collections.get(self.collection.address)
        if collection is None:
            collection = Collection.from_contract(self.collection.address, event.name or None)
            collection.set_last_viewed()

        self.working = False
        if collection.base_uri is None:
            logger.debug("Attempting to resolve uri from contract...")
            self.post(events.RequestUri(collection.address))
            self.working = True
        else:
            # Stored meanwhile by another view
            self.post(events.RequestMetadata(collection.start_token))
            self.working = True
        if collection.total_supply is None:
            logger.debug("Attempting to resolve total supply from contract...")
            self.post(events.RequestTotalSupply(collection.address))
            self.working = True

        self.collection = collection
        await self._store()
        return True

    def _answers_contract(self, address: str) -> bool:
        """Contract failures also answer a uri request that had to resolve the contract first"""
        if not (self._pending_contract or self._pending_uri) or not self._is_current(address):
            return False
        self._pending_contract = False
        self._pending_uri = False
        return True

    async def _contract_not_found(self, event: events.ContractNotFound) -> bool:
        if not self._answers_contract(event.address):
            return False
        self.notify(f"No contract found for {event.address}", Severity.DANGER)
        self._halt("no contract")
        return True

    async def _contract_lookup_failed(self, event: events.ContractLookupFailed) -> bool:
        if not self._answers_contract(event.address):
            return False
        self.notify(
            f"Contract could not be found for {event.address}, despite {event.attempts} attempts",
            Severity.DANGER,
        )
        self._halt("contract lookup failed")
        return True

    # Uri

    async def _request_uri(self, event: events.RequestUri) -> bool:
        if self._pending_uri:
            return False
        self._pending_uri = True
        self.contracts.send(UriRequest(event.address, event.token))
        self.state = IndexerState.RESOLVING_URI
        self.working = True
        return True

    async def _uri_found(self, event: events.UriFound) -> bool:
        if not self._pending_uri or not self._is_current(event.address):
            return False
        self._pending_uri = False

        self.working = False
        try:
            url = uri.parse(event.uri, self.config.ipfs_gateway)
        except IdentifierError as e:
            logger.error(f"Unable to parse the url '{event.uri}': {e}")
            self.notify(URL_UNDETERMINED, Severity.DANGER)
            self._halt("unparseable uri")
            return True

        # A uri returned for a specific token ends with it
        base_uri = uri.strip_token(url) if event.token is not None else url
        self.collection.set_base_uri(base_uri)
        await self._store()
        self.post(events.RequestMetadata(self.collection.start_token))
        return True

    async def _uri_lookup_failed(self, event: events.UriLookupFailed) -> bool:
        if not self._pending_uri or not self._is_current(event.address):
            return False
        self._pending_uri = False
        self.notify(URL_LOOKUP_FAILED, Severity.DANGER)
        self._halt("uri lookup failed")
        return True

    # Total supply

    async def _request_total_supply(self, event: events.RequestTotalSupply) -> bool:
        self.contracts.send(TotalSupplyRequest(event.address))
        if self.state in (IndexerState.UNINITIALIZED, IndexerState.RESOLVING_IDENTITY):
            self.state = IndexerState.RESOLVING_SUPPLY
        self.working = True
        return True

    async def _total_supply_found(self, event: events.TotalSupplyFound) -> bool:
        if not self._is_current(event.address):
            return False
        changed = self.collection.set_total_supply(event.total_supply)
        if changed:
            await self._store()
        if self.state == IndexerState.RESOLVING_SUPPLY:
            self.state = IndexerState.PAGE_READY
            changed = True
        return changed

    # Metadata

    async def _is_indexed(self, token: int) -> bool:
        if any(t.id == token for t in self.tokens):
            return True
        if await self.cache.viewed.contains(ViewedTokenCache.key(self.key, token)):
            return True
        return await self.cache.tokens.contains(self.key, token)

    async def _request_metadata(self, event: events.RequestMetadata) -> bool:
        collection = self.collection
        if collection is None:
            return False

        if self._pending_token is not None:
            # One token request in flight per collection
            logger.debug(f"Token {self._pending_token} still outstanding, dropping request for {event.token}")
            return False

        token = event.token
        if collection.total_supply is not None and token >= collection.total_supply:
            self._halt(f"total supply of {collection.total_supply} reached")
            return True

        # Already indexed: move on without a request
        if await self._is_indexed(token):
            self.post(events.RequestMetadata(token + 1))
            return False

        url = collection.url(token)
        if url is None:
            return False

        self._pending_token = token
        self.metadata.send(
            MetadataRequest(url=url, token=token, cors_proxy=self.config.cors_proxy, subject=url)
        )
        self.state = IndexerState.INDEXING
        self.working = True
        return True

    async def _metadata_resolved(self, event: events.MetadataResolved) -> bool:
        if not self._answers_token(event):
            logger.debug(
                f"Received token {event.token} at {event.url} does not answer "
                f"a request of {self.identifier}"
            )
            return False
        self._pending_token = None

        self.working = False
        await self._add(event.token, event.metadata, event.url)
        if not self._notified_indexing:
            self.notify(INDEXING_IPFS if uri.is_ipfs(event.url) else INDEXING, Severity.NONE)
            self._notified_indexing = True

        self.post(events.RequestMetadata(event.token + 1))
        self.working = True
        return True

    async def _add(self, id: int, metadata: Metadata, url: str) -> None:
        gateway = self.config.ipfs_gateway
        metadata = metadata.model_copy()
        metadata.image = resolve_uri(metadata.image, url, gateway)
        if metadata.animation_url:
            metadata.animation_url = resolve_uri(metadata.animation_url, url, gateway)

        token = Token(id=id, metadata=metadata)
        self.indexed = await self.cache.tokens.put(self.key, token)

        page_start = (self.page - 1) * self.page_size + self.collection.start_token
        if page_start <= token.id < page_start + self.page_size:
            if not any(t.id == token.id for t in self.tokens):
                self.tokens.append(token)
                self.tokens.sort(key=lambda t: t.id)

    async def _token_missing(self, event) -> bool:
        if not self._answers_token(event):
            return False
        self._pending_token = None

        if isinstance(event, events.MetadataLookupFailed):
            logger.debug(f"Token {event.token} of {self.identifier} failed: {event.message}")
        await self._skip(event.token)
        return True

    async def _skip(self, token: int) -> None:
        """Move past a token without metadata"""
        self.working = False
        collection = self.collection

        # Collections do not have to start at 0; scan forward
        if token == collection.start_token:
            collection.increment_start_token(1)
            await self._store()

        limit = collection.total_supply
        if limit is None:
            limit = self.config.unknown_supply_cap
        if token < limit:
            self.post(events.RequestMetadata(token + 1))
        else:
            self._halt(f"no token at {token}, limit {limit} reached")

    async def _metadata_redirected(self, event: events.MetadataRedirected) -> bool:
        if not self._answers_token(event):
            return False

        if event.url != event.subject:
            # Redirected again after following once
            logger.debug(f"Token {event.token} of {self.identifier} failed: too many redirects")
            self._pending_token = None
            await self._skip(event.token)
            return True

        if event.token in self._redirected:
            # Same first redirect, answering another view's request
            return False

        self._redirected.add(event.token)
        logger.debug(f"Following redirect for token {event.token} to {event.location}")
        self.metadata.send(
            MetadataRequest(
                url=event.location,
                token=event.token,
                cors_proxy=self.config.cors_proxy,
                subject=event.subject,
            )
        )
        return False

    # Viewing

    async def _page(self, event: events.Page) -> bool:
        self.page = max(event.page, 1)
        if self.collection is not None:
            self.tokens, self.indexed = await self.cache.tokens.page(
                self.key, self.page, self.page_size
            )
        if self.state in (IndexerState.UNINITIALIZED, IndexerState.INDEXING):
            self.state = IndexerState.PAGE_READY
        return True

    async def _view_token(self, event: events.ViewToken) -> bool:
        if self.collection is None:
            return False

        token = await self.cache.tokens.get(self.key, event.token)
        if token is None:
            logger.warning(f"Token {event.token} of {self.identifier} has not been indexed")
            return False

        token.set_last_viewed()
        await self.cache.tokens.put(self.key, token)
        await self.cache.viewed.put(ViewedTokenCache.key(self.key, token.id), token)

        metadata = token.metadata or Metadata()
        name = metadata.name or f"{self.collection.name or self.key} #{token.id}"
        await self.cache.recently_viewed.add(
            RecentlyViewedItem(name=name, image=metadata.image, route=f"{self.key}/{token.id}")
        )
        return True
