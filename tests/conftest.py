import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from eth_abi import encode

from nft_indexer.cache import PersistentCache
from nft_indexer.clients.etherscan import EtherscanClient
from nft_indexer.clients.http import HttpResponse
from nft_indexer.config import Config
from nft_indexer.errors import TransportError
from nft_indexer.indexer import CollectionIndexer
from nft_indexer.notifications import Severity
from nft_indexer.resolvers.contract import ContractResolver
from nft_indexer.resolvers.metadata import MetadataFetcher
from nft_indexer.storage.memory import MemoryStorage

EXPLORER_URL = "https://explorer.test/api"

# 4 byte selectors of the functions used in the test ABIs
TOKEN_URI = "0xc87b56dd"
TOTAL_SUPPLY = "0x18160ddd"
BASE_URI = "0x6c0360eb"

ADDRESS = "0x" + "ab" * 19 + "01"

ERC721_ABI = [
    {
        "type": "function",
        "name": "tokenURI",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "type": "function",
        "name": "totalSupply",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "event",
        "name": "Transfer",
        "inputs": [
            {"name": "from", "type": "address", "indexed": True},
            {"name": "to", "type": "address", "indexed": True},
            {"name": "tokenId", "type": "uint256", "indexed": True},
        ],
    },
]

BASE_URI_ABI = [
    {
        "type": "function",
        "name": "baseURI",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
]


def json_response(data: Any, status: int = 200, reason: str = "OK") -> HttpResponse:
    return HttpResponse(status=status, reason=reason, headers={}, body=json.dumps(data))


def encoded(types: List[str], values: List[Any]) -> str:
    return "0x" + encode(types, values).hex()


def source_code(abi: List[Dict[str, Any]], name: str = "TestCollection") -> HttpResponse:
    return json_response(
        {"status": "1", "message": "OK", "result": [{"ABI": json.dumps(abi), "ContractName": name}]}
    )


def rpc_result(result: str) -> HttpResponse:
    return json_response({"jsonrpc": "2.0", "id": 1, "result": result})


RATE_LIMITED = json_response(
    {"status": "0", "message": "NOTOK", "result": "Max rate limit reached, please use API Key for higher rate limit"}
)


class FakeHttp:
    """
    Records every GET and answers from ``responses`` (by url) or ``handler``.
    A response may be an exception to raise; unknown urls answer 404.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Any]] = None,
        handler: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
    ):
        self.responses = responses or {}
        self.handler = handler
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    @property
    def urls(self) -> List[str]:
        return [url for url, _ in self.calls]

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> HttpResponse:
        params = dict(params or {})
        self.calls.append((url, params))
        if self.handler is not None:
            result = self.handler(url, params)
        else:
            result = self.responses.get(url, HttpResponse(404, "Not Found"))
        if isinstance(result, Exception):
            raise result
        return result


def explorer(
    abi: Optional[List[Dict[str, Any]]] = None,
    calls: Optional[Dict[str, Any]] = None,
    contracts: Optional[HttpResponse] = None,
) -> FakeHttp:
    """Fake explorer answering getsourcecode with ``abi`` and eth_call by selector"""
    calls = calls or {}

    def handler(url: str, params: Dict[str, Any]):
        if params.get("action") == "getsourcecode":
            if contracts is not None:
                return contracts
            return source_code(abi or ERC721_ABI)
        if params.get("action") == "eth_call":
            result = calls.get(params["data"][:10])
            if result is None:
                return json_response({"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}})
            return result
        return TransportError(f"unexpected request {params}")

    return FakeHttp(handler=handler)


class Sleeps:
    """No-op replacement for asyncio.sleep recording the requested delays"""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class Notifications:
    def __init__(self):
        self.messages: List[Tuple[str, Severity]] = []

    def __call__(self, message: str, severity: Severity = Severity.NONE) -> None:
        self.messages.append((message, severity))

    def with_severity(self, severity: Severity) -> List[str]:
        return [message for message, s in self.messages if s == severity]


def make_client(http: FakeHttp, config: Config, sleep: Optional[Sleeps] = None) -> EtherscanClient:
    return EtherscanClient(
        api_key=config.etherscan_api_key,
        base_url=EXPLORER_URL,
        http=http,
        retry_attempts=config.retry_attempts,
        throttle=0,
        sleep=sleep or Sleeps(),
    )


def make_indexer(
    identifier: str,
    cache: PersistentCache,
    config: Config,
    explorer_http: Optional[FakeHttp] = None,
    metadata_http: Optional[FakeHttp] = None,
    notify: Optional[Notifications] = None,
    on_change=None,
) -> CollectionIndexer:
    contracts = ContractResolver(make_client(explorer_http or FakeHttp(), config))
    metadata = MetadataFetcher(metadata_http or FakeHttp())
    return CollectionIndexer(
        identifier,
        cache,
        contracts,
        metadata,
        notify=notify or Notifications(),
        config=config,
        on_change=on_change,
    )


def new_cache(config: Config) -> PersistentCache:
    """Fresh in-memory cache; create inside the running event loop"""
    return PersistentCache(
        MemoryStorage(config),
        viewed_size=config.viewed_cache_size,
        recently_viewed_size=config.recently_viewed_size,
    )


@pytest.fixture
def config() -> Config:
    return Config(
        etherscan_api_key="TESTKEY",
        etherscan_base_url=EXPLORER_URL,
        throttle_seconds=0,
        unauthenticated_throttle_seconds=0,
        unknown_supply_cap=10,
    )


@pytest.fixture
def sleeps() -> Sleeps:
    return Sleeps()


@pytest.fixture
def notifications() -> Notifications:
    return Notifications()
