import asyncio
import dataclasses

import pytest

from nft_indexer.clients.etherscan import EtherscanClient, classify_error
from nft_indexer.clients.http import HttpResponse
from nft_indexer.errors import (
    ContractNotVerifiedError,
    DeserializationError,
    ExplorerError,
    InvalidAddressError,
    InvalidApiKeyError,
    RateLimitError,
    RpcError,
    TooManyAddressesError,
    TransportError,
)

from .conftest import (
    ADDRESS,
    ERC721_ABI,
    EXPLORER_URL,
    RATE_LIMITED,
    TOTAL_SUPPLY,
    FakeHttp,
    Sleeps,
    json_response,
    make_client,
    rpc_result,
    source_code,
)


def answer(*responses):
    """Handler returning ``responses`` in turn, repeating the last one"""
    queue = list(responses)

    def handler(url, params):
        return queue.pop(0) if len(queue) > 1 else queue[0]

    return handler


def test_get_source_code(config, sleeps):
    http = FakeHttp(handler=answer(source_code(ERC721_ABI, "Collection")))
    contracts = asyncio.run(make_client(http, config, sleeps).get_source_code(ADDRESS))

    assert [c.contract_name for c in contracts] == ["Collection"]
    assert "tokenURI" in contracts[0].abi
    assert http.calls == [
        (
            EXPLORER_URL,
            {"module": "contract", "action": "getsourcecode", "address": ADDRESS, "apikey": "TESTKEY"},
        )
    ]
    assert sleeps.calls == []


def test_no_api_key_is_sent_when_cleared(config):
    http = FakeHttp(handler=answer(source_code(ERC721_ABI)))
    client = make_client(http, config)
    client.set_api_key("")
    asyncio.run(client.get_source_code(ADDRESS))
    assert "apikey" not in http.calls[0][1]


def test_no_contract(config):
    http = FakeHttp(handler=answer(json_response({"status": "0", "message": "No data found", "result": []})))
    assert asyncio.run(make_client(http, config).get_source_code(ADDRESS)) == []


def test_rate_limit_retries_with_linear_backoff(config, sleeps):
    http = FakeHttp(handler=answer(RATE_LIMITED))
    with pytest.raises(RateLimitError) as error:
        asyncio.run(make_client(http, config, sleeps).get_source_code(ADDRESS))

    assert error.value.attempts == 5
    assert len(http.calls) == 5
    assert sleeps.calls == [1, 2, 3, 4]


def test_throttle_applies_once_per_call(config, sleeps):
    http = FakeHttp(handler=answer(RATE_LIMITED, RATE_LIMITED, source_code(ERC721_ABI)))
    client = make_client(http, config, sleeps)
    client.throttle = 5

    asyncio.run(client.get_source_code(ADDRESS))
    assert sleeps.calls == [5, 1, 2]
    assert len(http.calls) == 3


def test_transport_errors_are_retried(config, sleeps):
    http = FakeHttp(handler=answer(TransportError("reset"), HttpResponse(502, "Bad Gateway"), source_code(ERC721_ABI)))
    contracts = asyncio.run(make_client(http, config, sleeps).get_source_code(ADDRESS))
    assert len(contracts) == 1
    assert sleeps.calls == [1, 2]


def test_http_429_is_a_rate_limit(config, sleeps):
    http = FakeHttp(handler=answer(HttpResponse(429, "Too Many Requests")))
    with pytest.raises(RateLimitError):
        asyncio.run(make_client(http, config, sleeps).get_source_code(ADDRESS))
    assert len(http.calls) == 5


@pytest.mark.parametrize(
    "response, error",
    [
        (
            json_response(
                {"status": "1", "message": "OK", "result": [{"ABI": "Contract source code not verified", "ContractName": ""}]}
            ),
            ContractNotVerifiedError,
        ),
        (json_response({"status": "0", "message": "NOTOK", "result": "Invalid API Key"}), InvalidApiKeyError),
        (json_response({"status": "0", "message": "NOTOK", "result": "Invalid Address format"}), InvalidAddressError),
        (HttpResponse(200, "OK", body="<html>"), DeserializationError),
        (json_response({"status": "1", "message": "OK", "result": "unexpected"}), DeserializationError),
    ],
)
def test_terminal_errors_are_not_retried(config, sleeps, response, error):
    http = FakeHttp(handler=answer(response))
    with pytest.raises(error) as raised:
        asyncio.run(make_client(http, config, sleeps).get_source_code(ADDRESS))
    assert raised.value.attempts == 1
    assert len(http.calls) == 1
    assert sleeps.calls == []


def test_call(config):
    result = "0x" + "0" * 63 + "a"
    http = FakeHttp(handler=answer(rpc_result(result)))
    assert asyncio.run(make_client(http, config).call(ADDRESS, TOTAL_SUPPLY)) == result

    params = http.calls[0][1]
    assert params["module"] == "proxy"
    assert params["action"] == "eth_call"
    assert params["to"] == ADDRESS
    assert params["data"] == TOTAL_SUPPLY
    assert params["tag"] == "latest"


def test_call_rpc_error_is_retried(config, sleeps):
    http = FakeHttp(
        handler=answer(json_response({"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}}))
    )
    with pytest.raises(RpcError) as error:
        asyncio.run(make_client(http, config, sleeps).call(ADDRESS, TOTAL_SUPPLY))
    assert error.value.code == -32000
    assert error.value.attempts == 5
    assert sleeps.calls == [1, 2, 3, 4]


def test_call_rate_limit_message(config, sleeps):
    http = FakeHttp(handler=answer(RATE_LIMITED, rpc_result("0x01")))
    assert asyncio.run(make_client(http, config, sleeps).call(ADDRESS, TOTAL_SUPPLY)) == "0x01"
    assert sleeps.calls == [1]


@pytest.mark.parametrize(
    "message, error",
    [
        ("Max rate limit reached", RateLimitError),
        ("Missing/Invalid API Key", InvalidApiKeyError),
        ("Invalid address format", InvalidAddressError),
        ("Too many addresses in request", TooManyAddressesError),
        ("Contract source code not verified", ContractNotVerifiedError),
        ("Something else", ExplorerError),
    ],
)
def test_classify_error(message, error):
    assert type(classify_error(message)) is error


def test_from_config_throttles_without_api_key(config):
    client = EtherscanClient.from_config(dataclasses.replace(config, etherscan_api_key=None, unauthenticated_throttle_seconds=5))
    assert client.api_key is None
    assert client.throttle == 5
    keyed = EtherscanClient.from_config(dataclasses.replace(config, throttle_seconds=1), sleep=Sleeps())
    assert keyed.throttle == 1
    assert keyed.retry_attempts == 5
