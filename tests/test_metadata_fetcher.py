import asyncio
import json

import pytest

from nft_indexer.clients.http import HttpResponse
from nft_indexer.errors import TransportError
from nft_indexer.models import StringAttribute
from nft_indexer.resolvers.metadata import (
    LOCATION_MISSING,
    PARSE_FAILED,
    MetadataCompleted,
    MetadataFailed,
    MetadataFetcher,
    MetadataNotFound,
    MetadataRedirect,
    MetadataRequest,
)

from .conftest import FakeHttp, json_response

URL = "https://meta.test/tokens/1"
PROXY = "https://proxy.test/?"


def fetch(http, request):
    return asyncio.run(MetadataFetcher(http).fetch(request))


def test_completed():
    http = FakeHttp({URL: json_response({"name": "#1", "image": "1.png", "attributes": {"Eyes": "Laser"}})})
    response = fetch(http, MetadataRequest(URL, token=1))

    assert isinstance(response, MetadataCompleted)
    assert response.url == URL
    assert response.token == 1
    assert response.subject == URL
    assert response.metadata.name == "#1"
    assert response.metadata.image == "https://meta.test/tokens/1.png"
    assert response.metadata.attributes == [StringAttribute(trait_type="Eyes", value="Laser")]


@pytest.mark.parametrize("body", ["", "   \n"])
def test_empty_success_is_not_found(body):
    http = FakeHttp({URL: HttpResponse(200, "OK", body=body)})
    assert fetch(http, MetadataRequest(URL, token=1)) == MetadataNotFound(URL, 1, URL)


def test_not_found():
    assert fetch(FakeHttp(), MetadataRequest(URL, token=1, subject="base")) == MetadataNotFound(URL, 1, "base")


@pytest.mark.parametrize(
    "body",
    [
        "{not json",
        json.dumps(["a", "list"]),
        json.dumps({"attributes": [{"value": "no trait type"}]}),
    ],
)
def test_parse_failure(body):
    http = FakeHttp({URL: HttpResponse(200, "OK", body=body)})
    assert fetch(http, MetadataRequest(URL, token=1)) == MetadataFailed(URL, 1, PARSE_FAILED, URL)


def test_redirect():
    http = FakeHttp({URL: HttpResponse(302, "Found", headers={"Location": "/v2/tokens/1"})})
    assert fetch(http, MetadataRequest(URL, token=1)) == MetadataRedirect(
        URL, "https://meta.test/v2/tokens/1", 1, URL
    )


def test_redirect_without_location():
    http = FakeHttp({URL: HttpResponse(302, "Found")})
    assert fetch(http, MetadataRequest(URL, token=1)) == MetadataFailed(URL, 1, LOCATION_MISSING, URL)


def test_other_status():
    http = FakeHttp({URL: HttpResponse(503, "Service Unavailable")})
    assert fetch(http, MetadataRequest(URL)) == MetadataFailed(
        URL, None, "Request failed: 503 Service Unavailable", URL
    )


def test_transport_error_without_proxy():
    http = FakeHttp({URL: TransportError("connection reset")})
    response = fetch(http, MetadataRequest(URL, token=1))
    assert isinstance(response, MetadataFailed)
    assert http.urls == [URL]


def test_cors_proxy_is_remembered():
    other = "https://meta.test/tokens/2"
    http = FakeHttp(
        {
            URL: TransportError("blocked"),
            PROXY + URL: json_response({"name": "#1"}),
            PROXY + other: json_response({"name": "#2"}),
        }
    )

    async def run():
        fetcher = MetadataFetcher(http)
        first = await fetcher.fetch(MetadataRequest(URL, token=1, cors_proxy=PROXY))
        second = await fetcher.fetch(MetadataRequest(other, token=2, cors_proxy=PROXY))
        return fetcher, first, second

    fetcher, first, second = asyncio.run(run())
    assert isinstance(first, MetadataCompleted)
    assert first.url == URL
    assert second.metadata.name == "#2"
    assert "meta.test" in fetcher.cors_hosts
    assert http.urls == [URL, PROXY + URL, PROXY + other]


def test_failed_cors_proxy_is_not_remembered():
    http = FakeHttp({URL: TransportError("blocked"), PROXY + URL: TransportError("proxy down")})

    async def run():
        fetcher = MetadataFetcher(http)
        response = await fetcher.fetch(MetadataRequest(URL, token=1, cors_proxy=PROXY))
        return fetcher, response

    fetcher, response = asyncio.run(run())
    assert isinstance(response, MetadataFailed)
    assert fetcher.cors_hosts == set()


def test_responses_are_broadcast():
    received = []
    http = FakeHttp({URL: json_response({"name": "#1"})})

    async def run():
        fetcher = MetadataFetcher(http)
        fetcher.subscribe(received.append)
        await fetcher.send(MetadataRequest(URL, token=1))

    asyncio.run(run())
    assert [type(r) for r in received] == [MetadataCompleted]
