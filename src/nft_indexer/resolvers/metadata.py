"""Token metadata fetching over HTTP/IPFS"""

import json
from dataclasses import dataclass
from typing import Optional, Set, Union
from urllib.parse import urljoin, urlparse

from loguru import logger

from .broadcast import Broadcaster
from ..clients.http import HttpClient, HttpResponse
from ..errors import TransportError
from ..models import Metadata
from ..normalizer import Normalizer

PARSE_FAILED = "An error occurred parsing the metadata"
LOCATION_MISSING = "Received 302 Found but location header not present"


@dataclass(frozen=True)
class MetadataRequest:
    url: str
    token: Optional[int] = None
    # Prefix prepended to the url when the endpoint cannot be reached directly
    cors_proxy: Optional[str] = None
    # What the response answers, defaults to ``url``; kept across redirects
    subject: Optional[str] = None


@dataclass(frozen=True)
class MetadataCompleted:
    url: str
    token: Optional[int]
    metadata: Metadata
    subject: str


@dataclass(frozen=True)
class MetadataNotFound:
    url: str
    token: Optional[int]
    subject: str


@dataclass(frozen=True)
class MetadataFailed:
    url: str
    token: Optional[int]
    message: str
    subject: str


@dataclass(frozen=True)
class MetadataRedirect:
    url: str
    location: str
    token: Optional[int]
    subject: str


MetadataResponse = Union[MetadataCompleted, MetadataNotFound, MetadataFailed, MetadataRedirect]


class MetadataFetcher(Broadcaster[MetadataRequest, MetadataResponse]):
    """
    Fetches a token's metadata document and classifies the outcome.

    Redirects are not followed; the caller decides. Hosts that could only be
    reached through the CORS proxy are remembered and proxied directly from
    then on.
    """

    def __init__(self, http: HttpClient, normalizer: Optional[Normalizer] = None):
        super().__init__()
        self.http = http
        self.normalizer = normalizer or Normalizer()
        self.cors_hosts: Set[str] = set()

    async def handle(self, request: MetadataRequest) -> None:
        self._respond(await self.fetch(request))

    async def fetch(self, request: MetadataRequest) -> MetadataResponse:
        url, token, proxy = request.url, request.token, request.cors_proxy
        subject = request.subject or url
        host = urlparse(url).hostname

        target = url
        if proxy and host in self.cors_hosts:
            logger.debug(f"Using cors proxy for {host}...")
            target = f"{proxy}{url}"

        logger.debug(f"Requesting {target}...")
        try:
            response = await self.http.get(target)
        except TransportError as e:
            if proxy and target == url:
                logger.info("Request failed, re-attempting via cors proxy...")
                outcome = await self._fetch_via_proxy(f"{proxy}{url}", url, token, subject)
                if not isinstance(outcome, MetadataFailed) and host:
                    logger.debug(f"Cors proxy successful, proxying future requests to {host}")
                    self.cors_hosts.add(host)
                return outcome
            logger.error(f"Requesting metadata from {url} failed: {e}")
            return MetadataFailed(url, token, f"Requesting metadata from {url} failed: {e}", subject)

        return self.classify(response, url, token, subject)

    async def _fetch_via_proxy(
        self, target: str, url: str, token: Optional[int], subject: str
    ) -> MetadataResponse:
        try:
            response = await self.http.get(target)
        except TransportError as e:
            logger.error(f"Requesting metadata from {url} via cors proxy failed: {e}")
            return MetadataFailed(url, token, f"Requesting metadata from {url} failed: {e}", subject)
        return self.classify(response, url, token, subject)

    def classify(
        self, response: HttpResponse, url: str, token: Optional[int], subject: str
    ) -> MetadataResponse:
        if response.status == 200:
            # Some collections answer missing tokens with an empty success
            if not response.body.strip():
                return MetadataNotFound(url, token, subject)
            try:
                metadata = self.normalizer.normalize_metadata(json.loads(response.body), url)
            except ValueError as e:
                logger.error(f"Could not parse metadata at {url}: {e}")
                return MetadataFailed(url, token, PARSE_FAILED, subject)
            return MetadataCompleted(url, token, metadata, subject)

        if response.status == 302:
            location = response.header("location")
            if not location:
                return MetadataFailed(url, token, LOCATION_MISSING, subject)
            return MetadataRedirect(url, urljoin(url, location), token, subject)

        if response.status == 404:
            logger.debug(f"Metadata not found at {url}")
            return MetadataNotFound(url, token, subject)

        return MetadataFailed(url, token, f"Request failed: {response.status} {response.reason}", subject)
