"""Pluggable HTTP capability shared by the explorer client and metadata fetcher"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

import aiohttp
from loguru import logger

from ..errors import TransportError


@dataclass
class HttpResponse:
    """Buffered response of a GET request"""

    status: int
    reason: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup"""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None


class HttpClient(Protocol):
    async def get(self, url: str, params: Optional[Mapping[str, Any]] = None) -> HttpResponse:
        """GET ``url`` without following redirects; raises TransportError on network failure"""
        ...


class AiohttpClient:
    """HttpClient backed by aiohttp, one session per request"""

    def __init__(self, timeout: int = 30, headers: Optional[Dict[str, str]] = None):
        self.timeout = timeout
        self.headers = headers or {"Accept": "application/json"}

    async def get(self, url: str, params: Optional[Mapping[str, Any]] = None) -> HttpResponse:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
            try:
                async with session.get(
                    url,
                    params=params,
                    headers=self.headers,
                    allow_redirects=False,
                ) as response:
                    body = await response.text()
                    return HttpResponse(
                        status=response.status,
                        reason=response.reason or "",
                        headers=dict(response.headers),
                        body=body,
                    )
            except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
                logger.debug(f"Request to {url} failed: {e!r}")
                raise TransportError(f"Request to {url} failed: {e!r}") from e
