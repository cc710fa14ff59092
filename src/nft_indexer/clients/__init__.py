"""API clients"""

from .base import BaseAPIClient
from .etherscan import EtherscanClient, SourceCode
from .http import AiohttpClient, HttpClient, HttpResponse

__all__ = [
    "AiohttpClient",
    "BaseAPIClient",
    "EtherscanClient",
    "HttpClient",
    "HttpResponse",
    "SourceCode",
]
