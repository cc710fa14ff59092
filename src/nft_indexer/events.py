"""Events handled by the collection indexer"""

from dataclasses import dataclass
from typing import Optional, Union

from .models import Metadata


@dataclass(frozen=True)
class MissingApiKey:
    pass


# Contract

@dataclass(frozen=True)
class RequestContract:
    address: str


@dataclass(frozen=True)
class ContractFound:
    address: str
    name: str


@dataclass(frozen=True)
class ContractNotFound:
    address: str


@dataclass(frozen=True)
class ContractLookupFailed:
    address: str
    attempts: int


# Uri

@dataclass(frozen=True)
class RequestUri:
    address: str
    token: int = 1


@dataclass(frozen=True)
class UriFound:
    address: str
    uri: str
    token: Optional[int] = None


@dataclass(frozen=True)
class UriLookupFailed:
    address: str


# Total supply

@dataclass(frozen=True)
class RequestTotalSupply:
    address: str


@dataclass(frozen=True)
class TotalSupplyFound:
    address: str
    total_supply: int


# Metadata

@dataclass(frozen=True)
class RequestMetadata:
    token: int


@dataclass(frozen=True)
class MetadataResolved:
    url: str
    token: int
    metadata: Metadata
    subject: str


@dataclass(frozen=True)
class TokenNotFound:
    token: int
    subject: str


@dataclass(frozen=True)
class MetadataLookupFailed:
    token: int
    subject: str
    message: str = ""


@dataclass(frozen=True)
class MetadataRedirected:
    url: str
    location: str
    token: int
    subject: str


# Viewing

@dataclass(frozen=True)
class Page:
    page: int


@dataclass(frozen=True)
class ViewToken:
    token: int


Event = Union[
    MissingApiKey,
    RequestContract,
    ContractFound,
    ContractNotFound,
    ContractLookupFailed,
    RequestUri,
    UriFound,
    UriLookupFailed,
    RequestTotalSupply,
    TotalSupplyFound,
    RequestMetadata,
    MetadataResolved,
    TokenNotFound,
    MetadataLookupFailed,
    MetadataRedirected,
    Page,
    ViewToken,
]
