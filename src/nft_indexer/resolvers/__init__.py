"""Background resolvers shared by collection indexers"""

from .broadcast import Broadcaster
from .contract import (
    ApiKeyRequest,
    ContractFailed,
    ContractRequest,
    ContractResolved,
    ContractResolver,
    NoContract,
    NoTotalSupply,
    NoUri,
    TotalSupplyFailed,
    TotalSupplyRequest,
    TotalSupplyResolved,
    UriFailed,
    UriRequest,
    UriResolved,
)
from .metadata import (
    MetadataCompleted,
    MetadataFailed,
    MetadataFetcher,
    MetadataNotFound,
    MetadataRedirect,
    MetadataRequest,
)

__all__ = [
    "ApiKeyRequest",
    "Broadcaster",
    "ContractFailed",
    "ContractRequest",
    "ContractResolved",
    "ContractResolver",
    "MetadataCompleted",
    "MetadataFailed",
    "MetadataFetcher",
    "MetadataNotFound",
    "MetadataRedirect",
    "MetadataRequest",
    "NoContract",
    "NoTotalSupply",
    "NoUri",
    "TotalSupplyFailed",
    "TotalSupplyRequest",
    "TotalSupplyResolved",
    "UriFailed",
    "UriRequest",
    "UriResolved",
]
