"""
NFT Indexer - resolve and index NFT collection metadata
"""

from .cache import PersistentCache
from .config import Config, config
from .indexer import CollectionIndexer, IndexerSnapshot, IndexerState
from .models import (
    Attribute,
    Collection,
    Contract,
    Metadata,
    RecentlyViewedItem,
    Token,
)
from .notifications import Severity

__version__ = "1.0.0"

__all__ = [
    "Attribute",
    "Collection",
    "CollectionIndexer",
    "Config",
    "Contract",
    "IndexerSnapshot",
    "IndexerState",
    "Metadata",
    "PersistentCache",
    "RecentlyViewedItem",
    "Severity",
    "Token",
    "config",
]
