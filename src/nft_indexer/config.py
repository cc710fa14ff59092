"""
Configuration management for NFT Indexer
"""

import os
from typing import Optional
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(env_path)


@dataclass
class Config:
    """Main configuration class"""

    # Explorer settings
    etherscan_api_key: Optional[str] = None
    etherscan_base_url: str = "https://api.etherscan.io/api"

    # Metadata settings
    ipfs_gateway: str = "https://ipfs.io/ipfs/"
    cors_proxy: Optional[str] = None

    # Request settings
    retry_attempts: int = 5
    throttle_seconds: float = 1.0
    unauthenticated_throttle_seconds: float = 5.0
    timeout: int = 30

    # Indexing settings
    page_size: int = 25
    unknown_supply_cap: int = 100  # tokens tried when total supply is unknown

    # Cache settings
    viewed_cache_size: int = 10
    recently_viewed_size: int = 10
    cache_type: str = "memory"  # "memory", "redis" or "file"
    memory_cache_size: int = 100_000
    redis_url: Optional[str] = None
    cache_path: str = "~/.cache/nft-indexer/cache.json"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables"""

        def get_optional(key_name: str) -> Optional[str]:
            """Get an optional value, treating blank strings as unset"""
            value = os.getenv(key_name, "").strip()
            return value or None

        return cls(
            etherscan_api_key=get_optional("ETHERSCAN_API_KEY"),
            etherscan_base_url=os.getenv("ETHERSCAN_BASE_URL", "https://api.etherscan.io/api"),
            ipfs_gateway=os.getenv("IPFS_GATEWAY", "https://ipfs.io/ipfs/"),
            cors_proxy=get_optional("CORS_PROXY"),
            retry_attempts=int(os.getenv("RETRY_ATTEMPTS", "5")),
            throttle_seconds=float(os.getenv("THROTTLE_SECONDS", "1")),
            unauthenticated_throttle_seconds=float(os.getenv("UNAUTHENTICATED_THROTTLE_SECONDS", "5")),
            timeout=int(os.getenv("TIMEOUT", "30")),
            page_size=int(os.getenv("PAGE_SIZE", "25")),
            unknown_supply_cap=int(os.getenv("UNKNOWN_SUPPLY_CAP", "100")),
            viewed_cache_size=int(os.getenv("VIEWED_CACHE_SIZE", "10")),
            recently_viewed_size=int(os.getenv("RECENTLY_VIEWED_SIZE", "10")),
            cache_type=os.getenv("CACHE_TYPE", "memory"),
            memory_cache_size=int(os.getenv("MEMORY_CACHE_SIZE", "100000")),
            redis_url=get_optional("REDIS_URL"),
            cache_path=os.getenv("CACHE_PATH", "~/.cache/nft-indexer/cache.json"),
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.etherscan_api_key)

    def effective_throttle(self) -> float:
        """Delay applied before each explorer call, longer without an API key"""
        if self.has_api_key:
            return self.throttle_seconds
        return self.unauthenticated_throttle_seconds


# Global config instance
config = Config.from_env()
