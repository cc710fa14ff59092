"""Normalize metadata documents and the uris they reference"""

from typing import Dict, Any, Optional
from urllib.parse import urljoin, urlparse

from loguru import logger
from .models import Metadata

IPFS_GATEWAY = "https://ipfs.io/ipfs/"


def convert_ipfs_to_http(ipfs_url: str, gateway: str = IPFS_GATEWAY) -> Optional[str]:
    """Convert IPFS URL to HTTP gateway URL"""
    if not ipfs_url or not isinstance(ipfs_url, str):
        return None

    # Already HTTP/HTTPS
    if ipfs_url.startswith(("http://", "https://")):
        return ipfs_url

    # IPFS protocol - preserve full path (and query) after the content hash
    if ipfs_url.startswith("ipfs://"):
        ipfs_path = ipfs_url[len("ipfs://"):].lstrip("/")
        # Some collections use ipfs://ipfs/<cid>
        if ipfs_path.startswith("ipfs/"):
            ipfs_path = ipfs_path[len("ipfs/"):]
        return f"{gateway.rstrip('/')}/{ipfs_path}"

    # If it's just an IPFS hash (Qm...) or hash with path
    if ipfs_url.startswith("Qm") and len(ipfs_url.split("/")[0]) > 40:
        return f"{gateway.rstrip('/')}/{ipfs_url}"

    return ipfs_url


def resolve_uri(uri: str, base_url: str, gateway: str = IPFS_GATEWAY) -> str:
    """
    Make ``uri`` absolute and fetchable: IPFS uris go through the gateway,
    relative uris are resolved against ``base_url``.
    """
    if not uri:
        return uri

    converted = convert_ipfs_to_http(uri, gateway)
    if converted != uri:
        return converted

    if not urlparse(uri).scheme:
        try:
            return urljoin(base_url, uri)
        except ValueError as e:
            logger.debug(f"Could not resolve {uri} against {base_url}: {e}")
    return uri


class Normalizer:
    """Convert raw metadata documents to normalized models"""

    def __init__(self, gateway: str = IPFS_GATEWAY):
        self.gateway = gateway

    def normalize_metadata(self, data: Dict[str, Any], url: str) -> Metadata:
        """Validate a raw metadata document fetched from ``url`` and process its uris"""
        if not isinstance(data, dict):
            raise ValueError(f"metadata must be an object, not {type(data).__name__}")
        return self.process(Metadata.model_validate(data), url)

    def process(self, metadata: Metadata, url: str) -> Metadata:
        """Rewrite image and animation uris relative to the metadata url"""
        metadata.image = resolve_uri(metadata.image, url, self.gateway)
        if metadata.animation_url:
            metadata.animation_url = resolve_uri(metadata.animation_url, url, self.gateway)
        return metadata
