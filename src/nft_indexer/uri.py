"""Collection identifiers and metadata url helpers"""

import base64
import binascii
from urllib.parse import urlparse

from .errors import IdentifierError
from .normalizer import IPFS_GATEWAY, convert_ipfs_to_http

SCHEMES = ("http", "https", "ipfs")


def encode(url: str) -> str:
    """Encode ``url`` as an unpadded base64url identifier"""
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def decode(identifier: str) -> str:
    """
    Decode an identifier produced by :func:`encode`.

    Raises:
        IdentifierError: if the identifier is not valid base64url text
    """
    padded = identifier + "=" * (-len(identifier) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise IdentifierError(f"Invalid identifier {identifier}: {e}") from e


def parse(url: str, gateway: str = IPFS_GATEWAY) -> str:
    """
    Validate an absolute url and make it fetchable (IPFS through the gateway).

    Raises:
        IdentifierError: if ``url`` is not an absolute http(s) or ipfs url
    """
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in SCHEMES or not parsed.netloc:
        raise IdentifierError(f"Invalid url: {url}")
    return convert_ipfs_to_http(url, gateway)


def is_ipfs(url: str) -> bool:
    return "ipfs" in url


def strip_token(url: str) -> str:
    """
    Base uri of a token uri that embeds the token, i.e. the url without its
    last path segment: ``https://x/meta/7`` -> ``https://x/meta/``.
    """
    path = urlparse(url).path
    if not path or path.endswith("/"):
        return url
    segment = path.rsplit("/", 1)[-1]
    if not url.endswith(segment):
        return url
    return url[: len(url) - len(segment)]
