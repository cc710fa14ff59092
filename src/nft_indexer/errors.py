"""Error types raised by the explorer client, ABI codec and identifier parsing"""

from typing import Optional


class ExplorerError(Exception):
    """Base class for block explorer API errors"""

    retryable: bool = False
    attempts: int = 0

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message


class RateLimitError(ExplorerError):
    """Explorer rate limit reached"""

    retryable = True


class InvalidAddressError(ExplorerError):
    """Malformed address rejected by the explorer"""


class InvalidApiKeyError(ExplorerError):
    """API key rejected by the explorer"""


class ContractNotVerifiedError(ExplorerError):
    """Contract source code is not verified, so no ABI is available"""


class DeserializationError(ExplorerError):
    """Explorer response could not be decoded"""


class TooManyAddressesError(ExplorerError):
    """Request referenced more addresses than the explorer accepts"""


class RpcError(ExplorerError):
    """JSON-RPC error returned by the explorer proxy"""

    retryable = True

    def __init__(self, code: Optional[int], message: str):
        super().__init__(f"rpc error {code}: {message}")
        self.code = code
        self.message = message


class TransportError(ExplorerError):
    """Network level failure talking to the explorer"""

    retryable = True


class AbiError(Exception):
    """Contract function inputs or outputs could not be encoded/decoded"""


class IdentifierError(ValueError):
    """Collection identifier is neither an address nor an encoded url"""


class StorageError(Exception):
    """Backing key-value store could not be read or written"""
