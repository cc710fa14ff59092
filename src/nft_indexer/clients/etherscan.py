"""Etherscan-compatible explorer API client"""

from dataclasses import dataclass
from typing import Any, List, Optional

from loguru import logger

from .base import BaseAPIClient
from ..abi import ContractAbi
from ..config import Config
from ..errors import (
    AbiError,
    ContractNotVerifiedError,
    DeserializationError,
    ExplorerError,
    InvalidAddressError,
    InvalidApiKeyError,
    RateLimitError,
    RpcError,
    TooManyAddressesError,
)

NOT_VERIFIED = "Contract source code not verified"


@dataclass
class SourceCode:
    """Verified source entry returned by ``getsourcecode``"""

    contract_name: str
    abi: ContractAbi


def classify_error(message: str) -> ExplorerError:
    """Map an explorer error message to its error type"""
    text = (message or "").lower()
    if "rate limit" in text:
        return RateLimitError(message)
    if "invalid api key" in text or "missing/invalid api key" in text:
        return InvalidApiKeyError(message)
    if "invalid address" in text:
        return InvalidAddressError(message)
    if "too many" in text and "address" in text:
        return TooManyAddressesError(message)
    if "not verified" in text:
        return ContractNotVerifiedError(message)
    return ExplorerError(message)


class EtherscanClient(BaseAPIClient):
    """Client for the ``contract`` and ``proxy`` modules of the explorer API"""

    @classmethod
    def from_config(cls, config: Config, **kwargs) -> "EtherscanClient":
        return cls(
            api_key=config.etherscan_api_key,
            base_url=config.etherscan_base_url,
            timeout=config.timeout,
            retry_attempts=config.retry_attempts,
            throttle=config.effective_throttle(),
            **kwargs,
        )

    def set_api_key(self, api_key: Optional[str]) -> None:
        super().set_api_key(api_key)
        logger.debug(f"Explorer API key {'set' if self.api_key else 'cleared'}")

    async def get_source_code(self, address: str) -> List[SourceCode]:
        """Verified source (name and ABI) of the contract at ``address``"""
        return await self._with_retry(lambda: self._get_source_code(address))

    async def call(self, address: str, data: str, tag: str = "latest") -> str:
        """``eth_call`` through the explorer proxy, returning the hex result"""
        return await self._with_retry(lambda: self._call(address, data, tag))

    async def _get_source_code(self, address: str) -> List[SourceCode]:
        payload = await self._get_json(
            {"module": "contract", "action": "getsourcecode", "address": address}
        )
        result = self._extract_result(payload)
        if not isinstance(result, list):
            raise DeserializationError(f"Unexpected getsourcecode result: {result!r}")

        contracts = []
        for entry in result:
            if not isinstance(entry, dict):
                raise DeserializationError(f"Unexpected getsourcecode entry: {entry!r}")
            abi = entry.get("ABI", "")
            if abi == NOT_VERIFIED:
                raise ContractNotVerifiedError(NOT_VERIFIED)
            try:
                contracts.append(
                    SourceCode(
                        contract_name=entry.get("ContractName", ""),
                        abi=ContractAbi.from_json(abi),
                    )
                )
            except AbiError as e:
                raise DeserializationError(str(e)) from e
        return contracts

    async def _call(self, address: str, data: str, tag: str) -> str:
        payload = await self._get_json(
            {"module": "proxy", "action": "eth_call", "to": address, "data": data, "tag": tag}
        )
        if not isinstance(payload, dict):
            raise DeserializationError(f"Unexpected eth_call response: {payload!r}")

        error = payload.get("error")
        if isinstance(error, dict):
            raise RpcError(error.get("code"), error.get("message", ""))

        result = payload.get("result")
        if isinstance(result, str) and result.startswith("0x"):
            return result
        if payload.get("status") == "0" or isinstance(result, str):
            raise classify_error(str(result or payload.get("message", "")))
        raise DeserializationError(f"Unexpected eth_call response: {payload!r}")

    @staticmethod
    def _extract_result(payload: Any) -> Any:
        if not isinstance(payload, dict) or "result" not in payload:
            raise DeserializationError(f"Unexpected response: {payload!r}")
        result = payload["result"]
        if str(payload.get("status", "1")) == "0":
            # Empty result lists come back as status 0 with message "No data found"
            if isinstance(result, list):
                return result
            raise classify_error(str(result or payload.get("message", "")))
        return result
