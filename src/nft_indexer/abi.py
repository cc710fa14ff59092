"""Contract ABI lookup and call data encoding/decoding"""

import json
from typing import Any, Dict, List, Optional, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import function_abi_to_4byte_selector, to_checksum_address
from loguru import logger

from .errors import AbiError


def _type_string(param: Dict[str, Any]) -> str:
    """Canonical type of an ABI parameter, expanding tuples"""
    kind = param.get("type", "")
    if kind.startswith("tuple"):
        components = ",".join(_type_string(c) for c in param.get("components", []))
        return f"({components}){kind[len('tuple'):]}"
    return kind


def input_types(function: Dict[str, Any]) -> List[str]:
    return [_type_string(p) for p in function.get("inputs", [])]


def output_types(function: Dict[str, Any]) -> List[str]:
    return [_type_string(p) for p in function.get("outputs", [])]


def is_uint(param: Dict[str, Any]) -> bool:
    return param.get("type", "").startswith("uint") and not param.get("type", "").endswith("]")


class ContractAbi:
    """Function table of a verified contract"""

    def __init__(self, entries: Sequence[Dict[str, Any]]):
        self.entries = list(entries)

    @classmethod
    def from_json(cls, text: str) -> "ContractAbi":
        """Parse the ABI json string returned by the explorer"""
        try:
            entries = json.loads(text)
        except (TypeError, json.JSONDecodeError) as e:
            raise AbiError(f"Invalid contract ABI: {e}") from e
        if not isinstance(entries, list):
            raise AbiError("Invalid contract ABI: expected a list of entries")
        return cls([e for e in entries if isinstance(e, dict)])

    def function(self, name: str) -> Optional[Dict[str, Any]]:
        """First function named ``name``, if the contract has one"""
        for entry in self.entries:
            if entry.get("type", "function") == "function" and entry.get("name") == name:
                return entry
        return None

    def __contains__(self, name: str) -> bool:
        return self.function(name) is not None


def encode_call(function: Dict[str, Any], args: Sequence[Any] = ()) -> str:
    """
    Hex call data (selector followed by the encoded arguments)

    Raises:
        AbiError: if ``args`` do not match the function inputs
    """
    types = input_types(function)
    if len(types) != len(args):
        raise AbiError(
            f"{function.get('name')} expects {len(types)} arguments, got {len(args)}"
        )
    try:
        selector = function_abi_to_4byte_selector(function)
        return "0x" + (selector + encode(types, list(args))).hex()
    except (EncodingError, TypeError, ValueError) as e:
        raise AbiError(f"Could not encode inputs for {function.get('name')}: {e}") from e


def decode_output(function: Dict[str, Any], result: str) -> tuple:
    """
    Decode the hex result of an ``eth_call`` to ``function``

    Raises:
        AbiError: if the result does not match the function outputs
    """
    data = result[2:] if result.startswith("0x") else result
    try:
        return tuple(decode(output_types(function), bytes.fromhex(data)))
    except (DecodingError, TypeError, ValueError) as e:
        logger.error(f"Could not decode output of {function.get('name')}: {e}")
        raise AbiError(f"Could not decode output of {function.get('name')}: {e}") from e


def to_display(value: Any, abi_type: str = "") -> str:
    """Render a decoded value as a string according to its ABI type"""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    if abi_type == "address" and isinstance(value, str):
        return to_checksum_address(value)
    if isinstance(value, (list, tuple)):
        return ",".join(to_display(v) for v in value)
    return str(value)
