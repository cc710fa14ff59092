"""Utility functions for address validation"""

import re
from typing import Optional, Tuple
from eth_utils import is_address, to_checksum_address
from loguru import logger

ADDRESS_PATTERN = re.compile(r'^0x[a-fA-F0-9]{40}$')


def validate_ethereum_address(address: str) -> Tuple[bool, Optional[str]]:
    """
    Validate Ethereum address format

    Returns:
        (is_valid, checksum_address or None)
    """
    if not address or not isinstance(address, str):
        return False, None

    address = address.strip()

    # Check basic format
    if not ADDRESS_PATTERN.match(address):
        return False, None

    try:
        if is_address(address):
            return True, to_checksum_address(address)
    except ValueError as e:
        logger.debug(f"Address validation error: {e}")

    return False, None


def parse_address(value: str) -> Optional[str]:
    """Return the checksummed address for ``value``, or None if it is not an address"""
    is_valid, checksum = validate_ethereum_address(value)
    return checksum if is_valid else None


def format_address(address: str) -> str:
    """Shortened display form of an address, e.g. ``0xbC4C…f13D``"""
    checksum = parse_address(address) or address
    if len(checksum) <= 12:
        return checksum
    return f"{checksum[:6]}…{checksum[-4:]}"
