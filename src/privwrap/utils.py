"""Utility functions"""

from decimal import Decimal

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .errors import RequestError

U64_MAX = 2**64 - 1


def validate_solana_address(address: str) -> bool:
    """
    Validate Solana address

    Args:
        address: Base58-encoded Solana address

    Returns:
        True if valid
    """
    try:
        decoded = base58.b58decode(address)
    except ValueError:
        return False
    return len(decoded) == 32


def parse_pubkey(value: str, field: str) -> Pubkey:
    """Parse a base58 address, naming the request field on failure"""
    if isinstance(value, Pubkey):
        return value
    if not isinstance(value, str) or not validate_solana_address(value):
        raise RequestError(f"invalid {field}")
    return Pubkey.from_string(value)


def parse_keypair(value: str, field: str) -> Keypair:
    """Parse a base58-encoded 64-byte keypair"""
    if isinstance(value, Keypair):
        return value
    if not isinstance(value, str):
        raise RequestError(f"invalid {field}")
    try:
        raw = base58.b58decode(value)
    except ValueError as e:
        raise RequestError(f"invalid {field}") from e
    if len(raw) != 64:
        raise RequestError(f"invalid {field}")
    try:
        return Keypair.from_bytes(raw)
    except ValueError as e:
        raise RequestError(f"invalid {field}") from e


def amount_to_ui_amount(amount: int, decimals: int) -> Decimal:
    """
    Convert base units to a display amount

    Args:
        amount: Amount in base units
        decimals: Mint decimals

    Returns:
        Decimal UI amount, e.g. 1500000 with 6 decimals is 1.5
    """
    return Decimal(amount).scaleb(-decimals)

