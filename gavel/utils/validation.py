"""
Input Validation - Boundary checks for values entering an auction.

Provides validation for all external inputs to prevent:
- Malformed addresses
- Negative or oversized amounts
- Oversized prize descriptors
"""

import re
from typing import Any, Optional, Tuple

from gavel.crypto import ADDRESS_SIZE, ZERO_ADDRESS

# =============================================================================
# Constants
# =============================================================================

# Maximum sizes
MAX_PRIZE_LENGTH = 1024

# Field bounds (unsigned 256-bit, like the native value unit on the EVM)
MIN_AMOUNT = 0
MAX_AMOUNT = 2**256 - 1
MIN_DURATION = 0
MAX_DURATION = 2**64 - 1

_HEX_DIGITS = re.compile(r"[0-9a-fA-F]*")


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 20-byte address that may act as a caller (non-zero)."""
    valid, err = validate_bytes(address, name, expected_length=ADDRESS_SIZE)
    if not valid:
        return False, err

    if bytes(address) == ZERO_ADDRESS:
        return False, f"{name} must not be the zero address"

    return True, ""


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any) -> Tuple[bool, str]:
    """Validate a value amount."""
    return validate_integer(amount, "amount", MIN_AMOUNT, MAX_AMOUNT)


def validate_duration(duration: Any) -> Tuple[bool, str]:
    """Validate a bidding duration in seconds."""
    return validate_integer(duration, "bidding_duration", MIN_DURATION, MAX_DURATION)


def validate_string(
    value: Any,
    name: str,
    max_length: int = MAX_PRIZE_LENGTH,
) -> Tuple[bool, str]:
    """
    Validate string input.

    Args:
        value: Value to validate
        name: Field name for errors
        max_length: Maximum string length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    if len(value) > max_length:
        return False, f"{name} exceeds max length {max_length}"

    return True, ""


def validate_prize(prize: Any, max_length: int = MAX_PRIZE_LENGTH) -> Tuple[bool, str]:
    """Validate a prize descriptor."""
    return validate_string(prize, "prize", max_length=max_length)


def validate_hex_string(value: Any, name: str, expected_bytes: Optional[int] = None) -> Tuple[bool, str]:
    """
    Validate a 0x-prefixed hex string such as an address typed on the CLI.

    Only hex digits are accepted after the prefix (no whitespace or
    underscores), so a value that passes always decodes with hex_to_bytes.

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    if not value.startswith(("0x", "0X")):
        return False, f"{name} must start with 0x"

    digits = value[2:]
    if not _HEX_DIGITS.fullmatch(digits):
        return False, f"{name} contains invalid hex characters"

    if len(digits) % 2 != 0:
        return False, f"{name} has odd length, invalid hex"

    if expected_bytes is not None and len(digits) // 2 != expected_bytes:
        return False, f"{name} must be {expected_bytes} bytes, got {len(digits) // 2}"

    return True, ""


def validate_address_hex(value: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate the 0x form of a 20-byte address."""
    return validate_hex_string(value, name, ADDRESS_SIZE)


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_bytes",
    "validate_address",
    "validate_integer",
    "validate_amount",
    "validate_duration",
    "validate_string",
    "validate_prize",
    "validate_hex_string",
    "validate_address_hex",
    "MAX_PRIZE_LENGTH",
    "MIN_AMOUNT",
    "MAX_AMOUNT",
]
