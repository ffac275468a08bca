"""
Cryptographic helpers for Gavel.

This module provides:
- Hashing functions (SHA-256, Keccak-256)
- Address derivation (Ethereum-style, last 20 bytes of Keccak-256)
- Hex conversion utilities

Design Notes:
-------------
Addresses are plain 20-byte values. Accounts used from the CLI or in demos are
derived from a human-readable label, and contract addresses are derived from
the deployer address plus a deployment nonce, mirroring EVM `CREATE`.
"""

import hashlib

from Crypto.Hash import keccak


# =============================================================================
# Constants
# =============================================================================

ADDRESS_SIZE = 20

# Uninitialized address (no highest bidder, no winner)
ZERO_ADDRESS = bytes(ADDRESS_SIZE)


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 hash.

    Used for: store digests.
    """
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: address derivation.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Addresses
# =============================================================================


def address_from_label(label: str) -> bytes:
    """
    Derive a deterministic account address from a label.

    Address = last 20 bytes of keccak256(label).
    """
    return keccak256(label.encode("utf-8"))[-ADDRESS_SIZE:]


def derive_contract_address(deployer: bytes, nonce: int) -> bytes:
    """
    Derive the address of a contract deployed by `deployer`.

    Address = last 20 bytes of keccak256(deployer || nonce).
    """
    return keccak256(deployer + nonce.to_bytes(8, "big"))[-ADDRESS_SIZE:]


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def short_address(address: bytes) -> str:
    """Abbreviated hex form for log lines."""
    if not isinstance(address, (bytes, bytearray)):
        return repr(address)
    return bytes_to_hex(bytes(address))[:10] + "..."


__all__ = [
    "ADDRESS_SIZE",
    "ZERO_ADDRESS",
    "sha256",
    "keccak256",
    "address_from_label",
    "derive_contract_address",
    "bytes_to_hex",
    "hex_to_bytes",
    "short_address",
]
