"""
Tests for hashing and address helpers.
"""

from gavel.crypto import (
    ZERO_ADDRESS,
    address_from_label,
    bytes_to_hex,
    derive_contract_address,
    hex_to_bytes,
    keccak256,
    sha256,
    short_address,
)


class TestHashing:

    def test_keccak256_empty(self):
        """Keccak-256 differs from SHA3-256 on the empty string."""
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_sha256_empty(self):
        assert sha256(b"").hex() == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )


class TestAddresses:

    def test_label_address_deterministic(self):
        assert address_from_label("alice") == address_from_label("alice")
        assert address_from_label("alice") != address_from_label("bob")
        assert len(address_from_label("alice")) == 20

    def test_label_address_is_keccak_suffix(self):
        assert address_from_label("alice") == keccak256(b"alice")[-20:]

    def test_contract_address_depends_on_nonce(self):
        deployer = address_from_label("deployer")

        a = derive_contract_address(deployer, 0)
        b = derive_contract_address(deployer, 1)

        assert a != b
        assert len(a) == 20
        assert a != ZERO_ADDRESS

    def test_hex_round_trip(self):
        address = address_from_label("alice")

        assert hex_to_bytes(bytes_to_hex(address)) == address
        assert hex_to_bytes(address.hex()) == address

    def test_hex_prefix_optional(self):
        address = address_from_label("alice")
        assert hex_to_bytes("0X" + address.hex().upper()) == address

    def test_short_address(self):
        assert short_address(ZERO_ADDRESS) == "0x00000000..."
        assert short_address("bob") == "'bob'"
