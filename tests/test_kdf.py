"""Tests for HKDF-SHA256 key derivation."""

from spooltag.crypto.kdf import derive_keys, derive_keys_from_hex, uid_to_hex


class TestKeyDerivation:
    """Test the MIFARE Classic key derivation function."""

    def test_derive_keys_returns_16_keys(self):
        """KDF should produce exactly 16 keys (one per sector)."""
        keys = derive_keys(bytes.fromhex("7AD43F1C"))
        assert len(keys) == 16

    def test_each_key_is_6_bytes(self):
        keys = derive_keys(bytes.fromhex("AABBCCDD"))
        for i, key in enumerate(keys):
            assert len(key) == 6, f"Key for sector {i} is {len(key)} bytes, expected 6"

    def test_deterministic_output(self):
        uid = bytes.fromhex("12345678")
        assert derive_keys(uid) == derive_keys(uid)

    def test_different_uids_produce_different_keys(self):
        keys1 = derive_keys(bytes.fromhex("11111111"))
        keys2 = derive_keys(bytes.fromhex("22222222"))
        assert keys1 != keys2

    def test_sector_keys_differ(self):
        """Each sector gets its own key."""
        keys = derive_keys(bytes.fromhex("7AD43F1C"))
        assert len(set(keys)) == 16

    def test_seven_byte_uid(self):
        keys = derive_keys(bytes.fromhex("04A1B2C3D4E5F6"))
        assert len(keys) == 16

    def test_derive_keys_from_hex(self):
        """Hex string wrapper should match the bytes API."""
        keys_bytes = derive_keys(bytes.fromhex("7AD43F1C"))
        keys_hex = derive_keys_from_hex("7AD43F1C")

        assert len(keys_hex) == 16
        for kb, kh in zip(keys_bytes, keys_hex):
            assert kb.hex().upper() == kh

    def test_hex_input_case_insensitive(self):
        assert derive_keys_from_hex("AABBCCDD") == derive_keys_from_hex("aabbccdd")

    def test_known_uid_produces_non_default_keys(self):
        """Derived keys should not be the default MIFARE key (FFFFFFFFFFFF)."""
        default_key = bytes.fromhex("FFFFFFFFFFFF")
        for key in derive_keys(bytes.fromhex("7AD43F1C")):
            assert key != default_key


class TestUidToHex:
    def test_upper_case(self):
        assert uid_to_hex(bytes.fromhex("7ad43f1c")) == "7AD43F1C"
