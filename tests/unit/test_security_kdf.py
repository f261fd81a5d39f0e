"""Unit tests for the Key Derivation Function (KDF) module."""

import pytest
from unittest.mock import patch

from saltstream.core.exceptions import KeyDerivationError
from saltstream.security.config import CipherConfiguration, FixedKey
from saltstream.security.kdf import PBKDF2_ITERATIONS, derive_key, pbkdf2


def test_iteration_count_is_fixed():
    assert PBKDF2_ITERATIONS == 2048


def test_pbkdf2_rfc6070_vector():
    """RFC 6070 PBKDF2-HMAC-SHA1 test vector (c=2)."""
    key = pbkdf2(b"password", b"salt", 20, digest="sha1", iterations=2)
    assert key.hex() == "ea6c014dc72d6f8ccd1ed92ace1d41f0d8de8957"


def test_pbkdf2_string_and_bytes_password_agree():
    salt = b"\x01" * 8
    assert pbkdf2("password123", salt, 16) == pbkdf2(b"password123", salt, 16)


def test_pbkdf2_unknown_digest():
    with pytest.raises(KeyDerivationError, match="unsupported"):
        pbkdf2(b"pw", b"salt", 16, digest="md4")


def test_pbkdf2_primitive_failure_wrapped():
    """A primitive rejection surfaces as KeyDerivationError with the cause chained."""
    with patch("saltstream.security.kdf.PBKDF2HMAC", side_effect=ValueError("bad length")):
        with pytest.raises(KeyDerivationError, match="PBKDF2 failed: bad length") as info:
            pbkdf2(b"pw", b"salt", 16)
    assert isinstance(info.value.__cause__, ValueError)


def test_derive_key_password_based_length_and_salt_dependence():
    config = CipherConfiguration.password_based("aes-128-cbc", "test")
    k1 = derive_key(config, b"A" * 8)
    k2 = derive_key(config, b"A" * 8)
    k3 = derive_key(config, b"B" * 8)
    assert len(k1) == 16
    assert k1 == k2
    assert k1 != k3


def test_derive_key_uses_fixed_iterations_and_digest():
    config = CipherConfiguration.password_based("aes-256-cbc", "pw", digest="sha512")
    with patch("saltstream.security.kdf.pbkdf2", return_value=b"k" * 32) as mock:
        derive_key(config, b"s" * 8)
    mock.assert_called_once_with(b"pw", b"s" * 8, 32, digest="sha512")


def test_derive_key_fixed_key_ignores_salt():
    key = bytes(range(16))
    config = CipherConfiguration.fixed_key("aes-128-cbc", key)
    assert derive_key(config, b"") == key
    assert derive_key(config, b"whatever") == key


def test_derive_key_fixed_key_length_mismatch():
    config = CipherConfiguration.fixed_key("aes-128-cbc", bytes(16))
    # bypass the constructor check to exercise the derivation guard
    object.__setattr__(config, "key_source", FixedKey(bytes(8)))
    with pytest.raises(KeyDerivationError, match="expected 16"):
        derive_key(config, b"")
