"""Unit tests for CipherConfiguration and algorithm parsing."""

import pytest

from saltstream.core.exceptions import ConfigurationError
from saltstream.security.config import (
    DEFAULT_ALGORITHM,
    CipherConfiguration,
    FixedKey,
    PasswordBased,
    parse_algorithm,
)


# ==============================================================================
# Tests: parse_algorithm
# ==============================================================================

@pytest.mark.parametrize(
    "name, key_length, iv_length, padded",
    [
        ("aes-128-cbc", 16, 16, True),
        ("aes-192-cbc", 24, 16, True),
        ("aes-256-cbc", 32, 16, True),
        ("aes-256-ecb", 32, 0, True),
        ("aes-128-ctr", 16, 16, False),
        ("aes-128-cfb8", 16, 16, False),
        ("camellia-256-ofb", 32, 16, False),
        ("sm4-cbc", 16, 16, True),
        ("chacha20", 32, 16, False),
    ],
)
def test_parse_algorithm(name, key_length, iv_length, padded):
    spec = parse_algorithm(name)
    assert spec.key_length == key_length
    assert spec.iv_length == iv_length
    assert spec.padded is padded
    assert spec.needs_iv is (iv_length > 0)


def test_parse_algorithm_normalizes_case():
    assert parse_algorithm("  AES-128-CBC ").name == "aes-128-cbc"


def test_chacha20_is_a_stream_cipher():
    spec = parse_algorithm("chacha20")
    assert spec.mode is None
    assert spec.block_size == 1


@pytest.mark.parametrize(
    "name",
    ["des-cbc", "aes-cbc", "aes-100-cbc", "aes-129-cbc", "aes-abc-cbc", "aes-128-gcm", "sm4-cfb8", "aes"],
)
def test_parse_algorithm_rejects(name):
    with pytest.raises(ConfigurationError):
        parse_algorithm(name)


# ==============================================================================
# Tests: constructors and derived flags
# ==============================================================================

def test_password_based_flags():
    config = CipherConfiguration.password_based("aes-128-cbc", "test")
    assert isinstance(config.key_source, PasswordBased)
    assert config.key_source.password == b"test"
    assert config.is_password_based
    assert config.needs_salt
    assert config.needs_iv
    assert config.required_salt_length == 8
    assert config.header_length == 8 + 16
    assert config.pads


def test_password_not_in_repr():
    config = CipherConfiguration.password_based("aes-128-cbc", "hunter2")
    assert "hunter2" not in repr(config)


def test_fixed_key_flags():
    config = CipherConfiguration.fixed_key("aes-128-ecb", bytes(16))
    assert isinstance(config.key_source, FixedKey)
    assert not config.needs_salt
    assert not config.needs_iv
    assert config.header_length == 0


def test_fixed_key_wrong_length_rejected():
    with pytest.raises(ConfigurationError, match="needs 32"):
        CipherConfiguration.fixed_key("aes-256-cbc", bytes(16))


def test_password_based_requires_salt():
    with pytest.raises(ConfigurationError, match="non-empty salt"):
        CipherConfiguration.password_based("aes-128-cbc", "pw", salt_length=0)


def test_unknown_digest_rejected():
    with pytest.raises(ConfigurationError, match="digest"):
        CipherConfiguration.password_based("aes-128-cbc", "pw", digest="md5")


def test_padding_only_applies_to_block_modes():
    assert not CipherConfiguration.password_based("aes-128-ctr", "pw").pads
    assert not CipherConfiguration.password_based("aes-128-cbc", "pw", padding=False).pads


# ==============================================================================
# Tests: from_env
# ==============================================================================

def test_from_env_password():
    config = CipherConfiguration.from_env(
        {"SALTSTREAM_PASSWORD": "pw", "SALTSTREAM_ALGORITHM": "aes-128-cbc", "SALTSTREAM_SALT_LENGTH": "16"}
    )
    assert config.algorithm.name == "aes-128-cbc"
    assert config.salt_length == 16
    assert config.key_source == PasswordBased(b"pw")


def test_from_env_defaults_algorithm():
    config = CipherConfiguration.from_env({"SALTSTREAM_PASSWORD": "pw"})
    assert config.algorithm.name == DEFAULT_ALGORITHM


def test_from_env_key_wins_over_password():
    config = CipherConfiguration.from_env(
        {"SALTSTREAM_PASSWORD": "pw", "SALTSTREAM_KEY": "00" * 32}
    )
    assert config.key_source == FixedKey(bytes(32))


def test_from_env_requires_key_source():
    with pytest.raises(ConfigurationError, match="SALTSTREAM_PASSWORD"):
        CipherConfiguration.from_env({})


def test_from_env_bad_key_hex():
    with pytest.raises(ConfigurationError, match="not valid hex"):
        CipherConfiguration.from_env({"SALTSTREAM_KEY": "xyz"})


def test_from_env_bad_salt_length():
    with pytest.raises(ConfigurationError, match="SALT_LENGTH"):
        CipherConfiguration.from_env({"SALTSTREAM_PASSWORD": "pw", "SALTSTREAM_SALT_LENGTH": "eight"})


def test_from_env_reads_os_environ(monkeypatch):
    monkeypatch.setenv("SALTSTREAM_PASSWORD", "from-os")
    monkeypatch.delenv("SALTSTREAM_KEY", raising=False)
    config = CipherConfiguration.from_env()
    assert config.key_source == PasswordBased(b"from-os")
