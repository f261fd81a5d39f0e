"""
Integration tests: transport chunks -> hex decode -> CryptoContext -> plaintext,
across algorithms and key sources.
"""

import os
import random

import pytest

from saltstream.core.hexcodec import HexStreamDecoder, encode
from saltstream.security import CipherConfiguration, CryptoContext, Mode


CONFIGS = [
    CipherConfiguration.password_based("aes-128-cbc", "test"),
    CipherConfiguration.password_based("aes-256-cbc", "pässwörd", salt_length=16, digest="sha512"),
    CipherConfiguration.password_based("aes-192-ctr", "pw", digest="sha1"),
    CipherConfiguration.password_based("camellia-256-cbc", "pw"),
    CipherConfiguration.password_based("chacha20", "pw"),
    CipherConfiguration.fixed_key("aes-128-ecb", bytes(range(16))),
    CipherConfiguration.fixed_key("aes-256-ofb", bytes(range(32))),
]


def _partition(data, rnd, max_chunk):
    pos = 0
    while pos < len(data):
        n = rnd.randint(1, max_chunk)
        yield data[pos:pos + n]
        pos += n


def _encrypt_chunked(config, plaintext, rnd):
    ctx = CryptoContext(config, Mode.ENCRYPT)
    out = bytearray()
    for chunk in _partition(plaintext, rnd, 50):
        out += ctx.update(chunk)
    out += ctx.final()
    return bytes(out)


@pytest.mark.parametrize("config", CONFIGS, ids=lambda c: c.algorithm.name)
@pytest.mark.parametrize("size", [0, 1, 13, 16, 4097])
def test_chunked_roundtrip(config, size):
    rnd = random.Random(size)
    plaintext = os.urandom(size)
    envelope = _encrypt_chunked(config, plaintext, rnd)
    assert len(envelope) >= config.header_length

    whole = CryptoContext(config, Mode.DECRYPT)
    expected = whole.update(envelope) + whole.final()
    assert expected == plaintext

    for max_chunk in (1, 3, config.header_length + 1, 97):
        ctx = CryptoContext(config, Mode.DECRYPT)
        out = b"".join(ctx.update(c) for c in _partition(envelope, rnd, max_chunk)) + ctx.final()
        assert out == plaintext


@pytest.mark.parametrize("config", CONFIGS[:3], ids=lambda c: c.algorithm.name)
def test_armored_transport(config):
    rnd = random.Random(7)
    plaintext = os.urandom(333)
    armored = encode(_encrypt_chunked(config, plaintext, rnd)).encode("ascii")
    assert len(armored) % 2 == 0

    decoder = HexStreamDecoder()
    ctx = CryptoContext(config, Mode.DECRYPT)
    out = bytearray()
    for chunk in _partition(armored, rnd, 11):
        out += ctx.update(decoder.update(chunk))
    decoder.final()
    out += ctx.final()
    assert bytes(out) == plaintext


@pytest.mark.parametrize("config", CONFIGS, ids=lambda c: c.algorithm.name)
def test_short_input_is_silent_empty(config):
    if config.header_length == 0:
        pytest.skip("no header to truncate")
    envelope = _encrypt_chunked(config, b"payload", random.Random(1))
    ctx = CryptoContext(config, Mode.DECRYPT)
    out = ctx.update(envelope[:config.header_length - 1]) + ctx.final()
    assert out == b""
