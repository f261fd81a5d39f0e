"""Security helpers: salted streaming encryption for saltstream.

This package provides:
- runtime cipher configuration (password-based or fixed key)
- PBKDF2 key derivation
- a cryptography-backed block-cipher engine
- the streaming CryptoContext that writes/recovers the salt+IV header
- file and buffer helpers with optional hex armor
"""

from .config import CipherConfiguration, FixedKey, PasswordBased, parse_algorithm
from .context import CryptoContext, Phase
from .crypto import (
    decrypt_bytes,
    decrypt_file_stream,
    decrypt_stream,
    encrypt_bytes,
    encrypt_file_stream,
    encrypt_stream,
)
from .engine import CipherEngine, Mode
from .kdf import PBKDF2_ITERATIONS, derive_key
from .rng import RandomSource, get_random_source

__all__ = [
    "CipherConfiguration",
    "FixedKey",
    "PasswordBased",
    "parse_algorithm",
    "CryptoContext",
    "Phase",
    "CipherEngine",
    "Mode",
    "PBKDF2_ITERATIONS",
    "derive_key",
    "RandomSource",
    "get_random_source",
    "encrypt_stream",
    "decrypt_stream",
    "encrypt_file_stream",
    "decrypt_file_stream",
    "encrypt_bytes",
    "decrypt_bytes",
]
