"""Runtime cipher configuration for saltstream contexts.

A configuration pairs an algorithm descriptor (parsed from an OpenSSL-style
name such as ``aes-256-cbc``) with a key source: either a password that is
stretched with PBKDF2 over a per-stream salt, or a fixed pre-shared key.
The ``needs_salt``/``needs_iv`` flags decide the layout of the stream header.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple, Union

from saltstream.core.exceptions import ConfigurationError


DEFAULT_ALGORITHM = "aes-256-cbc"
DEFAULT_SALT_LENGTH = 8
DEFAULT_DIGEST = "sha256"
SUPPORTED_DIGESTS = ("sha1", "sha256", "sha384", "sha512")

ENV_PREFIX = "SALTSTREAM_"


@dataclass(frozen=True)
class _Family:
    block_size: int
    key_lengths: Tuple[int, ...]
    modes: Tuple[str, ...]


# block ciphers driven through cryptography's Cipher(algorithm, mode)
_FAMILIES: Dict[str, _Family] = {
    "aes": _Family(16, (16, 24, 32), ("cbc", "ecb", "cfb", "cfb8", "ofb", "ctr")),
    "camellia": _Family(16, (16, 24, 32), ("cbc", "ecb", "cfb", "ofb", "ctr")),
    "sm4": _Family(16, (16,), ("cbc", "ecb", "cfb", "ofb", "ctr")),
}

_PADDED_MODES = ("cbc", "ecb")

CHACHA20_KEY_LENGTH = 32
CHACHA20_NONCE_LENGTH = 16


@dataclass(frozen=True)
class AlgorithmSpec:
    """Parsed algorithm descriptor."""

    name: str
    family: str
    mode: Optional[str]
    block_size: int
    key_length: int
    iv_length: int
    padded: bool

    @property
    def needs_iv(self) -> bool:
        return self.iv_length > 0


def parse_algorithm(name: str) -> AlgorithmSpec:
    """Parse names like ``aes-128-cbc``, ``sm4-ctr`` or ``chacha20``."""
    normalized = name.strip().lower()
    if normalized == "chacha20":
        return AlgorithmSpec(
            name=normalized,
            family="chacha20",
            mode=None,
            block_size=1,
            key_length=CHACHA20_KEY_LENGTH,
            iv_length=CHACHA20_NONCE_LENGTH,
            padded=False,
        )

    parts = normalized.split("-")
    family_name = parts[0]
    family = _FAMILIES.get(family_name)
    if family is None:
        raise ConfigurationError(f"unsupported cipher algorithm: {name!r}")

    if len(parts) == 3:
        try:
            key_bits = int(parts[1])
        except ValueError:
            raise ConfigurationError(f"invalid key size in algorithm name: {name!r}") from None
        if key_bits % 8:
            raise ConfigurationError(f"invalid key size in algorithm name: {name!r}")
        key_length = key_bits // 8
        mode = parts[2]
    elif len(parts) == 2 and len(family.key_lengths) == 1:
        key_length = family.key_lengths[0]
        mode = parts[1]
    else:
        raise ConfigurationError(f"malformed algorithm name: {name!r}")

    if key_length not in family.key_lengths:
        raise ConfigurationError(
            f"{family_name} does not support {key_length * 8}-bit keys"
        )
    if mode not in family.modes:
        raise ConfigurationError(f"{family_name} does not support mode {mode!r}")

    return AlgorithmSpec(
        name=normalized,
        family=family_name,
        mode=mode,
        block_size=family.block_size,
        key_length=key_length,
        iv_length=0 if mode == "ecb" else family.block_size,
        padded=mode in _PADDED_MODES,
    )


@dataclass(frozen=True)
class PasswordBased:
    """Key source: PBKDF2 over a password and the per-stream salt."""

    password: bytes = field(repr=False)


@dataclass(frozen=True)
class FixedKey:
    """Key source: a pre-shared key used as-is."""

    key: bytes = field(repr=False)


KeySource = Union[PasswordBased, FixedKey]


@dataclass(frozen=True)
class CipherConfiguration:
    algorithm: AlgorithmSpec
    key_source: KeySource
    salt_length: int = DEFAULT_SALT_LENGTH
    digest: str = DEFAULT_DIGEST
    padding: bool = True

    def __post_init__(self):
        if not isinstance(self.key_source, (PasswordBased, FixedKey)):
            raise ConfigurationError("key_source must be PasswordBased or FixedKey")
        if self.salt_length < 0:
            raise ConfigurationError("salt_length must be non-negative")
        if self.is_password_based and self.salt_length == 0:
            raise ConfigurationError("password-based configurations need a non-empty salt")
        if self.digest not in SUPPORTED_DIGESTS:
            raise ConfigurationError(f"unsupported PBKDF2 digest: {self.digest!r}")
        if isinstance(self.key_source, FixedKey) and len(self.key_source.key) != self.key_length:
            raise ConfigurationError(
                f"fixed key is {len(self.key_source.key)} bytes, "
                f"{self.algorithm.name} needs {self.key_length}"
            )

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def password_based(
        cls,
        algorithm: str,
        password: bytes | str,
        salt_length: int = DEFAULT_SALT_LENGTH,
        digest: str = DEFAULT_DIGEST,
        padding: bool = True,
    ) -> "CipherConfiguration":
        if isinstance(password, str):
            password = password.encode("utf-8")
        return cls(
            algorithm=parse_algorithm(algorithm),
            key_source=PasswordBased(bytes(password)),
            salt_length=salt_length,
            digest=digest.lower(),
            padding=padding,
        )

    @classmethod
    def fixed_key(cls, algorithm: str, key: bytes, padding: bool = True) -> "CipherConfiguration":
        return cls(
            algorithm=parse_algorithm(algorithm),
            key_source=FixedKey(bytes(key)),
            salt_length=0,
            padding=padding,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CipherConfiguration":
        """
        Build a configuration from ``SALTSTREAM_*`` environment variables.

        ``SALTSTREAM_KEY`` (hex) selects a fixed key and wins over
        ``SALTSTREAM_PASSWORD``. One of the two must be set.
        """
        env = os.environ if environ is None else environ
        algorithm = env.get(ENV_PREFIX + "ALGORITHM", DEFAULT_ALGORITHM)

        key_hex = env.get(ENV_PREFIX + "KEY")
        if key_hex:
            try:
                key = bytes.fromhex(key_hex)
            except ValueError:
                raise ConfigurationError(f"{ENV_PREFIX}KEY is not valid hex") from None
            return cls.fixed_key(algorithm, key)

        password = env.get(ENV_PREFIX + "PASSWORD")
        if password is None:
            raise ConfigurationError(
                f"set {ENV_PREFIX}PASSWORD or {ENV_PREFIX}KEY to configure a key source"
            )
        raw_salt_length = env.get(ENV_PREFIX + "SALT_LENGTH", str(DEFAULT_SALT_LENGTH))
        try:
            salt_length = int(raw_salt_length)
        except ValueError:
            raise ConfigurationError(
                f"{ENV_PREFIX}SALT_LENGTH must be an integer, got {raw_salt_length!r}"
            ) from None
        return cls.password_based(
            algorithm,
            password,
            salt_length=salt_length,
            digest=env.get(ENV_PREFIX + "DIGEST", DEFAULT_DIGEST),
        )

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def is_password_based(self) -> bool:
        return isinstance(self.key_source, PasswordBased)

    @property
    def block_size(self) -> int:
        return self.algorithm.block_size

    @property
    def key_length(self) -> int:
        return self.algorithm.key_length

    @property
    def iv_length(self) -> int:
        return self.algorithm.iv_length

    @property
    def needs_salt(self) -> bool:
        return self.is_password_based

    @property
    def needs_iv(self) -> bool:
        return self.algorithm.needs_iv

    @property
    def required_salt_length(self) -> int:
        return self.salt_length if self.needs_salt else 0

    @property
    def header_length(self) -> int:
        return self.required_salt_length + self.iv_length

    @property
    def pads(self) -> bool:
        return self.padding and self.algorithm.padded
