"""
Block-cipher engine wrapping cryptography's Cipher init/update/finalize lifecycle.

One engine serves one stream in one direction. For CBC and ECB the engine adds
(encrypt) or strips (decrypt) PKCS7 padding, so ``update`` may hold back up to
one block and ``final`` flushes it.

Output bounds per call:
- encrypt ``update``: at most ``len(data) + block_size - 1`` bytes
- decrypt ``update``: at most ``len(data) + block_size`` bytes
- ``final``: at most ``block_size`` bytes

The engine keeps its own mutable copy of the key and overwrites it with
``KEY_WIPE_BYTE`` after ``final`` or on ``wipe()``. Python cannot scrub the
copies the backend makes, so this narrows the exposure window and nothing more.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from cryptography.exceptions import AlreadyFinalized, UnsupportedAlgorithm
from cryptography.hazmat.decrepit.ciphers import algorithms as decrepit_algorithms
from cryptography.hazmat.decrepit.ciphers import modes as decrepit_modes
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from saltstream.core.exceptions import (
    CipherFinalError,
    CipherInitError,
    CipherUpdateError,
    InvalidStateError,
    UnknownModeError,
)
from saltstream.security.config import AlgorithmSpec, CipherConfiguration


logger = logging.getLogger(__name__)

KEY_WIPE_BYTE = 0x00

_BLOCK_ALGORITHMS = {
    "aes": algorithms.AES,
    "camellia": decrepit_algorithms.Camellia,
    "sm4": algorithms.SM4,
}

_IV_MODES = {
    "cbc": modes.CBC,
    "cfb": decrepit_modes.CFB,
    "cfb8": decrepit_modes.CFB8,
    "ofb": decrepit_modes.OFB,
    "ctr": modes.CTR,
}

_CIPHER_ERRORS = (ValueError, TypeError, UnsupportedAlgorithm, AlreadyFinalized)


class Mode(Enum):
    """Direction of a stream."""

    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


def _build_algorithm(spec: AlgorithmSpec, key: bytes, iv: bytes):
    if spec.family == "chacha20":
        return algorithms.ChaCha20(key, iv)
    factory = _BLOCK_ALGORITHMS.get(spec.family)
    if factory is None:
        raise CipherInitError(f"no cipher implementation for {spec.family!r}")
    return factory(key)


def _build_mode(spec: AlgorithmSpec, iv: bytes):
    if spec.mode is None:
        return None
    if spec.mode == "ecb":
        return modes.ECB()
    factory = _IV_MODES.get(spec.mode)
    if factory is None:
        raise CipherInitError(f"no implementation for cipher mode {spec.mode!r}")
    return factory(iv)


class CipherEngine:
    def __init__(self):
        self._ctx = None
        self._padder = None
        self._key = bytearray()
        self._finalized = False
        self.mode: Optional[Mode] = None
        self.block_size = 1
        self.algorithm: Optional[str] = None

    @property
    def initialized(self) -> bool:
        return self._ctx is not None

    @property
    def finalized(self) -> bool:
        return self._finalized

    def init(self, config: CipherConfiguration, key: bytes, iv: bytes, mode: Mode) -> None:
        """
        Bind the cipher for ``config.algorithm`` and load key, IV and direction.

        Raises CipherInitError on any rejected parameter.
        """
        if self._ctx is not None or self._finalized:
            raise InvalidStateError("cipher engine is already initialized")
        if not isinstance(mode, Mode):
            raise UnknownModeError(f"unknown cipher direction: {mode!r}")

        spec = config.algorithm
        if len(key) != spec.key_length:
            raise CipherInitError(
                f"{spec.name} needs a {spec.key_length}-byte key, got {len(key)} bytes"
            )
        if len(iv) != spec.iv_length:
            raise CipherInitError(
                f"{spec.name} needs a {spec.iv_length}-byte IV, got {len(iv)} bytes"
            )

        self._key = bytearray(key)
        try:
            cipher = Cipher(
                _build_algorithm(spec, bytes(self._key), bytes(iv)),
                _build_mode(spec, bytes(iv)),
            )
            ctx = cipher.encryptor() if mode is Mode.ENCRYPT else cipher.decryptor()
        except CipherInitError:
            self.wipe()
            raise
        except _CIPHER_ERRORS as e:
            self.wipe()
            raise CipherInitError(f"cannot initialize {spec.name}: {e}") from e

        if config.pads:
            pkcs7 = padding.PKCS7(spec.block_size * 8)
            self._padder = pkcs7.padder() if mode is Mode.ENCRYPT else pkcs7.unpadder()

        self._ctx = ctx
        self.mode = mode
        self.block_size = spec.block_size
        self.algorithm = spec.name
        logger.debug("cipher engine ready: %s (%s)", spec.name, mode.value)

    def _require_active(self, operation: str) -> None:
        if self._finalized:
            raise InvalidStateError(f"cannot {operation}: cipher engine already finalized")
        if self._ctx is None:
            raise InvalidStateError(f"cannot {operation}: cipher engine not initialized")

    def update(self, data: bytes) -> bytes:
        self._require_active("update")
        try:
            if self._padder is None:
                return self._ctx.update(data)
            if self.mode is Mode.ENCRYPT:
                return self._ctx.update(self._padder.update(data))
            return self._padder.update(self._ctx.update(data))
        except _CIPHER_ERRORS as e:
            raise CipherUpdateError(f"{self.algorithm} update failed: {e}") from e

    def final(self) -> bytes:
        """Flush buffered bytes and padding, then wipe the key."""
        self._require_active("final")
        try:
            if self._padder is None:
                return self._ctx.finalize()
            if self.mode is Mode.ENCRYPT:
                return self._ctx.update(self._padder.finalize()) + self._ctx.finalize()
            return self._padder.update(self._ctx.finalize()) + self._padder.finalize()
        except _CIPHER_ERRORS as e:
            raise CipherFinalError(f"{self.algorithm} final failed: {e}") from e
        finally:
            self._finalized = True
            self.wipe()

    def wipe(self) -> None:
        """Overwrite the key copy and drop the backend context."""
        for i in range(len(self._key)):
            self._key[i] = KEY_WIPE_BYTE
        self._ctx = None
        self._padder = None
