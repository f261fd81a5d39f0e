"""Streaming crypto context: header handling on top of the cipher engine.

Envelope layout (binary)::

    [salt: salt_length bytes]   present iff the key is password based
    [iv:   iv_length bytes]     present iff the cipher mode takes an IV
    [ciphertext]

Encrypting, the first ``update`` (or a bare ``final``) draws salt and IV,
writes them in front of the output and brings the engine up. Decrypting, the
header may be split across any number of chunks; leading bytes are moved into
the salt and IV buffers until each is full, and whatever is left of that same
chunk goes straight to the engine. Chunk boundaries never change the result.

A context is single-use and not thread-safe. Any failure invalidates it: the
key-bearing state is wiped and further calls raise InvalidStateError. The
caller must discard output already produced for a failed stream.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from saltstream.core.buffer import ByteBuffer
from saltstream.core.exceptions import (
    InvalidStateError,
    RandomGenerationError,
    SaltStreamError,
    UnknownModeError,
)
from saltstream.core.hexcodec import hexdump
from saltstream.security.config import CipherConfiguration
from saltstream.security.engine import CipherEngine, Mode
from saltstream.security.kdf import derive_key
from saltstream.security.rng import RandomSource, get_random_source


logger = logging.getLogger(__name__)

ErrorSink = Callable[[str], None]
TraceHook = Callable[[str, bytes], None]


class Phase(Enum):
    UNINITIALIZED = "uninitialized"
    RECOVERING_SALT = "recovering_salt"
    RECOVERING_IV = "recovering_iv"
    CIPHER_READY = "cipher_ready"
    FINALIZED = "finalized"


class CryptoContext:
    def __init__(
        self,
        config: CipherConfiguration,
        mode: Mode | str,
        random_source: Optional[RandomSource] = None,
        error_sink: Optional[ErrorSink] = None,
        trace: Optional[TraceHook] = None,
    ):
        self._error_sink = error_sink
        try:
            mode = Mode(mode)
        except ValueError:
            self._report(f"unknown stream mode: {mode!r}")
            raise UnknownModeError(f"unknown stream mode: {mode!r}") from None

        self.config = config
        self.mode = mode
        self.phase = Phase.UNINITIALIZED
        self._random = random_source or get_random_source()
        self._trace_hook = trace
        self._engine = CipherEngine()
        self._salt = ByteBuffer(limit=config.required_salt_length)
        self._iv = ByteBuffer(limit=config.iv_length)
        self._failed = False
        self._closed = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def required_salt_length(self) -> int:
        return self._salt.limit

    @property
    def required_iv_length(self) -> int:
        return self._iv.limit

    @property
    def salt(self) -> bytes:
        return self._salt.getvalue()

    @property
    def iv(self) -> bytes:
        return self._iv.getvalue()

    @property
    def block_size(self) -> int:
        return self.config.block_size

    # ------------------------------------------------------------------
    # Streaming API
    # ------------------------------------------------------------------

    def update(self, chunk: bytes) -> bytes:
        """Process one chunk and return whatever output it produced (possibly empty)."""
        self._require_usable("update")
        try:
            if self.mode is Mode.ENCRYPT:
                out = self._update_encrypt(chunk)
            elif self.mode is Mode.DECRYPT:
                out = self._update_decrypt(chunk)
            else:
                raise UnknownModeError(f"unknown stream mode: {self.mode!r}")
        except SaltStreamError as e:
            self._fail(e)
            raise
        self._trace("in", bytes(chunk))
        self._trace("out", out)
        return out

    def final(self) -> bytes:
        """Flush the stream. The context is finalized afterwards."""
        self._require_usable("final")
        try:
            out = bytearray()
            if self.mode is Mode.ENCRYPT and self.phase is Phase.UNINITIALIZED:
                # empty plaintext still gets a full envelope
                out += self._start_encrypt()

            if self.phase is Phase.CIPHER_READY:
                out += self._engine.final()
            elif self.mode is Mode.DECRYPT:
                logger.warning(
                    "stream ended during %s (salt %d/%d, iv %d/%d bytes); returning no output",
                    self.phase.value,
                    len(self._salt),
                    self.required_salt_length,
                    len(self._iv),
                    self.required_iv_length,
                )
        except SaltStreamError as e:
            self._fail(e)
            raise
        self.phase = Phase.FINALIZED
        self.wipe()
        self._trace("final", bytes(out))
        return bytes(out)

    def close(self) -> None:
        """Abandon the stream; wipes key-bearing state and refuses further input.

        Safe to call repeatedly.
        """
        if self.phase is not Phase.FINALIZED and not self._closed:
            logger.debug("crypto context closed in phase %s", self.phase.value)
        self._closed = True
        self.wipe()

    def wipe(self) -> None:
        self._salt.wipe()
        self._iv.wipe()
        self._engine.wipe()

    def __enter__(self) -> "CryptoContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        # __init__ may have failed before the buffers existed
        if getattr(self, "_engine", None) is not None:
            self.wipe()

    # ------------------------------------------------------------------
    # Encrypt direction
    # ------------------------------------------------------------------

    def _update_encrypt(self, chunk: bytes) -> bytes:
        out = bytearray()
        if self.phase is Phase.UNINITIALIZED:
            out += self._start_encrypt()
        if chunk:
            out += self._engine.update(bytes(chunk))
        return bytes(out)

    def _start_encrypt(self) -> bytes:
        self._random.ensure_seeded()
        if self.config.needs_salt:
            self._salt.append(self._draw(self.required_salt_length))
        if self.config.needs_iv:
            self._iv.append(self._draw(self.required_iv_length))
        self._start_cipher()
        return self._salt.getvalue() + self._iv.getvalue()

    def _draw(self, n: int) -> bytes:
        try:
            return self._random.draw_bytes(n)
        except RandomGenerationError as e:
            logger.warning("%s; falling back to the lower-quality generator", e)
            return self._random.fallback_bytes(n)

    # ------------------------------------------------------------------
    # Decrypt direction
    # ------------------------------------------------------------------

    def _update_decrypt(self, chunk: bytes) -> bytes:
        data = ByteBuffer(chunk)

        if self.phase is Phase.UNINITIALIZED:
            self._advance_header_phase()

        if self.phase is Phase.RECOVERING_SALT:
            self._salt.append(data.drain_prefix(self._salt.remaining))
            if not self._salt.is_full:
                return b""
            self._advance_header_phase()

        if self.phase is Phase.RECOVERING_IV:
            self._iv.append(data.drain_prefix(self._iv.remaining))
            if not self._iv.is_full:
                return b""
            self._advance_header_phase()

        if not data:
            return b""
        return self._engine.update(data.drain())

    def _advance_header_phase(self) -> None:
        """Move to the next phase that still has header bytes to collect."""
        if self.phase is Phase.UNINITIALIZED and self.config.needs_salt:
            self.phase = Phase.RECOVERING_SALT
            return
        if self.phase in (Phase.UNINITIALIZED, Phase.RECOVERING_SALT) and self.config.needs_iv:
            self.phase = Phase.RECOVERING_IV
            return
        self._start_cipher()

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def _start_cipher(self) -> None:
        if self.phase is Phase.CIPHER_READY:
            raise InvalidStateError("cipher already initialized for this stream")
        salt, iv = self._salt.getvalue(), self._iv.getvalue()
        self._trace("salt", salt)
        self._trace("iv", iv)
        self._engine.init(self.config, derive_key(self.config, salt), iv, self.mode)
        self.phase = Phase.CIPHER_READY

    def _require_usable(self, operation: str) -> None:
        if self._failed:
            raise InvalidStateError(f"cannot {operation}: stream was invalidated by an earlier failure")
        if self.phase is Phase.FINALIZED:
            raise InvalidStateError(f"cannot {operation}: stream already finalized")
        if self._closed:
            raise InvalidStateError(f"cannot {operation}: stream was closed")

    def _fail(self, error: SaltStreamError) -> None:
        self._failed = True
        self.wipe()
        logger.debug("crypto context failed in phase %s: %s", self.phase.value, error)
        self._report(str(error))

    def _report(self, message: str) -> None:
        if self._error_sink is not None:
            self._error_sink(message)

    def _trace(self, label: str, data: bytes) -> None:
        if self._trace_hook is not None:
            self._trace_hook(label, data)
        elif logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s %s", label, hexdump(data))
