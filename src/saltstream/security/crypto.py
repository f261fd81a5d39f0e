"""Chunked stream helpers that drive a CryptoContext over files and buffers.

Envelope (binary)::

    [salt][iv][ciphertext]

With ``armor=True`` the whole envelope is written as lowercase hex, exactly
twice as long, with no separators or trailing newline. Decryption accepts the
armored form split at any byte, including between the two digits of a pair.

The path helpers write into a temporary file next to the destination and move
it into place only after the stream finished cleanly, so a failed decrypt
leaves no partial plaintext behind.
"""
from __future__ import annotations

import io
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Optional

from saltstream.core import hexcodec
from saltstream.core.exceptions import CodecError
from saltstream.core.hexcodec import HexStreamDecoder
from saltstream.security.config import CipherConfiguration
from saltstream.security.context import CryptoContext, ErrorSink
from saltstream.security.engine import Mode
from saltstream.security.rng import RandomSource


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024  # 64KB


def _write(outf: BinaryIO, data: bytes, armor: bool) -> int:
    if not data:
        return 0
    if armor:
        data = hexcodec.encode(data).encode("ascii")
    outf.write(data)
    return len(data)


def encrypt_stream(
    inf: BinaryIO,
    outf: BinaryIO,
    config: CipherConfiguration,
    armor: bool = False,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    random_source: Optional[RandomSource] = None,
    error_sink: Optional[ErrorSink] = None,
) -> int:
    """Encrypt everything readable from ``inf`` into ``outf``; returns bytes written."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    written = 0
    with CryptoContext(config, Mode.ENCRYPT, random_source=random_source, error_sink=error_sink) as ctx:
        while True:
            chunk = inf.read(chunk_size)
            if not chunk:
                break
            written += _write(outf, ctx.update(chunk), armor)
        written += _write(outf, ctx.final(), armor)
    return written


def decrypt_stream(
    inf: BinaryIO,
    outf: BinaryIO,
    config: CipherConfiguration,
    armor: bool = False,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    error_sink: Optional[ErrorSink] = None,
) -> int:
    """Decrypt everything readable from ``inf`` into ``outf``; returns bytes written."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    decoder = HexStreamDecoder() if armor else None
    written = 0
    with CryptoContext(config, Mode.DECRYPT, error_sink=error_sink) as ctx:
        while True:
            chunk = inf.read(chunk_size)
            if not chunk:
                break
            if decoder is not None:
                chunk = _unarmor(decoder.update, chunk, error_sink)
            written += _write(outf, ctx.update(chunk), False)
        if decoder is not None:
            _unarmor(lambda _: decoder.final(), b"", error_sink)
        written += _write(outf, ctx.final(), False)
    return written


def _unarmor(step: Callable[[bytes], bytes], chunk: bytes, error_sink: Optional[ErrorSink]) -> bytes:
    try:
        return step(chunk)
    except CodecError as e:
        if error_sink is not None:
            error_sink(str(e))
        raise


@contextmanager
def atomic_output(out_path: str | Path) -> Iterator[BinaryIO]:
    """Yield a temporary file that replaces ``out_path`` only if the block completes."""
    destination = Path(out_path).expanduser()
    destination.parent.mkdir(parents=True, exist_ok=True)

    # create temp file beside the destination so the final rename stays on one filesystem
    with tempfile.NamedTemporaryFile(
        dir=destination.parent, prefix=f".{destination.name}.", suffix=".part", delete=False
    ) as tmpf:
        tmp_path = Path(tmpf.name)
        try:
            yield tmpf
        except BaseException:
            tmpf.close()
            tmp_path.unlink(missing_ok=True)
            raise

    os.replace(tmp_path, destination)


def _transform_file(transform, in_path, out_path, config: CipherConfiguration, **kwargs) -> int:
    with atomic_output(out_path) as tmpf, open(Path(in_path).expanduser(), "rb") as inf:
        written = transform(inf, tmpf, config, **kwargs)
    logger.info("wrote %d bytes to %s", written, out_path)
    return written


def encrypt_file_stream(
    in_path: str | Path,
    out_path: str | Path,
    config: CipherConfiguration,
    armor: bool = False,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    error_sink: Optional[ErrorSink] = None,
) -> int:
    return _transform_file(
        encrypt_stream, in_path, out_path, config, armor=armor, chunk_size=chunk_size, error_sink=error_sink
    )


def decrypt_file_stream(
    in_path: str | Path,
    out_path: str | Path,
    config: CipherConfiguration,
    armor: bool = False,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    error_sink: Optional[ErrorSink] = None,
) -> int:
    return _transform_file(
        decrypt_stream, in_path, out_path, config, armor=armor, chunk_size=chunk_size, error_sink=error_sink
    )


def encrypt_bytes(data: bytes, config: CipherConfiguration, armor: bool = False) -> bytes:
    """One-shot encryption of an in-memory buffer."""
    out = io.BytesIO()
    encrypt_stream(io.BytesIO(data), out, config, armor=armor, chunk_size=max(len(data), 1))
    return out.getvalue()


def decrypt_bytes(blob: bytes, config: CipherConfiguration, armor: bool = False) -> bytes:
    """One-shot decryption of an in-memory buffer."""
    out = io.BytesIO()
    decrypt_stream(io.BytesIO(blob), out, config, armor=armor, chunk_size=max(len(blob), 1))
    return out.getvalue()
