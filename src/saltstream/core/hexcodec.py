""" ASCII hex armor for ciphertext envelopes. """

from __future__ import annotations

from typing import Union

from saltstream.core.exceptions import InvalidDigitError, OddLengthError


HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
HEXDUMP_LIMIT = 64  # bytes shown by hexdump() before truncating

HexInput = Union[str, bytes, bytearray, memoryview]


def _as_text(data: HexInput) -> str:
    if isinstance(data, str):
        return data
    # transport chunks arrive as bytes; latin-1 keeps one char per byte so positions line up
    return bytes(data).decode("latin-1")


def _check_digits(text: str, offset: int = 0) -> None:
    for i, ch in enumerate(text):
        if ch not in HEX_DIGITS:
            raise InvalidDigitError(offset + i, ch)


def encode(data: bytes) -> str:
    """Return two lowercase hex digits per byte, high nibble first."""
    return bytes(data).hex()


def decode(data: HexInput) -> bytes:
    """
    Inverse of :func:`encode`.

    The whole input is validated before anything is converted, so a failure
    never yields partial output. Length is checked before digits.
    """
    text = _as_text(data)
    if len(text) % 2:
        raise OddLengthError(len(text))
    _check_digits(text)
    return bytes.fromhex(text)


class HexStreamDecoder:
    """
    Chunked hex decoding.

    A chunk may end in the middle of a byte pair; the stray digit is carried
    over to the next call. Error positions are absolute within the stream.
    """

    def __init__(self):
        self._pending = ""
        self._offset = 0

    def update(self, chunk: HexInput) -> bytes:
        text = _as_text(chunk)
        # validate only the new characters; the carried digit was checked last time
        _check_digits(text, self._offset)
        self._offset += len(text)

        text = self._pending + text
        cut = len(text) - (len(text) % 2)
        self._pending = text[cut:]
        return bytes.fromhex(text[:cut])

    def final(self) -> bytes:
        if self._pending:
            raise OddLengthError(self._offset)
        return b""


def hexdump(data: bytes, limit: int = HEXDUMP_LIMIT) -> str:
    """Short single-line rendering for trace output."""
    shown = encode(data[:limit])
    pairs = " ".join(shown[i:i + 2] for i in range(0, len(shown), 2))
    if len(data) > limit:
        pairs += f" ... (+{len(data) - limit} bytes)"
    return f"[{len(data)}] {pairs}"
