"""
Exceptions for saltstream
Every failure carries its own diagnostic message; there is no shared error slot.
"""

from __future__ import annotations


class SaltStreamError(Exception):
    # general container for errors

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(SaltStreamError):
    # raised when a cipher configuration is malformed or unsupported
    pass


class CryptoError(SaltStreamError):
    # raised by the random source, key derivation or the cipher engine
    pass


class EntropyError(CryptoError):
    # raised when the PRNG is still unseeded after the manual re-seed
    pass


class RandomGenerationError(CryptoError):
    # raised when the OS CSPRNG refuses to produce bytes
    pass


class KeyDerivationError(CryptoError):
    # raised when PBKDF2 fails or a fixed key has the wrong length
    pass


class CipherInitError(CryptoError):
    # raised when the cipher rejects a key, IV or algorithm parameter
    pass


class CipherUpdateError(CryptoError):
    # raised when the cipher rejects input mid-stream
    pass


class CipherFinalError(CryptoError):
    # raised when flushing the last block fails (bad padding, partial block)
    pass


class CodecError(SaltStreamError):
    # raised for malformed hex armor
    pass


class OddLengthError(CodecError):
    # raised when hex input has an odd number of digits

    def __init__(self, length: int):
        super().__init__(f"hex input has odd length {length}")
        self.length = length


class InvalidDigitError(CodecError):
    # raised for the first character that is not a hex digit

    def __init__(self, position: int, digit: str):
        super().__init__(f"invalid hex digit {digit!r} at position {position}")
        self.position = position
        self.digit = digit


class InvalidStateError(SaltStreamError):
    # raised on API misuse, e.g. update() after final()
    pass


class UnknownModeError(SaltStreamError):
    # raised when a context is built with a direction that is neither encrypt nor decrypt
    pass
