from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from saltstream.core.exceptions import KeyDerivationError
from saltstream.security.config import CipherConfiguration, FixedKey, PasswordBased


PBKDF2_ITERATIONS = 2048

_DIGESTS = {
    "sha1": hashes.SHA1,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


def pbkdf2(
    password: bytes,
    salt: bytes,
    key_len: int,
    digest: str = "sha256",
    iterations: int = PBKDF2_ITERATIONS,
) -> bytes:
    """
    Stretch a password into ``key_len`` bytes with PBKDF2-HMAC.
    Raises KeyDerivationError if the primitive rejects its parameters.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")

    try:
        kdf = PBKDF2HMAC(
            algorithm=_DIGESTS[digest](),
            length=key_len,
            salt=bytes(salt),
            iterations=iterations,
        )
        return kdf.derive(bytes(password))
    except KeyError:
        raise KeyDerivationError(f"unsupported PBKDF2 digest: {digest!r}") from None
    except (ValueError, TypeError) as e:
        raise KeyDerivationError(f"PBKDF2 failed: {e}") from e


def derive_key(config: CipherConfiguration, salt: bytes) -> bytes:
    """Return the stream key for ``config``; the salt is ignored for fixed keys."""
    source = config.key_source
    if isinstance(source, PasswordBased):
        return pbkdf2(source.password, salt, config.key_length, digest=config.digest)
    if isinstance(source, FixedKey):
        if len(source.key) != config.key_length:
            raise KeyDerivationError(
                f"fixed key is {len(source.key)} bytes, expected {config.key_length}"
            )
        return bytes(source.key)
    raise KeyDerivationError(f"unknown key source: {type(source).__name__}")
