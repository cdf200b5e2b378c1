"""
Password based key derivation (PBKDF2-HMAC).

Two fixed configurations are used by the crypter:

* domain: master password + outer salt -> AES key and IV (SHA-384, 32768 rounds)
* blob:   KGK + inner salt -> AES key for the payload (SHA-256, 1024 rounds)

The output is plain RFC 8018 PBKDF2, so any compliant implementation derives
the same bytes for the same inputs.
"""

import logging
from typing import Optional, Tuple, Union

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import FORMAT_V1, FormatSpec
from .secure_buffer import SecureByteArray

logger = logging.getLogger(__name__)

HASH_ALGORITHMS = {
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}

Secret = Union[SecureByteArray, bytes, bytearray, str]


def get_hash_algorithm(algorithm: Union[str, hashes.HashAlgorithm]) -> hashes.HashAlgorithm:
    """Resolve a hash name such as ``"sha384"`` to a cryptography hash instance."""
    if isinstance(algorithm, hashes.HashAlgorithm):
        return algorithm
    try:
        return HASH_ALGORITHMS[algorithm.lower()]()
    except KeyError:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}") from None


def pbkdf2(password: Secret,
           salt: bytes,
           iterations: int,
           algorithm: Union[str, hashes.HashAlgorithm] = "sha256",
           length: Optional[int] = None) -> SecureByteArray:
    """
    Stretch a password into ``length`` bytes of key material.

    Args:
        password: The secret to stretch. Empty passwords are allowed.
        salt: Salt bytes. Empty salts are allowed but never used operationally.
        iterations: Number of PBKDF2 rounds, at least 1.
        algorithm: Hash name or cryptography hash instance used for HMAC.
        length: Output size in bytes. Defaults to the digest size of ``algorithm``.

    Returns:
        The derived key in a SecureByteArray.

    Raises:
        ValueError: If ``iterations`` or ``length`` is smaller than 1.
    """
    if iterations < 1:
        raise ValueError(f"PBKDF2 needs at least one iteration, got {iterations}")
    hash_algorithm = get_hash_algorithm(algorithm)
    if length is None:
        length = hash_algorithm.digest_size
    if length < 1:
        raise ValueError(f"PBKDF2 output length must be positive, got {length}")

    kdf = PBKDF2HMAC(
        algorithm=hash_algorithm,
        length=length,
        salt=bytes(salt),
        iterations=iterations,
        backend=default_backend()
    )
    if isinstance(password, SecureByteArray):
        return SecureByteArray(kdf.derive(password.data))
    with SecureByteArray(password) as secret:
        return SecureByteArray(kdf.derive(secret.data))


def derive_key(password: Secret, salt: bytes, spec: FormatSpec = FORMAT_V1) -> SecureByteArray:
    """Blob configuration: the AES key protecting the payload, derived from the KGK."""
    logger.debug(f"Deriving blob key ({spec.kgk_hash}, {spec.kgk_iterations} iterations)")
    return pbkdf2(password, salt, spec.kgk_iterations, spec.kgk_hash, spec.key_size)


def derive_key_and_iv(password: Secret,
                      salt: bytes,
                      spec: FormatSpec = FORMAT_V1) -> Tuple[SecureByteArray, SecureByteArray]:
    """
    Domain configuration: derive the outer AES key and IV from the master password.

    The full digest-sized output is split into the key (first ``key_size``
    bytes) and the IV (the following ``block_size`` bytes).
    """
    logger.debug(f"Deriving domain key and IV ({spec.domain_hash}, {spec.domain_iterations} iterations)")
    with pbkdf2(password, salt, spec.domain_iterations, spec.domain_hash) as hash_:
        if len(hash_) < spec.key_size + spec.block_size:
            raise ValueError(f"{spec.domain_hash} output is too short for a key and an IV")
        key = hash_.mid(0, spec.key_size)
        iv = hash_.mid(spec.key_size, spec.block_size)
    return key, iv
