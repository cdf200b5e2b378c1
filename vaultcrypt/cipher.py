"""
AES-256-CBC encryption with optional PKCS#7 padding.
"""

import enum
from typing import Union

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .config import AES_BLOCK_SIZE, AES_KEY_SIZE
from .errors import DecryptionError
from .secure_buffer import SecureByteArray

KeyMaterial = Union[SecureByteArray, bytes, bytearray]


class Padding(enum.Enum):
    """Block padding scheme."""
    NONE = "none"    # caller guarantees block-aligned input
    PKCS7 = "pkcs7"


def _raw(value: KeyMaterial) -> Union[bytes, bytearray]:
    return value.data if isinstance(value, SecureByteArray) else value


def _make_cipher(key: KeyMaterial, iv: KeyMaterial) -> Cipher:
    raw_key, raw_iv = _raw(key), _raw(iv)
    if len(raw_key) != AES_KEY_SIZE:
        raise ValueError(f"AES key must be {AES_KEY_SIZE} bytes, got {len(raw_key)}")
    if len(raw_iv) != AES_BLOCK_SIZE:
        raise ValueError(f"IV must be {AES_BLOCK_SIZE} bytes, got {len(raw_iv)}")
    return Cipher(algorithms.AES(raw_key), modes.CBC(raw_iv), backend=default_backend())


def encrypt(key: KeyMaterial, iv: KeyMaterial, plaintext: bytes, padding: Padding = Padding.PKCS7) -> bytes:
    """
    Encrypt data using AES-256-CBC.

    Args:
        key: 32-byte encryption key
        iv: 16-byte initialization vector
        plaintext: Data to encrypt
        padding: Padding.PKCS7 for arbitrary lengths, Padding.NONE for block-aligned data

    Returns:
        The ciphertext

    Raises:
        ValueError: On a bad key or IV size, or unaligned data without padding
    """
    # Do not rebind plaintext: a temporary SecureByteArray would wipe itself here.
    raw = _raw(plaintext)
    if padding is Padding.NONE:
        if len(raw) % AES_BLOCK_SIZE:
            raise ValueError(f"Unpadded plaintext must be a multiple of {AES_BLOCK_SIZE} bytes")
        padded = raw
    else:
        padder = sym_padding.PKCS7(AES_BLOCK_SIZE * 8).padder()
        padded = padder.update(raw) + padder.finalize()
    encryptor = _make_cipher(key, iv).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def decrypt(key: KeyMaterial, iv: KeyMaterial, ciphertext: bytes, padding: Padding = Padding.PKCS7) -> bytes:
    """
    Decrypt data using AES-256-CBC.

    Without padding there is no self-check: a wrong key yields garbage of the
    right length, so callers must validate the result structurally.

    Raises:
        ValueError: On a bad key or IV size
        DecryptionError: If the ciphertext is not block-aligned or the padding is malformed
    """
    raw = _raw(ciphertext)
    if len(raw) % AES_BLOCK_SIZE:
        raise DecryptionError(f"Ciphertext length {len(raw)} is not a multiple of {AES_BLOCK_SIZE}")
    decryptor = _make_cipher(key, iv).decryptor()
    plaintext = decryptor.update(raw) + decryptor.finalize()
    if padding is Padding.NONE:
        return plaintext
    unpadder = sym_padding.PKCS7(AES_BLOCK_SIZE * 8).unpadder()
    try:
        return unpadder.update(plaintext) + unpadder.finalize()
    except ValueError as e:
        raise DecryptionError("Invalid padding; wrong key or corrupted data") from e
