"""
Envelope encryption of the vault payload and its key generation key (KGK).

Blob layout (format 0x01):

    Bytes | Description
    ----- | -----------------------------------------------------------------
        1 | Format flag (0x01)
       32 | Outer salt, used with the master password to derive key and IV
      112 | EEK: inner salt (32) + inner IV (16) + KGK (64), AES-256-CBC
          | without padding under the master password key
        n | Payload, AES-256-CBC with PKCS#7 padding under a key derived from
          | the KGK and the inner salt, using the inner IV

There is no MAC. Padding validation of the payload layer is the only
integrity signal, which is kept for compatibility with existing blobs.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from . import cipher
from .cipher import Padding
from .compression import qcompress, quncompress
from .config import CURRENT_FORMAT, FORMATS, FormatSpec
from .errors import FormatError, InternalConsistencyError, TruncatedInputError
from .kdf import derive_key, derive_key_and_iv
from .secure_buffer import SecureByteArray

logger = logging.getLogger(__name__)

Secret = Union[SecureByteArray, bytes, bytearray, str]


@dataclass
class BlobHeader:
    """The non-secret, structurally validated parts of a blob."""
    spec: FormatSpec
    salt: bytes
    eek: bytes
    ciphertext: bytes

    @property
    def flag(self) -> int:
        return self.spec.flag

    @property
    def ciphertext_size(self) -> int:
        return len(self.ciphertext)


@dataclass
class DecodedBlob:
    """Result of Crypter.decode(). Leaving a ``with`` block wipes the KGK."""
    kgk: SecureByteArray
    data: bytes
    salt: bytes

    def __enter__(self) -> "DecodedBlob":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.kgk.wipe()


class Crypter:
    """Encrypts a payload together with the KGK, both protected by the master password."""

    def __init__(self, spec: FormatSpec = CURRENT_FORMAT):
        """
        Args:
            spec: Format written by encode(). decode() accepts every known format.
        """
        self.spec = spec

    def random_bytes(self, size: int) -> bytes:
        """Draw ``size`` bytes from the operating system CSPRNG."""
        return os.urandom(size)

    def generate_salt(self) -> bytes:
        """Generate a fresh outer salt."""
        return self.random_bytes(self.spec.salt_size)

    def generate_kgk(self) -> SecureByteArray:
        """Generate a fresh key generation key."""
        return SecureByteArray(self.random_bytes(self.spec.kgk_size))

    def make_key_from_password(self, password: Secret, salt: bytes,
                               spec: Optional[FormatSpec] = None) -> SecureByteArray:
        """Derive the payload key from the KGK and the inner salt."""
        return derive_key(password, salt, spec or self.spec)

    def make_key_and_iv_from_password(self, master_password: Secret, salt: bytes,
                                      spec: Optional[FormatSpec] = None) -> Tuple[SecureByteArray, SecureByteArray]:
        """Derive the outer AES key and IV from the master password and the outer salt."""
        return derive_key_and_iv(master_password, salt, spec or self.spec)

    def encode(self,
               key: SecureByteArray,
               iv: SecureByteArray,
               salt: bytes,
               kgk: SecureByteArray,
               data: bytes,
               compress: bool = False) -> bytes:
        """
        Encrypt ``data`` and wrap ``kgk`` under the master password key.

        Args:
            key: AES key derived from the master password and ``salt``
            iv: IV derived alongside ``key``
            salt: The outer salt ``key`` and ``iv`` were derived with; embedded in the blob
            kgk: Key generation key, exactly ``kgk_size`` bytes
            data: Payload to encrypt
            compress: Compress the payload before encryption

        Returns:
            The blob: flag, outer salt, EEK and payload ciphertext

        Raises:
            InternalConsistencyError: If the KGK, salt, key or IV has the wrong size,
                or the EEK does not come out at its fixed size
        """
        spec = self.spec
        if len(kgk) != spec.kgk_size:
            raise InternalConsistencyError(f"KGK must be {spec.kgk_size} bytes, got {len(kgk)}")
        if len(salt) != spec.salt_size:
            raise InternalConsistencyError(f"Salt must be {spec.salt_size} bytes, got {len(salt)}")
        if len(key) != spec.key_size or len(iv) != spec.block_size:
            raise InternalConsistencyError("Key or IV has the wrong size")

        inner_salt = self.random_bytes(spec.salt_size)
        inner_iv = self.random_bytes(spec.block_size)

        with SecureByteArray() as inner:
            inner.append(inner_salt)
            inner.append(inner_iv)
            inner.append(kgk)
            if len(inner) != spec.eek_size:
                raise InternalConsistencyError(f"Inner structure is {len(inner)} bytes, expected {spec.eek_size}")
            eek = cipher.encrypt(key, iv, inner, Padding.NONE)
        if len(eek) != spec.eek_size:
            raise InternalConsistencyError(f"EEK is {len(eek)} bytes, expected {spec.eek_size}")

        with self.make_key_from_password(kgk, inner_salt) as blob_key:
            plain = qcompress(data) if compress else data
            ciphertext = cipher.encrypt(blob_key, inner_iv, plain, Padding.PKCS7)

        logger.debug(f"Encoded {len(data)} bytes into a {spec.header_size + len(ciphertext)} byte blob"
                     f" (format 0x{spec.flag:02x}, compress={compress})")
        return bytes([spec.flag]) + bytes(salt) + eek + ciphertext

    def encode_with_password(self,
                             master_password: Secret,
                             kgk: SecureByteArray,
                             data: bytes,
                             compress: bool = False,
                             salt: Optional[bytes] = None) -> bytes:
        """
        Like encode(), but derives the outer key and IV from ``master_password``.
        A fresh outer salt is drawn unless ``salt`` is given.
        """
        if salt is None:
            salt = self.generate_salt()
        key, iv = self.make_key_and_iv_from_password(master_password, salt)
        with key, iv:
            return self.encode(key, iv, salt, kgk, data, compress)

    def inspect(self, blob: bytes) -> BlobHeader:
        """
        Split a blob into its fields without decrypting anything.

        Raises:
            FormatError: If the flag byte names no known format
            TruncatedInputError: If the blob ends inside a fixed-size field
        """
        if not blob:
            raise TruncatedInputError("Blob is empty")
        spec = FORMATS.get(blob[0])
        if spec is None:
            raise FormatError(f"Unknown blob format 0x{blob[0]:02x}")

        pos = 1
        if len(blob) < pos + spec.salt_size:
            raise TruncatedInputError(f"Blob ends inside the salt ({len(blob)} bytes)")
        salt = bytes(blob[pos:pos + spec.salt_size])
        pos += spec.salt_size

        if len(blob) < pos + spec.eek_size:
            raise TruncatedInputError(f"Blob ends inside the encrypted key ({len(blob)} bytes)")
        eek = bytes(blob[pos:pos + spec.eek_size])
        pos += spec.eek_size

        ciphertext = bytes(blob[pos:])
        if not ciphertext:
            raise TruncatedInputError("Blob carries no payload ciphertext")
        return BlobHeader(spec=spec, salt=salt, eek=eek, ciphertext=ciphertext)

    def decode(self, master_password: Secret, blob: bytes, uncompress: bool = False) -> DecodedBlob:
        """
        Recover the KGK and the payload from a blob.

        Args:
            master_password: The master password the blob was encoded under
            blob: Output of encode()
            uncompress: Decompress the payload after decryption

        Returns:
            DecodedBlob holding the KGK, the payload and the outer salt

        Raises:
            FormatError: Unknown flag byte; nothing is derived or decrypted
            TruncatedInputError: The blob is too short
            InternalConsistencyError: The decrypted EEK has the wrong size
            DecryptionError: Payload padding is invalid, most likely a wrong master password
            CorruptDataError: The payload cannot be decompressed
        """
        header = self.inspect(blob)
        spec = header.spec

        key, iv = self.make_key_and_iv_from_password(master_password, header.salt, spec)
        with key, iv:
            inner = SecureByteArray(cipher.decrypt(key, iv, header.eek, Padding.NONE))
        with inner:
            if len(inner) != spec.eek_size:
                raise InternalConsistencyError(f"Decrypted EEK is {len(inner)} bytes, expected {spec.eek_size}")
            inner_salt = bytes(inner.data[:spec.salt_size])
            inner_iv = bytes(inner.data[spec.salt_size:spec.salt_size + spec.block_size])
            kgk = inner.mid(spec.salt_size + spec.block_size, spec.kgk_size)

        try:
            with self.make_key_from_password(kgk, inner_salt, spec) as blob_key:
                plain = cipher.decrypt(blob_key, inner_iv, header.ciphertext, Padding.PKCS7)
            if uncompress:
                plain = quncompress(plain)
        except Exception:
            kgk.wipe()
            raise

        logger.debug(f"Decoded {len(plain)} bytes from format 0x{spec.flag:02x} blob")
        return DecodedBlob(kgk=kgk, data=plain, salt=header.salt)
