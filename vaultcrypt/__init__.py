"""
vaultcrypt
Copyright (c) 2025

Envelope encryption of a password-vault payload and its key generation key
(KGK) under a master password. Blobs are byte compatible with the
"AES-256 encrypted master-key format v1":

    flag (1) | outer salt (32) | EEK (112) | payload ciphertext (n)
"""

from .config import FORMAT_V1, FORMATS, FormatSpec
from .crypter import BlobHeader, Crypter, DecodedBlob
from .errors import (
    CorruptDataError,
    CrypterError,
    DecryptionError,
    FormatError,
    InternalConsistencyError,
    TruncatedInputError,
)
from .secure_buffer import SecureByteArray
from .storage import BlobStore

__all__ = [
    "BlobHeader", "BlobStore", "Crypter", "DecodedBlob", "FORMAT_V1", "FORMATS", "FormatSpec",
    "SecureByteArray", "CrypterError", "FormatError", "TruncatedInputError",
    "InternalConsistencyError", "DecryptionError", "CorruptDataError",
]
