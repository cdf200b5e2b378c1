"""
Exceptions raised while encoding or decoding a vault blob.
"""


class CrypterError(Exception):
    """Base class for every failure reported by the encryption core."""


class FormatError(CrypterError):
    """The leading flag byte does not name a known blob format."""


class TruncatedInputError(CrypterError):
    """The blob ends before a fixed-size field is complete."""


class InternalConsistencyError(CrypterError):
    """A fixed-size structure has the wrong size. Never a wrong password."""


class DecryptionError(CrypterError):
    """Padding validation failed, usually because the master password is wrong."""


class CorruptDataError(CrypterError):
    """The payload decrypted but could not be decompressed."""
