"""
Local persistence of an encrypted vault blob.

The file holds exactly one blob as produced by Crypter.encode(). Writes go to
a temporary file that replaces the vault atomically and is then restricted to
its owner.
"""

import os
import shutil
import logging
import threading
from typing import Optional

from .crypter import Crypter, DecodedBlob, Secret
from .errors import CrypterError
from .secure_buffer import SecureByteArray
from .utils import set_owner_only_permissions

logger = logging.getLogger(__name__)


class BlobStore:
    """Reads, writes and re-keys the encrypted blob kept in a single file."""

    def __init__(self, filepath: str, compress: bool = True, crypter: Optional[Crypter] = None):
        """
        Initialize the blob store.
        Args:
            filepath: Path to the encrypted blob file
            compress: Whether payloads are compressed before encryption. The
                blob does not record this, so it must stay the same for a file.
            crypter: Crypter to use, a default one if omitted
        """
        self.filepath = filepath
        self.compress = compress
        self.crypter = crypter or Crypter()
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return os.path.exists(self.filepath)

    def read(self) -> bytes:
        """Return the raw blob."""
        with self._lock:
            return self._read()

    def write(self, blob: bytes) -> None:
        """Replace the stored blob."""
        with self._lock:
            self._write(blob)

    def create(self, master_password: Secret, data: bytes = b"", overwrite: bool = False) -> SecureByteArray:
        """
        Create a new vault with a fresh KGK and outer salt.
        Args:
            master_password: The master password protecting the vault
            data: Initial payload
            overwrite: Replace an existing file instead of refusing
        Returns:
            The new KGK. The caller owns it and should wipe it when done.
        """
        with self._lock:
            if not overwrite and os.path.exists(self.filepath):
                raise FileExistsError(f"Vault already exists: {self.filepath}")
            kgk = self.crypter.generate_kgk()
            try:
                blob = self.crypter.encode_with_password(master_password, kgk, data, self.compress)
                self._write(blob)
            except Exception:
                kgk.wipe()
                raise
            logger.info(f"Created vault {self.filepath}")
            return kgk

    def unlock(self, master_password: Secret) -> DecodedBlob:
        """
        Decrypt the stored blob.
        Returns:
            DecodedBlob with the KGK and the payload
        Raises:
            DecryptionError: Most likely a wrong master password
        """
        with self._lock:
            return self._decode(master_password)

    def update(self, master_password: Secret, data: bytes) -> None:
        """Encrypt new payload data under the existing KGK and outer salt."""
        with self._lock:
            with self._decode(master_password) as current:
                blob = self.crypter.encode_with_password(master_password, current.kgk, data,
                                                         self.compress, salt=current.salt)
            self._write(blob)
            logger.info(f"Updated vault {self.filepath}")

    def change_master_password(self, old_password: Secret, new_password: Secret) -> None:
        """Re-wrap the same KGK and payload under a new master password and a fresh salt."""
        with self._lock:
            with self._decode(old_password) as current:
                blob = self.crypter.encode_with_password(new_password, current.kgk, current.data, self.compress)
            self._write(blob)
            logger.info(f"Changed master password of vault {self.filepath}")

    def _decode(self, master_password: Secret) -> DecodedBlob:
        blob = self._read()
        try:
            return self.crypter.decode(master_password, blob, self.compress)
        except CrypterError as e:
            logger.warning(f"Cannot decode vault {self.filepath}: {type(e).__name__}: {e}")
            raise

    def _read(self) -> bytes:
        try:
            with open(self.filepath, 'rb') as f:
                return f.read()
        except OSError as e:
            logger.error(f"Error reading vault file {self.filepath}: {e}", exc_info=True)
            raise

    def _write(self, blob: bytes) -> None:
        tmp_path = self.filepath + '.tmp'
        try:
            directory = os.path.dirname(self.filepath)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(tmp_path, 'wb') as f:
                f.write(blob)
                f.flush()
                os.fsync(f.fileno())

            # Atomic replace using shutil.move
            shutil.move(tmp_path, self.filepath)

            if not set_owner_only_permissions(self.filepath):
                logger.warning(f"Failed to set secure file permissions for vault: {self.filepath}")

        except Exception as e:
            logger.error(f"Error saving vault file {self.filepath}: {e}", exc_info=True)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
