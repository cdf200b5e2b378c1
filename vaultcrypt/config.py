"""
Configuration constants for vaultcrypt.
"""

import os
from dataclasses import dataclass

# Application Metadata
APP_VERSION = "1.0"  # Use: Current version of the package. Type: str. Range: Semantic versioning string (e.g., "1.0.0")
APP_NAME = "vaultcrypt"  # Use: Name of the package and console script. Type: str. Range: Any valid string.

# Wire Format (version 1)
AES256_ENCRYPTED_MASTERKEY_FORMAT = 0x01  # Use: Leading flag byte of a version 1 blob ("AES-256 encrypted master-key format v1"). Type: int. Range: 0-255.
SALT_SIZE = 32  # Use: Size in bytes of the outer salt and of the inner salt. Type: int. Range: Fixed at 32 for version 1 blobs.
AES_KEY_SIZE = 256 // 8  # Use: Size of the AES-256 key in bytes. Type: int. Range: Fixed at 32.
AES_BLOCK_SIZE = 16  # Use: AES block size in bytes, also the size of every IV. Type: int. Range: Fixed at 16.
KGK_SIZE = 64  # Use: Size of the key generation key in bytes. Type: int. Range: Fixed at 64 for version 1 blobs.
EEK_SIZE = SALT_SIZE + AES_BLOCK_SIZE + KGK_SIZE  # Use: Size of the encrypted encryption key block (inner salt + inner IV + KGK). Type: int. Range: Derived value (112).

# Key Derivation Settings
DOMAIN_ITERATIONS = 32768  # Use: PBKDF2 iterations used to derive the outer key and IV from the master password. Type: int. Range: Fixed; changing it breaks existing blobs.
DOMAIN_HASH = "sha384"  # Use: PBKDF2 hash for the outer key and IV; its 48-byte digest yields key (32) + IV (16). Type: str. Range: Fixed.
KGK_ITERATIONS = 1024  # Use: PBKDF2 iterations used to derive the payload key from the KGK and the inner salt. Type: int. Range: Fixed; the KGK is already high entropy.
KGK_HASH = "sha256"  # Use: PBKDF2 hash for the payload key. Type: str. Range: Fixed.

# Compression Settings
COMPRESSION_LEVEL = 9  # Use: zlib level used when a payload is compressed before encryption. Type: int. Range: 0 to 9.
COMPRESSION_HEADER_SIZE = 4  # Use: Size of the big-endian uncompressed-length prefix of a compressed payload. Type: int. Range: Fixed at 4.

# File and Directory Names
CONFIG_DIR_NAME = ".vaultcrypt"  # Use: Name of the hidden directory within the user's home directory where the default vault lives. Type: str. Range: Any valid directory name.
DEFAULT_VAULT_FILE = "vault.bin"  # Use: Default filename for the encrypted blob. Type: str. Range: Any valid filename.
HOME_ENV_VAR = "VAULTCRYPT_HOME"  # Use: Environment variable overriding the directory holding the default vault. Type: str. Range: Any valid environment variable name.
PASSWORD_ENV_VAR = "VAULTCRYPT_PASSWORD"  # Use: Environment variable read by the command line instead of prompting for the master password. Type: str. Range: Any valid environment variable name.

# Logging
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'  # Use: Format passed to logging.basicConfig by the command line. Type: str. Range: Any logging format string.


@dataclass(frozen=True)
class FormatSpec:
    """Sizes, iteration counts and hashes that define one blob format version."""
    flag: int
    salt_size: int
    key_size: int
    block_size: int
    kgk_size: int
    domain_iterations: int
    domain_hash: str
    kgk_iterations: int
    kgk_hash: str

    @property
    def eek_size(self) -> int:
        return self.salt_size + self.block_size + self.kgk_size

    @property
    def header_size(self) -> int:
        """Bytes preceding the payload ciphertext: flag, outer salt and EEK."""
        return 1 + self.salt_size + self.eek_size


FORMAT_V1 = FormatSpec(
    flag=AES256_ENCRYPTED_MASTERKEY_FORMAT,
    salt_size=SALT_SIZE,
    key_size=AES_KEY_SIZE,
    block_size=AES_BLOCK_SIZE,
    kgk_size=KGK_SIZE,
    domain_iterations=DOMAIN_ITERATIONS,
    domain_hash=DOMAIN_HASH,
    kgk_iterations=KGK_ITERATIONS,
    kgk_hash=KGK_HASH,
)

# Known formats, keyed by their flag byte. New versions are added here.
FORMATS = {
    FORMAT_V1.flag: FORMAT_V1,
}

CURRENT_FORMAT = FORMAT_V1


def default_vault_path() -> str:
    """Location of the default vault file, honouring VAULTCRYPT_HOME."""
    base = os.environ.get(HOME_ENV_VAR) or os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME)
    return os.path.join(base, DEFAULT_VAULT_FILE)
