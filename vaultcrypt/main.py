"""
Command line entry point for vaultcrypt.

    vaultcrypt init    [--input FILE] [--force]
    vaultcrypt show    [--output FILE]
    vaultcrypt update  --input FILE
    vaultcrypt passwd
    vaultcrypt inspect

All commands act on the default vault unless ``--file`` is given.
"""

import os
import sys
import getpass
import logging
import argparse
from typing import List, Optional

from . import config
from .crypter import Crypter
from .errors import CrypterError, DecryptionError
from .secure_buffer import SecureByteArray
from .storage import BlobStore

logger = logging.getLogger(__name__)


def _get_password(prompt: str, confirm: bool = False) -> SecureByteArray:
    """Read a master password from the environment or the terminal."""
    from_env = os.environ.get(config.PASSWORD_ENV_VAR)
    if from_env is not None:
        return SecureByteArray(from_env)
    password = SecureByteArray(getpass.getpass(prompt))
    if confirm:
        with SecureByteArray(getpass.getpass("Repeat: ")) as repeated:
            if password != repeated:
                password.wipe()
                raise ValueError("Passwords do not match")
    return password


def _read_input(path: Optional[str]) -> bytes:
    if path is None:
        return b""
    if path == "-":
        return sys.stdin.buffer.read()
    with open(path, 'rb') as f:
        return f.read()


def _write_output(path: Optional[str], data: bytes) -> None:
    if path is None or path == "-":
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        with open(path, 'wb') as f:
            f.write(data)


def cmd_init(store: BlobStore, args: argparse.Namespace) -> int:
    data = _read_input(args.input)
    with _get_password("New master password: ", confirm=True) as password:
        with store.create(password, data, overwrite=args.force):
            pass
    print(f"Created {store.filepath}", file=sys.stderr)
    return 0


def cmd_show(store: BlobStore, args: argparse.Namespace) -> int:
    with _get_password("Master password: ") as password:
        with store.unlock(password) as decoded:
            _write_output(args.output, decoded.data)
    return 0


def cmd_update(store: BlobStore, args: argparse.Namespace) -> int:
    data = _read_input(args.input)
    with _get_password("Master password: ") as password:
        store.update(password, data)
    print(f"Updated {store.filepath}", file=sys.stderr)
    return 0


def cmd_passwd(store: BlobStore, args: argparse.Namespace) -> int:
    with _get_password("Current master password: ") as old_password:
        # Only the current password may come from the environment.
        new_password = SecureByteArray(getpass.getpass("New master password: "))
        with new_password, SecureByteArray(getpass.getpass("Repeat: ")) as repeated:
            if new_password != repeated:
                raise ValueError("Passwords do not match")
            store.change_master_password(old_password, new_password)
    print(f"Changed master password of {store.filepath}", file=sys.stderr)
    return 0


def cmd_inspect(store: BlobStore, args: argparse.Namespace) -> int:
    header = store.crypter.inspect(store.read())
    print(f"format:     0x{header.flag:02x}")
    print(f"salt:       {header.salt.hex()}")
    print(f"eek:        {len(header.eek)} bytes")
    print(f"ciphertext: {header.ciphertext_size} bytes")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog=config.APP_NAME,
                                description="Envelope-encrypted vault blob protected by a master password")
    p.add_argument("-f", "--file", default=None,
                   help=f"Vault file (default: ~/{config.CONFIG_DIR_NAME}/{config.DEFAULT_VAULT_FILE})")
    p.add_argument("--no-compress", dest="compress", action="store_false",
                   help="Payload is stored uncompressed")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_init = sub.add_parser("init", help="Create a new vault with a fresh KGK")
    p_init.add_argument("--input", help="Initial payload file ('-' for stdin)")
    p_init.add_argument("--force", action="store_true", help="Overwrite an existing vault")
    p_init.set_defaults(func=cmd_init)

    p_show = sub.add_parser("show", help="Decrypt and print the payload")
    p_show.add_argument("--output", help="Write the payload to this file instead of stdout")
    p_show.set_defaults(func=cmd_show)

    p_update = sub.add_parser("update", help="Replace the payload, keeping KGK and salt")
    p_update.add_argument("--input", required=True, help="New payload file ('-' for stdin)")
    p_update.set_defaults(func=cmd_update)

    p_passwd = sub.add_parser("passwd", help="Change the master password")
    p_passwd.set_defaults(func=cmd_passwd)

    p_inspect = sub.add_parser("inspect", help="Show the unencrypted blob header")
    p_inspect.set_defaults(func=cmd_inspect)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format=config.LOG_FORMAT)

    store = BlobStore(args.file or config.default_vault_path(), compress=args.compress, crypter=Crypter())
    logger.debug(f"Using vault {store.filepath} (compress={store.compress})")
    try:
        return args.func(store, args)
    except DecryptionError:
        print("Decryption failed (wrong master password?)", file=sys.stderr)
        return 1
    except CrypterError as e:
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
