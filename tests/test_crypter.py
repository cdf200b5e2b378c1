import hashlib

import pytest

from vaultcrypt import cipher, config
from vaultcrypt.cipher import Padding
from vaultcrypt.compression import quncompress
from vaultcrypt.crypter import Crypter
from vaultcrypt.errors import (
    CorruptDataError,
    DecryptionError,
    FormatError,
    InternalConsistencyError,
    TruncatedInputError,
)
from vaultcrypt.secure_buffer import SecureByteArray

from .conftest import MASTER_PASSWORD

HEADER_SIZE = 1 + 32 + 112


def _encode(crypter, outer_key_iv, outer_salt, kgk, data, compress=False):
    key, iv = outer_key_iv
    return crypter.encode(key, iv, outer_salt, kgk, data, compress)


def test_hello_vault_roundtrip(crypter, master_password, outer_key_iv, outer_salt, kgk):
    blob = _encode(crypter, outer_key_iv, outer_salt, kgk, b"hello vault")
    with crypter.decode(master_password, blob) as decoded:
        assert decoded.data == b"hello vault"
        assert decoded.kgk == bytes(64)
        assert decoded.salt == outer_salt


@pytest.mark.parametrize("compress", [False, True])
@pytest.mark.parametrize("payload", [b"", b"x", b"{\"entries\": []}" * 40, bytes(range(256)) * 9])
def test_roundtrip(crypter, master_password, outer_key_iv, outer_salt, payload, compress):
    kgk = crypter.generate_kgk()
    blob = _encode(crypter, outer_key_iv, outer_salt, kgk, payload, compress)
    decoded = crypter.decode(MASTER_PASSWORD, blob, uncompress=compress)
    assert decoded.data == payload
    assert decoded.kgk == kgk


def test_blob_layout(crypter, outer_key_iv, outer_salt, kgk):
    blob = _encode(crypter, outer_key_iv, outer_salt, kgk, b"hello vault")
    assert blob[0] == config.AES256_ENCRYPTED_MASTERKEY_FORMAT == 0x01
    assert blob[1:33] == outer_salt
    assert len(blob) == HEADER_SIZE + 16

    key, iv = outer_key_iv
    inner = cipher.decrypt(key, iv, blob[33:HEADER_SIZE], Padding.NONE)
    assert len(inner) == 112
    assert inner[48:] == bytes(64)


def test_blob_decrypts_with_independent_derivation(crypter, outer_key_iv, outer_salt):
    kgk = crypter.generate_kgk()
    blob = _encode(crypter, outer_key_iv, outer_salt, kgk, b"interop payload")

    domain = hashlib.pbkdf2_hmac("sha384", MASTER_PASSWORD.encode(), blob[1:33], 32768)
    inner = cipher.decrypt(domain[:32], domain[32:48], blob[33:HEADER_SIZE], Padding.NONE)
    inner_salt, inner_iv, raw_kgk = inner[:32], inner[32:48], inner[48:]
    blob_key = hashlib.pbkdf2_hmac("sha256", raw_kgk, inner_salt, 1024, 32)

    assert raw_kgk == bytes(kgk)
    assert cipher.decrypt(blob_key, inner_iv, blob[HEADER_SIZE:], Padding.PKCS7) == b"interop payload"


def test_compressed_payload_is_size_prefixed(crypter, outer_key_iv, outer_salt, kgk):
    payload = b"aaaa" * 500
    blob = _encode(crypter, outer_key_iv, outer_salt, kgk, payload, compress=True)
    assert len(blob) < HEADER_SIZE + len(payload)
    raw = crypter.decode(MASTER_PASSWORD, blob, uncompress=False).data
    assert quncompress(raw) == payload


def test_encode_is_not_deterministic(crypter, outer_key_iv, outer_salt, kgk):
    first = _encode(crypter, outer_key_iv, outer_salt, kgk, b"same payload")
    second = _encode(crypter, outer_key_iv, outer_salt, kgk, b"same payload")
    assert first[:33] == second[:33]
    assert first[33:HEADER_SIZE] != second[33:HEADER_SIZE]
    assert first[HEADER_SIZE:] != second[HEADER_SIZE:]
    assert crypter.decode(MASTER_PASSWORD, first).data == crypter.decode(MASTER_PASSWORD, second).data


def test_encode_with_password(crypter, kgk):
    salt = b"\x07" * 32
    blob = crypter.encode_with_password(MASTER_PASSWORD, kgk, b"payload", salt=salt)
    assert blob[1:33] == salt
    assert crypter.decode(MASTER_PASSWORD, blob).data == b"payload"

    fresh = crypter.encode_with_password(MASTER_PASSWORD, kgk, b"payload")
    assert fresh[1:33] != salt


def test_wrong_password_is_reported_as_decryption_error(crypter, kgk):
    # A wrong key still passes PKCS#7 validation about once in 256 tries,
    # yielding garbage; the chance of that happening twice here is negligible.
    failures = 0
    for _ in range(4):
        blob = crypter.encode_with_password(MASTER_PASSWORD, kgk, b"hello vault")
        try:
            decoded = crypter.decode("Tr0ub4dor&3", blob)
        except DecryptionError:
            failures += 1
        else:
            assert decoded.data != b"hello vault"
    assert failures >= 3


def test_unknown_format_fails_before_key_derivation(crypter, monkeypatch):
    def no_derivation(*args, **kwargs):
        raise AssertionError("key derivation must not run")
    monkeypatch.setattr(crypter, "make_key_and_iv_from_password", no_derivation)

    blob = b"\x02" + bytes(200)
    with pytest.raises(FormatError):
        crypter.decode(MASTER_PASSWORD, blob)


@pytest.mark.parametrize("size", [0, 1, 20, 33, 100, HEADER_SIZE])
def test_truncated_blobs(crypter, outer_key_iv, outer_salt, kgk, size):
    blob = _encode(crypter, outer_key_iv, outer_salt, kgk, b"hello vault")
    with pytest.raises(TruncatedInputError):
        crypter.decode(MASTER_PASSWORD, blob[:size])


def test_unaligned_ciphertext_is_rejected(crypter, outer_key_iv, outer_salt, kgk):
    blob = _encode(crypter, outer_key_iv, outer_salt, kgk, b"hello vault")
    with pytest.raises(DecryptionError):
        crypter.decode(MASTER_PASSWORD, blob[:-1])


def test_bit_flip_before_last_block_breaks_padding(crypter, outer_key_iv, outer_salt, kgk):
    # 40 bytes pad to three blocks ending in eight 0x08 bytes. Flipping the low
    # bit of the last byte of block two turns the final pad byte into 0x09.
    blob = bytearray(_encode(crypter, outer_key_iv, outer_salt, kgk, b"p" * 40))
    assert len(blob) == HEADER_SIZE + 48
    blob[HEADER_SIZE + 31] ^= 0x01
    with pytest.raises(DecryptionError):
        crypter.decode(MASTER_PASSWORD, bytes(blob))


def test_bit_flip_in_early_block_is_not_detected(crypter, outer_key_iv, outer_salt, kgk):
    # No MAC: damage that leaves the padding intact yields wrong plaintext.
    payload = b"p" * 40
    blob = bytearray(_encode(crypter, outer_key_iv, outer_salt, kgk, payload))
    blob[HEADER_SIZE] ^= 0x80
    decoded = crypter.decode(MASTER_PASSWORD, bytes(blob))
    assert decoded.data != payload
    assert decoded.data[16:] == b"\xf0" + b"p" * 23


def test_undecompressable_payload(crypter, outer_key_iv, outer_salt, kgk):
    blob = _encode(crypter, outer_key_iv, outer_salt, kgk, b"not compressed!!", compress=False)
    with pytest.raises(CorruptDataError):
        crypter.decode(MASTER_PASSWORD, blob, uncompress=True)


@pytest.mark.parametrize("size", [0, 32, 63, 65])
def test_kgk_size_is_enforced(crypter, outer_key_iv, outer_salt, size):
    with pytest.raises(InternalConsistencyError):
        _encode(crypter, outer_key_iv, outer_salt, SecureByteArray(size), b"data")


def test_salt_size_is_enforced(crypter, outer_key_iv, kgk):
    with pytest.raises(InternalConsistencyError):
        _encode(crypter, outer_key_iv, b"\x00" * 16, kgk, b"data")


def test_key_and_iv_sizes_are_enforced(crypter, outer_key_iv, outer_salt, kgk):
    key, iv = outer_key_iv
    with pytest.raises(InternalConsistencyError):
        crypter.encode(SecureByteArray(key.data[:16]), iv, outer_salt, kgk, b"data")
    with pytest.raises(InternalConsistencyError):
        crypter.encode(key, SecureByteArray(8), outer_salt, kgk, b"data")


def test_short_decrypted_eek_is_internal_error(crypter, outer_key_iv, outer_salt, kgk, monkeypatch):
    blob = _encode(crypter, outer_key_iv, outer_salt, kgk, b"hello vault")
    real_decrypt = cipher.decrypt

    def short_decrypt(key, iv, data, padding=Padding.PKCS7):
        plain = real_decrypt(key, iv, data, padding)
        return plain[:100] if padding is Padding.NONE else plain
    monkeypatch.setattr(cipher, "decrypt", short_decrypt)

    with pytest.raises(InternalConsistencyError):
        crypter.decode(MASTER_PASSWORD, blob)


def test_wrong_sized_eek_on_encode_is_internal_error(crypter, outer_key_iv, outer_salt, kgk, monkeypatch):
    real_encrypt = cipher.encrypt

    def long_encrypt(key, iv, data, padding=Padding.PKCS7):
        out = real_encrypt(key, iv, data, padding)
        return out + bytes(16) if padding is Padding.NONE else out
    monkeypatch.setattr(cipher, "encrypt", long_encrypt)

    with pytest.raises(InternalConsistencyError):
        _encode(crypter, outer_key_iv, outer_salt, kgk, b"hello vault")


def test_decoded_blob_wipes_kgk(crypter, outer_key_iv, outer_salt):
    blob = _encode(crypter, outer_key_iv, outer_salt, SecureByteArray(b"\x11" * 64), b"data")
    with crypter.decode(MASTER_PASSWORD, blob) as decoded:
        raw = decoded.kgk.data
        assert raw == bytearray(b"\x11" * 64)
    assert raw == bytearray(64)


def _spy_on_blob_key(crypter, monkeypatch):
    """Record the storage of every password and key passing through make_key_from_password."""
    seen = {"passwords": [], "keys": []}
    real = crypter.make_key_from_password

    def spy(password, salt, spec=None):
        key = real(password, salt, spec)
        seen["passwords"].append(password.data)
        seen["keys"].append(key.data)
        return key
    monkeypatch.setattr(crypter, "make_key_from_password", spy)
    return seen


def test_failed_decode_wipes_kgk_and_blob_key(crypter, outer_key_iv, outer_salt, monkeypatch):
    blob = bytearray(_encode(crypter, outer_key_iv, outer_salt, SecureByteArray(b"\x11" * 64), b"p" * 40))
    blob[HEADER_SIZE + 31] ^= 0x01
    seen = _spy_on_blob_key(crypter, monkeypatch)

    with pytest.raises(DecryptionError):
        crypter.decode(MASTER_PASSWORD, bytes(blob))

    [kgk_storage] = seen["passwords"]
    [key_storage] = seen["keys"]
    assert len(kgk_storage) == 64 and kgk_storage == bytearray(64)
    assert len(key_storage) == 32 and key_storage == bytearray(32)


def test_failed_eek_encryption_wipes_inner_structure(crypter, outer_key_iv, outer_salt, monkeypatch):
    captured = []

    def failing_encrypt(key, iv, data, padding=Padding.PKCS7):
        captured.append(data.data)
        assert data.data[48:] == bytearray(b"\x11" * 64)
        raise RuntimeError("cipher failure")
    monkeypatch.setattr(cipher, "encrypt", failing_encrypt)

    with pytest.raises(RuntimeError):
        _encode(crypter, outer_key_iv, outer_salt, SecureByteArray(b"\x11" * 64), b"data")
    [inner_storage] = captured
    assert len(inner_storage) == 112 and inner_storage == bytearray(112)


def test_failed_payload_encryption_wipes_blob_key(crypter, outer_key_iv, outer_salt, kgk, monkeypatch):
    real_encrypt = cipher.encrypt

    def failing_encrypt(key, iv, data, padding=Padding.PKCS7):
        if padding is Padding.PKCS7:
            raise RuntimeError("cipher failure")
        return real_encrypt(key, iv, data, padding)
    monkeypatch.setattr(cipher, "encrypt", failing_encrypt)
    seen = _spy_on_blob_key(crypter, monkeypatch)

    with pytest.raises(RuntimeError):
        _encode(crypter, outer_key_iv, outer_salt, kgk, b"data")
    [key_storage] = seen["keys"]
    assert len(key_storage) == 32 and key_storage == bytearray(32)


def test_inspect(crypter, outer_key_iv, outer_salt, kgk):
    blob = _encode(crypter, outer_key_iv, outer_salt, kgk, b"hello vault")
    header = crypter.inspect(blob)
    assert header.flag == 0x01
    assert header.spec is config.FORMAT_V1
    assert header.salt == outer_salt
    assert len(header.eek) == 112
    assert header.ciphertext_size == 16


def test_format_spec_sizes():
    spec = config.FORMAT_V1
    assert spec.eek_size == 112
    assert spec.header_size == HEADER_SIZE
    assert config.FORMATS[0x01] is spec
    assert isinstance(Crypter().spec, config.FormatSpec)


def test_parallel_calls_share_no_state(crypter):
    from concurrent.futures import ThreadPoolExecutor

    def roundtrip(i):
        kgk = crypter.generate_kgk()
        payload = f"payload {i}".encode()
        blob = crypter.encode_with_password(MASTER_PASSWORD, kgk, payload, compress=bool(i % 2))
        decoded = crypter.decode(MASTER_PASSWORD, blob, uncompress=bool(i % 2))
        return decoded.data == payload and decoded.kgk == kgk

    with ThreadPoolExecutor(max_workers=4) as pool:
        assert all(pool.map(roundtrip, range(8)))
