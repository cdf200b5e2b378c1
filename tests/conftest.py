import pytest

from vaultcrypt.crypter import Crypter
from vaultcrypt.secure_buffer import SecureByteArray

MASTER_PASSWORD = "correct horse battery staple"


@pytest.fixture
def crypter():
    return Crypter()


@pytest.fixture
def master_password():
    return SecureByteArray(MASTER_PASSWORD)


@pytest.fixture
def kgk():
    return SecureByteArray(bytes(64))


@pytest.fixture
def outer_salt(crypter):
    return crypter.generate_salt()


@pytest.fixture
def outer_key_iv(crypter, master_password, outer_salt):
    return crypter.make_key_and_iv_from_password(master_password, outer_salt)
