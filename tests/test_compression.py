import logging
import struct

import pytest

from vaultcrypt.compression import qcompress, quncompress
from vaultcrypt.errors import CorruptDataError


def test_roundtrip():
    data = b"vault " * 1000
    packed = qcompress(data)
    assert len(packed) < len(data)
    assert quncompress(packed) == data


def test_size_prefix_is_big_endian():
    packed = qcompress(b"abcdef")
    assert struct.unpack('>I', packed[:4])[0] == 6


def test_empty_payload_is_a_bare_header():
    assert qcompress(b"") == b"\x00\x00\x00\x00"
    assert quncompress(b"\x00\x00\x00\x00") == b""


@pytest.mark.parametrize("garbage", [
    b"",
    b"\x00\x01",
    b"\x00\x00\x00\x05",
    b"not compressed!!",
])
def test_garbage_raises_corrupt_data(garbage):
    with pytest.raises(CorruptDataError):
        quncompress(garbage)


def test_size_header_is_only_a_hint(caplog):
    packed = bytearray(qcompress(b"abcdef"))
    packed[3] = 7
    with caplog.at_level(logging.WARNING, logger="vaultcrypt.compression"):
        assert quncompress(bytes(packed)) == b"abcdef"
    assert "header announced 7" in caplog.text


def test_interoperates_with_qt():
    QtCore = pytest.importorskip("PyQt5.QtCore")
    data = b"settings payload " * 50
    from_qt = QtCore.qCompress(QtCore.QByteArray(data), 9).data()
    assert quncompress(from_qt) == data
    assert QtCore.qUncompress(QtCore.QByteArray(qcompress(data))).data() == data
