"""
Byte container for secret material.

Every password, key and KGK handled by vaultcrypt lives in a SecureByteArray.
Its storage is overwritten with zeros when the buffer is wiped, reassigned,
grown, garbage collected or leaves a ``with`` block.
"""

import hmac
from typing import Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]


class SecureByteArray:
    """A bytearray owner that zeroes its memory before letting go of it."""

    __slots__ = ("_data",)

    def __init__(self, data: Union[BytesLike, str, int, "SecureByteArray"] = b"", encoding: str = "utf-8"):
        """
        Args:
            data: Initial contents. A str is encoded with ``encoding``, an int
                allocates that many zero bytes, another SecureByteArray is copied.
            encoding: Encoding used when ``data`` is a str.
        """
        if isinstance(data, SecureByteArray):
            self._data = bytearray(data._data)
        elif isinstance(data, str):
            self._data = bytearray(data.encode(encoding))
        else:
            self._data = bytearray(data)

    @property
    def data(self) -> bytearray:
        """The backing storage. Do not keep references to it past the buffer's lifetime."""
        return self._data

    def wipe(self) -> None:
        """Overwrite the contents with zeros and empty the buffer."""
        data = getattr(self, "_data", None)
        if data:
            data[:] = bytes(len(data))
        self._data = bytearray()

    def assign(self, data: Union[BytesLike, "SecureByteArray"]) -> None:
        """Replace the contents, wiping the previous storage first."""
        fresh = bytearray(data._data if isinstance(data, SecureByteArray) else data)
        self.wipe()
        self._data = fresh

    def append(self, data: Union[BytesLike, "SecureByteArray"]) -> None:
        """
        Append bytes. The buffer is reallocated so that the old storage can be
        wiped instead of being abandoned by an in-place resize.
        """
        extra = data._data if isinstance(data, SecureByteArray) else data
        size = len(self._data)
        grown = bytearray(size + len(extra))
        grown[:size] = self._data
        grown[size:] = extra
        self.wipe()
        self._data = grown

    def mid(self, pos: int, length: Optional[int] = None) -> "SecureByteArray":
        """Copy ``length`` bytes starting at ``pos`` (to the end if omitted)."""
        end = len(self._data) if length is None else pos + length
        view = memoryview(self._data)
        try:
            return SecureByteArray(view[pos:end])
        finally:
            view.release()

    def take(self) -> "SecureByteArray":
        """Move the contents into a new buffer, leaving this one empty."""
        moved = SecureByteArray()
        moved._data = self._data
        self._data = bytearray()
        return moved

    def __enter__(self) -> "SecureByteArray":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __del__(self):
        self.wipe()

    def __len__(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        return bytes(self._data)

    def __eq__(self, other) -> bool:
        if isinstance(other, SecureByteArray):
            other = other._data
        if not isinstance(other, (bytes, bytearray, memoryview)):
            return NotImplemented
        return hmac.compare_digest(self._data, bytes(other))

    __hash__ = None

    def __repr__(self) -> str:
        return f"<SecureByteArray size={len(self._data)}>"
