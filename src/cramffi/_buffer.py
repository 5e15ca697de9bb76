"""
Byte ranges over managed or foreign memory, and the views handing their
addresses to exactly one native call.
"""

import contextlib
from typing import Any, Iterator, Optional, Tuple

from ._errors import UnsupportedBufferKind
from ._ffi import ffi

__all__ = ["ByteRange", "DirectBuffer", "as_range", "copy_into", "view"]


class DirectBuffer:
    """
    Fixed-size native memory outside the Python heap, with a file-like cursor.

    ### Example

    ```python
    from cramffi import DirectBuffer
    buf = DirectBuffer(5)
    buf.write(b"bytes")
    buf.seek(2)
    buf.read()
    b'tes'
    ```
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        self._memory = ffi.new("char[]", max(size, 1))
        self._size = size
        self._position = 0

    @classmethod
    def from_bytes(cls, data) -> "DirectBuffer":
        data = memoryview(data).cast("B")
        buf = cls(len(data))
        buf.write(data)
        buf.seek(0)
        return buf

    @property
    def address(self) -> int:
        """Native address of the first byte."""
        return int(ffi.cast("uintptr_t", self._memory))

    def len(self) -> int:
        return self._size

    def write(self, input) -> int:
        """Write at the current position; raises ``OSError`` past the end."""
        data = memoryview(input).cast("B")
        if self._position + len(data) > self._size:
            raise OSError("Too much to write on direct buffer")
        ffi.memmove(self._memory + self._position, data, len(data))
        self._position += len(data)
        return len(data)

    def read(self, n_bytes: Optional[int] = -1) -> bytes:
        end = self._size if n_bytes is None or n_bytes < 0 else min(self._size, self._position + n_bytes)
        out = ffi.buffer(self._memory, self._size)[self._position : end]
        self._position = max(self._position, end)
        return out

    def readinto(self, output) -> int:
        out = memoryview(output).cast("B")
        n = min(len(out), self._size - self._position)
        out[:n] = ffi.buffer(self._memory + self._position, n)[:]
        self._position += n
        return n

    def seek(self, position: int, whence: int = 0) -> int:
        if whence == 0:
            target = position
        elif whence == 1:
            target = self._position + position
        elif whence == 2:
            target = self._size + position
        else:
            raise ValueError(f"Invalid whence {whence}, expected 0, 1 or 2")
        if not 0 <= target <= self._size:
            raise OSError("Bad seek: cannot seek outside bounds of direct buffer")
        self._position = target
        return target

    def tell(self) -> int:
        return self._position

    def tobytes(self) -> bytes:
        return ffi.buffer(self._memory, self._size)[:]

    def __len__(self) -> int:
        return self._size

    def __bool__(self) -> bool:
        return self._size > 0

    def __repr__(self) -> str:
        return f"DirectBuffer<len={self._size}>"


class ByteRange:
    """
    ``length`` bytes starting ``offset`` bytes into some storage; never owns it.

    Build with :meth:`of` for objects exposing the buffer protocol (managed) or
    :meth:`foreign` for memory known only by its address.
    """

    __slots__ = ("base", "address", "offset", "length", "owner", "readonly")

    def __init__(
        self,
        base: Optional[memoryview],
        address: Optional[int],
        offset: int,
        length: int,
        owner: Any,
        readonly: bool,
    ) -> None:
        self.base = base
        self.address = address
        self.offset = offset
        self.length = length
        self.owner = owner
        self.readonly = readonly

    @classmethod
    def of(cls, obj, offset: int = 0, length: Optional[int] = None) -> "ByteRange":
        if isinstance(obj, ByteRange):
            return obj.slice(offset, length)
        if isinstance(obj, DirectBuffer):
            size = len(obj)
            offset, length = _check_bounds(offset, length, size)
            return cls(None, obj.address, offset, length, obj, False)
        if isinstance(obj, (str, int, float)):
            raise UnsupportedBufferKind(f"Unsupported buffer kind {type(obj).__name__}")

        try:
            mv = memoryview(obj)
        except (TypeError, ValueError) as e:
            raise UnsupportedBufferKind(f"Unsupported buffer kind {type(obj).__name__}") from e
        if not mv.c_contiguous:
            mv.release()
            raise UnsupportedBufferKind(
                f"Unsupported buffer kind {type(obj).__name__}: memory is not C-contiguous"
            )
        if mv.format != "B" or mv.ndim != 1:
            mv = mv.cast("B")
        offset, length = _check_bounds(offset, length, mv.nbytes)
        return cls(mv, None, offset, length, obj, mv.readonly)

    @classmethod
    def foreign(cls, address: int, length: int, owner: Any = None) -> "ByteRange":
        """
        Memory at native ``address``; ``owner`` is kept reachable for as long as
        this range is, which is what keeps the memory alive if it owns it.
        """
        if length < 0:
            raise ValueError(f"length must be non-negative, got {length}")
        if address == 0 and length:
            raise ValueError("NULL address with non-zero length")
        return cls(None, address, 0, length, owner, False)

    @property
    def is_foreign(self) -> bool:
        return self.base is None

    def slice(self, offset: int = 0, length: Optional[int] = None) -> "ByteRange":
        offset, length = _check_bounds(offset, length, self.length)
        return ByteRange(
            self.base, self.address, self.offset + offset, length, self.owner, self.readonly
        )

    def tobytes(self) -> bytes:
        with view(self) as (pointer, length):
            return ffi.buffer(pointer, length)[:]

    def __len__(self) -> int:
        return self.length

    def __repr__(self) -> str:
        origin = "foreign" if self.is_foreign else "managed"
        return f"ByteRange<{origin}, offset={self.offset}, len={self.length}>"


def _check_bounds(offset: int, length: Optional[int], size: int) -> Tuple[int, int]:
    if offset < 0 or offset > size:
        raise ValueError(f"offset {offset} out of bounds for size {size}")
    if length is None:
        length = size - offset
    if length < 0 or offset + length > size:
        raise ValueError(f"range [{offset}, {offset}+{length}) out of bounds for size {size}")
    return offset, length


def as_range(obj, writable: bool = False) -> ByteRange:
    """Accept a :class:`ByteRange` or anything :meth:`ByteRange.of` supports."""
    byte_range = obj if isinstance(obj, ByteRange) else ByteRange.of(obj)
    if writable and byte_range.readonly:
        raise UnsupportedBufferKind(
            f"Read-only buffer {type(byte_range.owner).__name__} cannot be used as a destination"
        )
    return byte_range


@contextlib.contextmanager
def view(byte_range: ByteRange, writable: bool = False) -> Iterator[Tuple[Any, int]]:
    """
    Yield ``(pointer, length)`` for one native call.

    Managed storage stays exported, and therefore pinned, until the block
    exits; the originating object is held until then on every path.
    """
    if writable and byte_range.readonly:
        raise UnsupportedBufferKind(
            f"Read-only buffer {type(byte_range.owner).__name__} cannot be used as a destination"
        )

    owner = byte_range.owner
    if byte_range.is_foreign:
        pointer = ffi.cast("char *", byte_range.address + byte_range.offset)
        try:
            yield pointer, byte_range.length
        finally:
            _keep_alive(owner)
        return

    pinned = ffi.from_buffer("char[]", byte_range.base, require_writable=writable)
    try:
        yield pinned + byte_range.offset, byte_range.length
    finally:
        ffi.release(pinned)
        _keep_alive(owner)


def _keep_alive(obj: Any) -> None:
    # Reachability fence: a real use of ``obj`` after the native call returned.
    id(obj)


def copy_into(byte_range: ByteRange, data) -> int:
    """Copy ``data`` to the start of ``byte_range``, returning the bytes copied."""
    data = memoryview(data).cast("B")
    with view(byte_range, writable=True) as (pointer, length):
        if len(data) > length:
            raise ValueError(f"{len(data)} bytes do not fit in a range of {length}")
        ffi.memmove(pointer, data, len(data))
    return len(data)
