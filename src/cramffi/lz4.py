"""
LZ4 _block_ compression through the native ``liblz4``.

Python Example
--------------
```python
>>> from cramffi import lz4
>>> lz4.compress_block(b'some bytes here')
>>> compressor = lz4.Compressor(acceleration=2)
>>> compressor.compress(data, bytearray(compressor.max_compressed_length(len(data))))
```
"""

import struct
from typing import Optional

from . import _base
from ._buffer import ByteRange, as_range, copy_into
from ._errors import BufferTooSmall, MalformedInput
from ._lz4 import DEFAULT_ACCELERATION, Lz4Native

__all__ = [
    "Compressor",
    "Decompressor",
    "Lz4Compressor",
    "Lz4Decompressor",
    "compress_block",
    "compress_block_bound",
    "compress_block_into",
    "decompress_block",
    "decompress_block_into",
]

# Little-endian uncompressed size prepended when store_size=True, as python-lz4 does
SIZE_PREFIX = struct.Struct("<I")
MAX_EXPANSION = 255


class Lz4Compressor(_base.Compressor):
    """
    LZ4 block compressor. Keeps a reusable working state, so a single instance
    is not thread-safe; use one per thread.
    """

    algorithm = _base.Algorithm.LZ4

    def __init__(self, acceleration: int = DEFAULT_ACCELERATION) -> None:
        self._native = Lz4Native(acceleration)

    @property
    def acceleration(self) -> int:
        return self._native.acceleration

    def max_compressed_length(self, uncompressed_size: int) -> int:
        return Lz4Native.max_compressed_length(_base.check_size(uncompressed_size))

    def compress(self, input, output) -> int:
        return self._native.compress(as_range(input), as_range(output, writable=True))


class Lz4Decompressor(_base.Decompressor):
    """
    LZ4 block decompressor. Blocks don't record their decompressed size, so
    there is no length probe.
    """

    algorithm = _base.Algorithm.LZ4

    def __init__(self) -> None:
        self._native = Lz4Native()

    def decompress(self, input, output) -> int:
        return self._native.decompress(as_range(input), as_range(output, writable=True))


Compressor = Lz4Compressor
Decompressor = Lz4Decompressor


def compress_block_bound(src, store_size: bool = True) -> int:
    """
    Size of a buffer guaranteed to hold the block compression of ``src``, including
    the size prefix when ``store_size`` is set.
    """
    n = len(as_range(src))
    return Lz4Native.max_compressed_length(n) + (SIZE_PREFIX.size if store_size else 0)


def compress_block_into(
    data, output, acceleration: Optional[int] = None, store_size: bool = True
) -> int:
    """
    LZ4 _block_ compression into a pre-allocated buffer, returns bytes written.

    Example
    -------
    ```python
    >>> out = bytearray(cramffi.lz4.compress_block_bound(data))
    >>> n = cramffi.lz4.compress_block_into(data, out)
    ```
    """
    src = as_range(data)
    dst = as_range(output, writable=True)
    compressor = Lz4Compressor(DEFAULT_ACCELERATION if acceleration is None else acceleration)
    if not store_size:
        return compressor.compress(src, dst)

    if len(dst) < SIZE_PREFIX.size:
        raise BufferTooSmall(f"Output buffer too small: {len(dst)} bytes")
    n = compressor.compress(src, dst.slice(SIZE_PREFIX.size))
    copy_into(dst.slice(0, SIZE_PREFIX.size), SIZE_PREFIX.pack(len(src)))
    return n + SIZE_PREFIX.size


def compress_block(data, acceleration: Optional[int] = None, store_size: bool = True) -> bytes:
    """
    LZ4 _block_ compression.

    Example
    -------
    ```python
    >>> cramffi.lz4.compress_block(b'some bytes here', acceleration=1, store_size=True)
    ```
    """
    out = bytearray(compress_block_bound(data, store_size=store_size))
    n = compress_block_into(data, out, acceleration=acceleration, store_size=store_size)
    return bytes(memoryview(out)[:n])


def decompress_block_into(input, output, store_size: bool = True) -> int:
    """
    LZ4 _block_ decompression into a pre-allocated buffer, returns bytes written.
    With ``store_size`` the stored size must fit ``output`` and match what was
    decompressed.
    """
    src = as_range(input)
    dst = as_range(output, writable=True)
    if not store_size:
        return Lz4Decompressor().decompress(src, dst)

    expected = _stored_size(src)
    if expected > len(dst):
        raise BufferTooSmall(f"Output buffer too small: {len(dst)} bytes, expected {expected}")
    try:
        n = Lz4Decompressor().decompress(src.slice(SIZE_PREFIX.size), dst.slice(0, expected))
    except BufferTooSmall as e:
        # The output had room for the stored size, so the prefix understates the block
        raise MalformedInput(f"Stored size {expected} is inconsistent with the block: {e}") from e
    if n != expected:
        raise MalformedInput(f"Stored size {expected} but block decompressed to {n} bytes")
    return n


def decompress_block(data, output_len: Optional[int] = None) -> bytes:
    """
    LZ4 _block_ decompression.

    ``output_len`` is the decompressed length of a block compressed with
    ``store_size=False``; when omitted the size prefix of ``store_size=True``
    is read instead.

    Example
    -------
    ```python
    >>> cramffi.lz4.decompress_block(compressed_bytes, output_len=Optional[int])
    ```
    """
    src = as_range(data)
    if output_len is None:
        out = bytearray(_stored_size(src))
        n = decompress_block_into(src, out, store_size=True)
    else:
        out = bytearray(output_len)
        n = decompress_block_into(src, out, store_size=False)
    return bytes(memoryview(out)[:n])


def _stored_size(src: ByteRange) -> int:
    if len(src) < SIZE_PREFIX.size:
        raise MalformedInput("Input too short to hold the stored size prefix")
    (size,) = SIZE_PREFIX.unpack(src.slice(0, SIZE_PREFIX.size).tobytes())
    # A block byte expands to at most MAX_EXPANSION output bytes
    if size > MAX_EXPANSION * (len(src) - SIZE_PREFIX.size) + MAX_EXPANSION:
        raise MalformedInput(f"Stored size {size} is inconsistent with a {len(src)} byte block")
    return size

