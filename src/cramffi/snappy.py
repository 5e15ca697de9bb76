"""
Snappy _raw_ compression through the native ``libsnappy``.

This does not use the snappy 'framed' encoding of compressed bytes.

Python Example
--------------
```python
>>> from cramffi import snappy
>>> compressed = snappy.compress_raw(b'some bytes here')
>>> snappy.decompress_raw(compressed)
b'some bytes here'
```
"""

from . import _base
from ._buffer import as_range
from ._snappy import SnappyNative

__all__ = [
    "Compressor",
    "Decompressor",
    "SnappyCompressor",
    "SnappyDecompressor",
    "compress_raw",
    "compress_raw_into",
    "compress_raw_max_len",
    "decompress_raw",
    "decompress_raw_into",
    "decompress_raw_len",
    "validate_raw",
]


class SnappyCompressor(_base.Compressor):
    """
    Snappy raw compressor.

    The native compressor insists on a destination of at least
    :meth:`max_compressed_length` bytes, even when the result would be shorter.
    An instance reuses one output-length cell and is not thread-safe.
    """

    algorithm = _base.Algorithm.SNAPPY

    def __init__(self) -> None:
        self._native = SnappyNative()

    def max_compressed_length(self, uncompressed_size: int) -> int:
        return SnappyNative.max_compressed_length(_base.check_size(uncompressed_size))

    def compress(self, input, output) -> int:
        return self._native.compress(as_range(input), as_range(output, writable=True))


class SnappyDecompressor(_base.Decompressor):
    """
    Snappy raw decompressor, with length probe and validation. An instance reuses
    one output-length cell and is not thread-safe.
    """

    algorithm = _base.Algorithm.SNAPPY
    supports_probe = True

    def __init__(self) -> None:
        self._native = SnappyNative()

    def decompress(self, input, output) -> int:
        return self._native.decompress(as_range(input), as_range(output, writable=True))

    def decompressed_length(self, input) -> int:
        return self._native.decompressed_length(as_range(input))

    def validate(self, input) -> bool:
        return self._native.validate(as_range(input))


Compressor = SnappyCompressor
Decompressor = SnappyDecompressor


def compress_raw_max_len(data) -> int:
    """
    Get the expected max compressed length for snappy raw compression; this is the size
    of buffer that should be passed to `compress_raw_into`
    """
    return SnappyNative.max_compressed_length(len(as_range(data)))


def decompress_raw_len(data) -> int:
    """
    Get the decompressed length for the given data. This is the size of buffer
    that should be passed to `decompress_raw_into`
    """
    return SnappyDecompressor().decompressed_length(data)


def validate_raw(data) -> bool:
    """Whether ``data`` is a well formed snappy raw stream; nothing is decompressed."""
    return SnappyDecompressor().validate(data)


def compress_raw_into(input, output) -> int:
    """Compress raw format directly into an output buffer"""
    return SnappyCompressor().compress(input, output)


def decompress_raw_into(input, output) -> int:
    """Decompress raw format directly into an output buffer"""
    return SnappyDecompressor().decompress(input, output)


def compress_raw(data) -> bytes:
    """
    Snappy compression raw.

    Python Example
    --------------
    ```python
    cramffi.snappy.compress_raw(b'some bytes here')
    ```
    """
    src = as_range(data)
    out = bytearray(SnappyNative.max_compressed_length(len(src)))
    n = compress_raw_into(src, out)
    return bytes(memoryview(out)[:n])


def decompress_raw(data) -> bytes:
    """
    Snappy decompression, raw. The output length is read from the stream header.

    Python Example
    --------------
    ```python
    cramffi.snappy.decompress_raw(compressed_raw_bytes)
    ```
    """
    src = as_range(data)
    decompressor = SnappyDecompressor()
    out = bytearray(decompressor.decompressed_length(src))
    n = decompressor.decompress(src, out)
    return bytes(memoryview(out)[:n])
