"""
zstd compression through the native ``libzstd``.

Context ownership
-----------------
:class:`ZstdCompressor` and :class:`ZstdDecompressor` create their native
context with the instance and free it on :meth:`close` (or leaving a ``with``
block); such an instance is not thread-safe. Pass ``reuse_context=False`` to
create and free a context inside every call instead, which lets one instance
be shared between threads at the cost of per-call setup.

Example
-------
```python
>>> from cramffi import zstd
>>> zstd.compress(b'some bytes here', level=6)  # level defaults to 3
>>> with zstd.Compressor(level=19) as compressor:
...     n = compressor.compress(data, output)
```
"""

from typing import Optional

from . import _base
from ._buffer import as_range
from ._zstd import DEFAULT_COMPRESSION_LEVEL, ZstdNative

__all__ = [
    "DEFAULT_COMPRESSION_LEVEL",
    "Compressor",
    "Decompressor",
    "ZstdCompressor",
    "ZstdDecompressor",
    "compress",
    "compress_into",
    "decompress",
    "decompress_into",
    "decompressed_len",
    "max_compressed_len",
]


class _ContextOwner:
    _context = None

    def close(self) -> None:
        """Release the native context owned by this instance, if any."""
        if self._context is not None:
            self._context.release()

    @property
    def closed(self) -> bool:
        return self._context is not None and self._context.released

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class ZstdCompressor(_ContextOwner, _base.Compressor):
    algorithm = _base.Algorithm.ZSTD

    def __init__(self, level: Optional[int] = None, reuse_context: bool = True) -> None:
        self._native = ZstdNative()
        level = DEFAULT_COMPRESSION_LEVEL if level is None else level
        if not self._native.min_level <= level <= self._native.max_level:
            raise ValueError(
                f"compression level {level} outside "
                f"[{self._native.min_level}, {self._native.max_level}]"
            )
        self.level = level
        self._context = self._native.compression_context() if reuse_context else None

    def max_compressed_length(self, uncompressed_size: int) -> int:
        return self._native.max_compressed_length(_base.check_size(uncompressed_size))

    def compress(self, input, output) -> int:
        src = as_range(input)
        dst = as_range(output, writable=True)
        if self._context is None:
            with self._native.scoped_compression_context() as context:
                return self._native.compress(context.handle, src, dst, self.level)
        return self._native.compress(self._context.handle, src, dst, self.level)


class ZstdDecompressor(_ContextOwner, _base.Decompressor):
    algorithm = _base.Algorithm.ZSTD
    supports_probe = True

    def __init__(self, reuse_context: bool = True) -> None:
        self._native = ZstdNative()
        self._context = self._native.decompression_context() if reuse_context else None

    def decompress(self, input, output) -> int:
        src = as_range(input)
        dst = as_range(output, writable=True)
        if self._context is None:
            with self._native.scoped_decompression_context() as context:
                return self._native.decompress(context.handle, src, dst)
        return self._native.decompress(self._context.handle, src, dst)

    def decompressed_length(self, input) -> Optional[int]:
        """
        Total content size of every frame, or ``None`` when a frame does not
        record it. Raises ``MalformedInput`` for an invalid frame.
        """
        return self._native.decompressed_length(as_range(input))

    def validate(self, input) -> bool:
        return self._native.validate(as_range(input))


Compressor = ZstdCompressor
Decompressor = ZstdDecompressor


def max_compressed_len(data) -> int:
    """Worst case compressed size of ``data``; the size to pass to `compress_into`"""
    return ZstdNative().max_compressed_length(len(as_range(data)))


def decompressed_len(data) -> Optional[int]:
    """Decompressed size recorded in the frame headers, ``None`` if not recorded"""
    return ZstdNative().decompressed_length(as_range(data))


def compress_into(input, output, level: Optional[int] = None) -> int:
    """
    Compress directly into an output buffer
    """
    with ZstdCompressor(level=level) as compressor:
        return compressor.compress(input, output)


def decompress_into(input, output) -> int:
    """
    Decompress directly into an output buffer
    """
    with ZstdDecompressor() as decompressor:
        return decompressor.decompress(input, output)


def compress(data, level: Optional[int] = None) -> bytes:
    """
    zstd compression.

    Example
    -------
    ```python
    >>> cramffi.zstd.compress(b'some bytes here', level=6)
    ```
    """
    src = as_range(data)
    with ZstdCompressor(level=level) as compressor:
        out = bytearray(compressor.max_compressed_length(len(src)))
        n = compressor.compress(src, out)
    return bytes(memoryview(out)[:n])


def decompress(data, output_len: Optional[int] = None) -> bytes:
    """
    zstd decompression. ``output_len`` is only required when the frame does not
    record its content size.

    Example
    -------
    ```python
    >>> cramffi.zstd.decompress(compressed_bytes, output_len=Optional[int])
    ```
    """
    src = as_range(data)
    with ZstdDecompressor() as decompressor:
        if output_len is None:
            output_len = decompressor.decompressed_length(src)
            if output_len is None:
                raise ValueError("frame does not record its content size, pass output_len")
        out = bytearray(output_len)
        n = decompressor.decompress(src, out)
    return bytes(memoryview(out)[:n])