"""
Bindings to the C API of ``libsnappy`` (``snappy-c.h``).
"""

from dataclasses import dataclass

from ._binder import BoundFunction, bind, declare, once
from ._buffer import ByteRange, view
from ._errors import BufferTooSmall, MalformedInput, NativeCallFailed
from ._ffi import ffi
from ._loader import load_library

__all__ = [
    "SNAPPY_BUFFER_TOO_SMALL",
    "SNAPPY_INVALID_INPUT",
    "SNAPPY_OK",
    "SnappyNative",
    "bindings",
]

SNAPPY_OK = 0
SNAPPY_INVALID_INPUT = 1
SNAPPY_BUFFER_TOO_SMALL = 2


@dataclass(frozen=True)
class SnappyBindings:
    max_compressed_length: BoundFunction
    compress: BoundFunction
    uncompress: BoundFunction
    uncompressed_length: BoundFunction
    validate: BoundFunction


@once
def bindings() -> SnappyBindings:
    library = load_library("snappy")
    declare(
        "typedef enum { SNAPPY_OK = 0, SNAPPY_INVALID_INPUT = 1,"
        " SNAPPY_BUFFER_TOO_SMALL = 2 } snappy_status;"
    )
    return SnappyBindings(
        max_compressed_length=bind(
            library,
            "snappy_max_compressed_length",
            "size_t snappy_max_compressed_length(size_t source_length);",
        ),
        compress=bind(
            library,
            "snappy_compress",
            "snappy_status snappy_compress(const char *input, size_t input_length,"
            " char *compressed, size_t *compressed_length);",
        ),
        uncompress=bind(
            library,
            "snappy_uncompress",
            "snappy_status snappy_uncompress(const char *compressed, size_t compressed_length,"
            " char *uncompressed, size_t *uncompressed_length);",
        ),
        uncompressed_length=bind(
            library,
            "snappy_uncompressed_length",
            "snappy_status snappy_uncompressed_length(const char *compressed,"
            " size_t compressed_length, size_t *result);",
        ),
        validate=bind(
            library,
            "snappy_validate_compressed_buffer",
            "snappy_status snappy_validate_compressed_buffer(const char *compressed,"
            " size_t compressed_length);",
        ),
    )


class SnappyNative:
    """
    Snappy raw codec. Output lengths travel through one ``size_t`` cell owned by
    the instance, so an instance must not be used from several threads at once.
    """

    def __init__(self) -> None:
        self._native = bindings()
        self._length = ffi.new("size_t *")

    @staticmethod
    def max_compressed_length(uncompressed_size: int) -> int:
        return bindings().max_compressed_length(uncompressed_size)

    def compress(self, input: ByteRange, output: ByteRange) -> int:
        with view(input) as (src, src_len), view(output, writable=True) as (dst, dst_cap):
            self._length[0] = dst_cap
            status = self._native.compress(src, src_len, dst, self._length)

        if status == SNAPPY_BUFFER_TOO_SMALL:
            raise BufferTooSmall(
                f"Output buffer too small: {dst_cap} bytes, snappy requires "
                f"{self.max_compressed_length(src_len)} for {src_len} bytes of input"
            )
        if status != SNAPPY_OK:
            raise NativeCallFailed(
                f"Unknown error occurred during compression: result={status}", code=status
            )
        return self._length[0]

    def decompress(self, input: ByteRange, output: ByteRange) -> int:
        with view(input) as (src, src_len), view(output, writable=True) as (dst, dst_cap):
            self._length[0] = dst_cap
            status = self._native.uncompress(src, src_len, dst, self._length)

        if status == SNAPPY_INVALID_INPUT:
            raise MalformedInput("Invalid input")
        if status == SNAPPY_BUFFER_TOO_SMALL:
            raise BufferTooSmall(f"Output buffer too small: {dst_cap} bytes")
        if status != SNAPPY_OK:
            raise NativeCallFailed(
                f"Unknown error occurred during decompression: result={status}", code=status
            )
        return self._length[0]

    def decompressed_length(self, input: ByteRange) -> int:
        with view(input) as (src, src_len):
            self._length[0] = 0
            status = self._native.uncompressed_length(src, src_len, self._length)

        if status == SNAPPY_INVALID_INPUT:
            raise MalformedInput("Invalid input")
        if status != SNAPPY_OK:
            raise NativeCallFailed(
                f"Unknown error occurred during decompressed length calculation: result={status}",
                code=status,
            )
        return self._length[0]

    def validate(self, input: ByteRange) -> bool:
        with view(input) as (src, src_len):
            return self._native.validate(src, src_len) == SNAPPY_OK
