"""
Bindings to the LZ4 block API of ``liblz4``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ._binder import BoundFunction, bind, once
from ._buffer import ByteRange, view
from ._errors import BufferTooSmall, MalformedInput, NativeCallFailed
from ._ffi import ffi
from ._loader import load_library

__all__ = ["DEFAULT_ACCELERATION", "LZ4_MAX_INPUT_SIZE", "Lz4Native", "bindings", "block_length"]

logger = logging.getLogger(__name__)

LZ4_MAX_INPUT_SIZE = 0x7E000000
INT_MAX = 2**31 - 1
DEFAULT_ACCELERATION = 1

# Matches shorter than this can't be encoded; the token stores length - MIN_MATCH
MIN_MATCH = 4


@dataclass(frozen=True)
class Lz4Bindings:
    compress_bound: BoundFunction
    compress: BoundFunction
    decompress: BoundFunction
    version: str
    state_size: int


@once
def bindings() -> Lz4Bindings:
    library = load_library("lz4")
    sizeof_state = bind(library, "LZ4_sizeofState", "int LZ4_sizeofState(void);")
    version_string = bind(
        library, "LZ4_versionString", "const char *LZ4_versionString(void);"
    )
    return Lz4Bindings(
        compress_bound=bind(
            library, "LZ4_compressBound", "int LZ4_compressBound(int inputSize);"
        ),
        compress=bind(
            library,
            "LZ4_compress_fast_extState",
            "int LZ4_compress_fast_extState(void *state, const char *src, char *dst,"
            " int srcSize, int dstCapacity, int acceleration);",
        ),
        decompress=bind(
            library,
            "LZ4_decompress_safe",
            "int LZ4_decompress_safe(const char *src, char *dst,"
            " int compressedSize, int dstCapacity);",
        ),
        version=ffi.string(version_string()).decode(),
        state_size=sizeof_state(),
    )


def block_length(data) -> Optional[int]:
    """
    Walk the sequence headers of an LZ4 block and return the decompressed size it
    describes, or ``None`` if the headers are inconsistent. Nothing is decompressed.
    """
    data = memoryview(data)
    size = len(data)
    pos = 0
    produced = 0
    while True:
        if pos >= size:
            return None
        token = data[pos]
        pos += 1

        literals = token >> 4
        if literals == 15:
            while True:
                if pos >= size:
                    return None
                extra = data[pos]
                pos += 1
                literals += extra
                if extra != 255:
                    break
        if pos + literals > size:
            return None
        pos += literals
        produced += literals

        # Last sequence carries literals only
        if pos == size:
            return produced

        if pos + 2 > size:
            return None
        offset = data[pos] | (data[pos + 1] << 8)
        pos += 2
        if offset == 0 or offset > produced:
            return None

        match = token & 0x0F
        if match == 15:
            while True:
                if pos >= size:
                    return None
                extra = data[pos]
                pos += 1
                match += extra
                if extra != 255:
                    break
        produced += match + MIN_MATCH


def _check_input_size(length: int) -> None:
    if length > LZ4_MAX_INPUT_SIZE:
        raise ValueError(f"input of {length} bytes exceeds LZ4 maximum of {LZ4_MAX_INPUT_SIZE}")


class Lz4Native:
    """
    LZ4 block codec over one reusable working state.

    The state is shared by every ``compress`` call on this instance, so an
    instance must not be used from several threads at once.
    """

    def __init__(self, acceleration: int = DEFAULT_ACCELERATION) -> None:
        if acceleration < 1:
            raise ValueError(f"acceleration must be >= 1, got {acceleration}")
        self._native = bindings()
        self.acceleration = acceleration
        # long long[] keeps the state 8-byte aligned
        self._state = ffi.new("long long[]", (self._native.state_size + 7) // 8)

    @staticmethod
    def max_compressed_length(uncompressed_size: int) -> int:
        _check_input_size(uncompressed_size)
        return bindings().compress_bound(uncompressed_size)

    def compress(self, input: ByteRange, output: ByteRange) -> int:
        _check_input_size(input.length)
        with view(input) as (src, src_len), view(output, writable=True) as (dst, dst_cap):
            dst_cap = min(dst_cap, INT_MAX)
            result = self._native.compress(
                self._state, src, dst, src_len, dst_cap, self.acceleration
            )

        # 0 is failure, and no non-empty output is ever zero bytes long; disallow negatives too
        if result <= 0:
            if dst_cap < self.max_compressed_length(src_len):
                raise BufferTooSmall(
                    f"Output buffer too small: {dst_cap} bytes for {src_len} bytes of input"
                )
            raise NativeCallFailed("Unknown error occurred during compression", code=result)
        return result

    def decompress(self, input: ByteRange, output: ByteRange) -> int:
        if input.length > INT_MAX:
            raise ValueError(f"compressed block of {input.length} bytes exceeds {INT_MAX}")
        with view(input) as (src, src_len), view(output, writable=True) as (dst, dst_cap):
            dst_cap = min(dst_cap, INT_MAX)
            result = self._native.decompress(src, dst, src_len, dst_cap)
            if result < 0:
                expected = block_length(ffi.buffer(src, src_len))

        if result < 0:
            logger.debug("LZ4_decompress_safe failed with %d", result)
            if expected is not None and expected > dst_cap:
                raise BufferTooSmall(
                    f"Output buffer too small: {dst_cap} bytes, block decompresses to {expected}"
                )
            raise MalformedInput(f"Malformed LZ4 block: result={result}")
        return result
