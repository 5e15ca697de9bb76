"""
Bindings to the simple and explicit-context APIs of ``libzstd``, plus the
streaming decoder used to validate input without materializing its output.

Every ``size_t`` result goes through ``ZSTD_isError`` before it is treated as a
byte count; ``ZSTD_getErrorCode`` picks the error category and
``ZSTD_getErrorName`` only decorates the message.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ._binder import BoundFunction, bind, declare, once
from ._buffer import ByteRange, view
from ._context import NativeContext, scoped_context
from ._errors import BufferTooSmall, MalformedInput, NativeCallFailed
from ._ffi import ffi
from ._loader import load_library

__all__ = [
    "DEFAULT_COMPRESSION_LEVEL",
    "ZSTD_CONTENTSIZE_ERROR",
    "ZSTD_CONTENTSIZE_UNKNOWN",
    "ZstdNative",
    "bindings",
]

logger = logging.getLogger(__name__)

# ZSTD_CLEVEL_DEFAULT; ZSTD_defaultCLevel() only exists from zstd 1.5.0
DEFAULT_COMPRESSION_LEVEL = 3

ZSTD_CONTENTSIZE_UNKNOWN = 2**64 - 1
ZSTD_CONTENTSIZE_ERROR = 2**64 - 2

# ZSTD_ErrorCode values (zstd_errors.h)
ZSTD_ERROR_PREFIX_UNKNOWN = 10
ZSTD_ERROR_VERSION_UNSUPPORTED = 12
ZSTD_ERROR_FRAME_PARAMETER_UNSUPPORTED = 14
ZSTD_ERROR_FRAME_PARAMETER_WINDOW_TOO_LARGE = 16
ZSTD_ERROR_CORRUPTION_DETECTED = 20
ZSTD_ERROR_CHECKSUM_WRONG = 22
ZSTD_ERROR_LITERALS_HEADER_WRONG = 24
ZSTD_ERROR_MEMORY_ALLOCATION = 64
ZSTD_ERROR_DST_SIZE_TOO_SMALL = 70
ZSTD_ERROR_SRC_SIZE_WRONG = 72

MALFORMED_INPUT_ERRORS = frozenset(
    (
        ZSTD_ERROR_PREFIX_UNKNOWN,
        ZSTD_ERROR_VERSION_UNSUPPORTED,
        ZSTD_ERROR_FRAME_PARAMETER_UNSUPPORTED,
        ZSTD_ERROR_FRAME_PARAMETER_WINDOW_TOO_LARGE,
        ZSTD_ERROR_CORRUPTION_DETECTED,
        ZSTD_ERROR_CHECKSUM_WRONG,
        ZSTD_ERROR_LITERALS_HEADER_WRONG,
        ZSTD_ERROR_SRC_SIZE_WRONG,
    )
)


@dataclass(frozen=True)
class ZstdBindings:
    compress_bound: BoundFunction
    create_cctx: BoundFunction
    free_cctx: BoundFunction
    compress_cctx: BoundFunction
    create_dctx: BoundFunction
    free_dctx: BoundFunction
    decompress_dctx: BoundFunction
    decompress_stream: BoundFunction
    stream_out_size: BoundFunction
    frame_content_size: BoundFunction
    find_frame_compressed_size: BoundFunction
    is_error: BoundFunction
    error_name: BoundFunction
    error_code: BoundFunction
    min_level: int
    max_level: int
    version: str


@once
def bindings() -> ZstdBindings:
    library = load_library("zstd")
    declare("typedef struct ZSTD_CCtx_s ZSTD_CCtx; typedef struct ZSTD_DCtx_s ZSTD_DCtx;")
    declare(
        "typedef struct ZSTD_inBuffer_s { const void *src; size_t size; size_t pos; } ZSTD_inBuffer;"
        " typedef struct ZSTD_outBuffer_s { void *dst; size_t size; size_t pos; } ZSTD_outBuffer;"
    )
    min_level = bind(library, "ZSTD_minCLevel", "int ZSTD_minCLevel(void);")
    max_level = bind(library, "ZSTD_maxCLevel", "int ZSTD_maxCLevel(void);")
    version = bind(library, "ZSTD_versionString", "const char *ZSTD_versionString(void);")
    return ZstdBindings(
        compress_bound=bind(
            library, "ZSTD_compressBound", "size_t ZSTD_compressBound(size_t srcSize);"
        ),
        create_cctx=bind(library, "ZSTD_createCCtx", "ZSTD_CCtx *ZSTD_createCCtx(void);"),
        free_cctx=bind(library, "ZSTD_freeCCtx", "size_t ZSTD_freeCCtx(ZSTD_CCtx *cctx);"),
        compress_cctx=bind(
            library,
            "ZSTD_compressCCtx",
            "size_t ZSTD_compressCCtx(ZSTD_CCtx *cctx, void *dst, size_t dstCapacity,"
            " const void *src, size_t srcSize, int compressionLevel);",
        ),
        create_dctx=bind(library, "ZSTD_createDCtx", "ZSTD_DCtx *ZSTD_createDCtx(void);"),
        free_dctx=bind(library, "ZSTD_freeDCtx", "size_t ZSTD_freeDCtx(ZSTD_DCtx *dctx);"),
        decompress_dctx=bind(
            library,
            "ZSTD_decompressDCtx",
            "size_t ZSTD_decompressDCtx(ZSTD_DCtx *dctx, void *dst, size_t dstCapacity,"
            " const void *src, size_t srcSize);",
        ),
        decompress_stream=bind(
            library,
            "ZSTD_decompressStream",
            "size_t ZSTD_decompressStream(ZSTD_DCtx *zds, ZSTD_outBuffer *output,"
            " ZSTD_inBuffer *input);",
        ),
        stream_out_size=bind(
            library, "ZSTD_DStreamOutSize", "size_t ZSTD_DStreamOutSize(void);"
        ),
        frame_content_size=bind(
            library,
            "ZSTD_getFrameContentSize",
            "unsigned long long ZSTD_getFrameContentSize(const void *src, size_t srcSize);",
        ),
        find_frame_compressed_size=bind(
            library,
            "ZSTD_findFrameCompressedSize",
            "size_t ZSTD_findFrameCompressedSize(const void *src, size_t srcSize);",
        ),
        is_error=bind(library, "ZSTD_isError", "unsigned ZSTD_isError(size_t code);"),
        error_name=bind(
            library, "ZSTD_getErrorName", "const char *ZSTD_getErrorName(size_t code);"
        ),
        error_code=bind(
            library, "ZSTD_getErrorCode", "int ZSTD_getErrorCode(size_t functionResult);"
        ),
        min_level=min_level(),
        max_level=max_level(),
        version=ffi.string(version()).decode(),
    )


class ZstdNative:
    """
    Zstd codec operations; contexts are supplied by the caller, see
    :meth:`compression_context` and :meth:`decompression_context`.
    """

    def __init__(self) -> None:
        self._native = bindings()

    @property
    def min_level(self) -> int:
        return self._native.min_level

    @property
    def max_level(self) -> int:
        return self._native.max_level

    def compression_context(self) -> NativeContext:
        return NativeContext("compression context", self._native.create_cctx, self._native.free_cctx)

    def decompression_context(self) -> NativeContext:
        return NativeContext(
            "decompression context", self._native.create_dctx, self._native.free_dctx
        )

    def scoped_compression_context(self):
        return scoped_context(
            "compression context", self._native.create_cctx, self._native.free_cctx
        )

    def scoped_decompression_context(self):
        return scoped_context(
            "decompression context", self._native.create_dctx, self._native.free_dctx
        )

    def is_error(self, code: int) -> bool:
        return self._native.is_error(code) != 0

    def error_name(self, code: int) -> str:
        return ffi.string(self._native.error_name(code)).decode()

    def _raise(self, operation: str, code: int, decoding: bool) -> None:
        error_code = self._native.error_code(code)
        name = self.error_name(code)
        logger.debug("zstd %s failed: %s (%d)", operation, name, error_code)
        if error_code == ZSTD_ERROR_DST_SIZE_TOO_SMALL:
            raise BufferTooSmall(f"Output buffer too small during {operation}: {name}")
        if decoding and error_code in MALFORMED_INPUT_ERRORS:
            raise MalformedInput(f"Malformed zstd input during {operation}: {name}")
        raise NativeCallFailed(
            f"Unknown error occurred during {operation}", code=error_code, diagnostic=name
        )

    def max_compressed_length(self, uncompressed_size: int) -> int:
        result = self._native.compress_bound(uncompressed_size)
        if self.is_error(result):
            self._raise("compression bound", result, decoding=False)
        return result

    def compress(self, context: Any, input: ByteRange, output: ByteRange, level: int) -> int:
        with view(input) as (src, src_len), view(output, writable=True) as (dst, dst_cap):
            result = self._native.compress_cctx(context, dst, dst_cap, src, src_len, level)
        if self.is_error(result):
            self._raise("compression", result, decoding=False)
        return result

    def decompress(self, context: Any, input: ByteRange, output: ByteRange) -> int:
        with view(input) as (src, src_len), view(output, writable=True) as (dst, dst_cap):
            result = self._native.decompress_dctx(context, dst, dst_cap, src, src_len)
        if self.is_error(result):
            self._raise("decompression", result, decoding=True)
        return result

    def decompressed_length(self, input: ByteRange) -> Optional[int]:
        """
        Sum of the content sizes of every frame in ``input``, since decompression
        decodes concatenated frames back to back. ``None`` when any frame does
        not record its size.
        """
        with view(input) as (src, src_len):
            total = 0
            position = 0
            while True:
                remaining = src_len - position
                content_size = self._native.frame_content_size(src + position, remaining)
                if content_size == ZSTD_CONTENTSIZE_UNKNOWN:
                    return None
                if content_size == ZSTD_CONTENTSIZE_ERROR:
                    raise MalformedInput("Invalid zstd frame header")
                frame_size = self._native.find_frame_compressed_size(src + position, remaining)
                if self.is_error(frame_size):
                    self._raise("decompressed length calculation", frame_size, decoding=True)
                total += content_size
                position += frame_size
                if position >= src_len:
                    return total

    def validate(self, input: ByteRange) -> bool:
        """
        Decode every frame into a bounded scratch buffer and discard the output;
        ``True`` iff decoding consumes the whole input without error.
        """
        if input.length == 0:
            return False
        scratch_size = self._native.stream_out_size()
        scratch = ffi.new("char[]", scratch_size)
        in_buffer = ffi.new("ZSTD_inBuffer *")
        out_buffer = ffi.new("ZSTD_outBuffer *")

        with self.scoped_decompression_context() as context, view(input) as (src, src_len):
            in_buffer.src = src
            in_buffer.size = src_len
            out_buffer.dst = scratch
            out_buffer.size = scratch_size
            while True:
                consumed = in_buffer.pos
                out_buffer.pos = 0
                result = self._native.decompress_stream(context.handle, out_buffer, in_buffer)
                if self.is_error(result):
                    if self._native.error_code(result) == ZSTD_ERROR_MEMORY_ALLOCATION:
                        self._raise("validation", result, decoding=True)
                    return False
                # 0 means the current frame is fully decoded and flushed
                if result == 0 and in_buffer.pos == src_len:
                    return True
                # No progress left to make: the last frame is truncated
                if in_buffer.pos == consumed and out_buffer.pos == 0:
                    return False
