"""
The capability interface shared by every codec, and the algorithm registry.
"""

import enum
import importlib
from abc import ABC, abstractmethod
from typing import Optional

__all__ = ["Algorithm", "Compressor", "Decompressor", "check_size"]


def check_size(uncompressed_size: int) -> int:
    if uncompressed_size < 0:
        raise ValueError(f"uncompressed size must be non-negative, got {uncompressed_size}")
    return uncompressed_size


class Compressor(ABC):
    algorithm: "Algorithm"

    @abstractmethod
    def max_compressed_length(self, uncompressed_size: int) -> int:
        """
        Upper bound of the compressed size of ``uncompressed_size`` bytes; a
        destination of this size never raises ``BufferTooSmall``.
        """

    @abstractmethod
    def compress(self, input, output) -> int:
        """
        Compress ``input`` into ``output``, returning the number of bytes written.
        Both may be a :class:`ByteRange` or any contiguous buffer.
        """


class Decompressor(ABC):
    algorithm: "Algorithm"

    #: Whether :meth:`decompressed_length` and :meth:`validate` are available
    supports_probe = False

    @abstractmethod
    def decompress(self, input, output) -> int:
        """
        Decompress ``input`` into ``output``, returning the number of bytes written.
        """

    def decompressed_length(self, input) -> Optional[int]:
        """
        Original length read from the compressed header, or ``None`` when the
        stream does not record it.
        """
        raise NotImplementedError(f"{type(self).__name__} cannot probe decompressed length")

    def validate(self, input) -> bool:
        """Check ``input`` is well formed without decompressing it."""
        raise NotImplementedError(f"{type(self).__name__} cannot validate input")


class Algorithm(enum.Enum):
    LZ4 = "lz4"
    SNAPPY = "snappy"
    ZSTD = "zstd"

    @property
    def library_name(self) -> str:
        return self.value

    def _module(self):
        return importlib.import_module(f"cramffi.{self.value}")

    def compressor(self, **kwargs) -> Compressor:
        return self._module().Compressor(**kwargs)

    def decompressor(self, **kwargs) -> Decompressor:
        return self._module().Decompressor(**kwargs)

    def __str__(self) -> str:
        return self.value
