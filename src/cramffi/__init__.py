"""
Compression through the native lz4, snappy and zstd libraries, bound with cffi.

```python
import cramffi

compressed = cramffi.zstd.compress(b"bytes")
cramffi.zstd.decompress(compressed)
b'bytes'
```
"""

import importlib
import logging
from typing import Union

from . import lz4, snappy, zstd
from ._base import Algorithm, Compressor, Decompressor
from ._buffer import ByteRange, DirectBuffer
from ._config import LoaderConfig
from ._errors import (
    BufferTooSmall,
    CramffiError,
    LibraryLoadError,
    MalformedInput,
    NativeCallFailed,
    SymbolResolutionError,
    UnsupportedBufferKind,
)
from ._loader import library_file_name, load_library, platform_identifier

__version__ = "0.1.0"

__all__ = [
    "Algorithm",
    "BufferTooSmall",
    "ByteRange",
    "Compressor",
    "CramffiError",
    "Decompressor",
    "DirectBuffer",
    "LibraryLoadError",
    "LoaderConfig",
    "MalformedInput",
    "NativeCallFailed",
    "SymbolResolutionError",
    "UnsupportedBufferKind",
    "is_available",
    "library_file_name",
    "load_library",
    "lz4",
    "platform_identifier",
    "snappy",
    "zstd",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())


def is_available(algorithm: Union[Algorithm, str]) -> bool:
    """
    Whether the native library for ``algorithm`` loads and exposes every entry
    point these bindings use.
    """
    algorithm = Algorithm(algorithm)
    adapter = importlib.import_module(f"cramffi._{algorithm.value}")
    try:
        adapter.bindings()
    except (LibraryLoadError, SymbolResolutionError):
        return False
    return True
