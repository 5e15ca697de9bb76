"""
Error taxonomy shared by every codec.

Each class also derives from the closest builtin so callers which only know
about ``OSError`` or ``ValueError`` still catch what they expect.
"""

from typing import Optional

__all__ = [
    "CramffiError",
    "LibraryLoadError",
    "SymbolResolutionError",
    "UnsupportedBufferKind",
    "BufferTooSmall",
    "MalformedInput",
    "NativeCallFailed",
]


class CramffiError(Exception):
    """
    Base class of every error raised by cramffi.
    """


class LibraryLoadError(CramffiError, OSError):
    """
    The native library for this platform could not be found, extracted or loaded.
    The algorithm is unusable for the rest of the process.
    """


class SymbolResolutionError(CramffiError, ImportError):
    """
    A required entry point is missing from the loaded native library, meaning the
    library version does not match these bindings.
    """


class UnsupportedBufferKind(CramffiError, TypeError):
    """
    The object can't be addressed directly by native code; ie. it does not
    implement the buffer protocol, is not contiguous, or is read-only where a
    destination is required.
    """


class BufferTooSmall(CramffiError, ValueError):
    """
    Destination capacity is insufficient. Resize (see ``max_compressed_length``)
    and retry; nothing is resized internally.
    """


class MalformedInput(CramffiError, ValueError):
    """
    Source data is not a valid compressed stream for this algorithm.
    """


class NativeCallFailed(CramffiError, RuntimeError):
    """
    Any other native failure. ``code`` holds the raw native status and
    ``diagnostic`` the library's own description when it provides one.
    """

    def __init__(
        self, message: str, code: Optional[int] = None, diagnostic: Optional[str] = None
    ) -> None:
        if diagnostic:
            message = f"{message}: {diagnostic}"
        super().__init__(message)
        self.code = code
        self.diagnostic = diagnostic
