"""
The single cffi (ABI mode) instance shared by every native library.

All declarations go through :func:`cdef` so concurrent first-use bindings
never interleave inside the cffi parser.
"""

import threading

from cffi import FFI

__all__ = ["ffi", "cdef"]

ffi = FFI()

_cdef_lock = threading.Lock()
_declared = set()


def cdef(source: str) -> None:
    """Declare C source once; repeated identical declarations are no-ops."""
    with _cdef_lock:
        if source in _declared:
            return
        ffi.cdef(source)
        _declared.add(source)
