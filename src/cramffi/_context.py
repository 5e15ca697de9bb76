"""
Lifetime of opaque native handles (ie. zstd compression contexts).

Every handle is released exactly once: explicitly through ``release()`` /
``with``, or by the finalizer if the owner is dropped first.
"""

import contextlib
import logging
import weakref
from typing import Any, Callable, Iterator

from ._errors import NativeCallFailed
from ._ffi import ffi

__all__ = ["NativeContext", "scoped_context"]

logger = logging.getLogger(__name__)


def _free(kind: str, free: Callable[[Any], Any], handle: Any) -> None:
    free(handle)
    logger.debug("Released native %s %s", kind, handle)


class NativeContext:
    """
    Exclusively owned native handle created by ``create()`` and freed by ``free(handle)``.

    Not safe for concurrent use; callers serialize access or keep one per thread.
    """

    def __init__(self, kind: str, create: Callable[[], Any], free: Callable[[Any], Any]) -> None:
        handle = create()
        if handle == ffi.NULL:
            raise NativeCallFailed(f"Failed to create native {kind}")
        logger.debug("Created native %s %s", kind, handle)
        self.kind = kind
        self._handle = handle
        self._finalizer = weakref.finalize(self, _free, kind, free, handle)

    @property
    def handle(self) -> Any:
        if not self._finalizer.alive:
            raise ValueError(f"Native {self.kind} used after release")
        return self._handle

    @property
    def released(self) -> bool:
        return not self._finalizer.alive

    def release(self) -> None:
        """Free the handle; further calls are no-ops."""
        self._finalizer()

    def __enter__(self) -> "NativeContext":
        return self

    def __exit__(self, *exc) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"NativeContext<{self.kind}, {state}>"


@contextlib.contextmanager
def scoped_context(
    kind: str, create: Callable[[], Any], free: Callable[[Any], Any]
) -> Iterator[NativeContext]:
    """A context owned by one invocation, released on every exit path."""
    context = NativeContext(kind, create, free)
    try:
        yield context
    finally:
        context.release()
