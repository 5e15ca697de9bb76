"""
Resolve named entry points in a loaded library into typed callables.

Every native function is bound from exactly one call site, with its full C
prototype, so argument and return types are fixed by construction.
"""

import copy
import functools
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from ._errors import SymbolResolutionError
from ._ffi import cdef
from ._loader import NativeLibrary

__all__ = ["BoundFunction", "bind", "declare", "once"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BoundFunction:
    name: str
    signature: str
    function: Any

    def __call__(self, *args):
        return self.function(*args)

    def __repr__(self) -> str:
        return f"BoundFunction<{self.signature}>"


def declare(source: str) -> None:
    """Declare shared C types, ie. opaque struct typedefs, used by later prototypes."""
    cdef(source)


def bind(library: NativeLibrary, name: str, signature: str) -> BoundFunction:
    """
    Bind ``name`` in ``library`` using the C prototype ``signature``.

    Raises
    ------
    ValueError
        ``signature`` does not declare ``name``.
    SymbolResolutionError
        The library does not export ``name``.
    """
    if not re.search(rf"\b{re.escape(name)}\s*\(", signature):
        raise ValueError(f"Signature {signature!r} does not declare {name!r}")

    bound = library.bindings.get(name)
    if bound is not None:
        return bound

    with library.lock:
        bound = library.bindings.get(name)
        if bound is not None:
            return bound

        cdef(signature)
        try:
            function = getattr(library.lib, name)
        except AttributeError as e:
            raise SymbolResolutionError(
                f"unresolved symbol: {name} in {library.name} ({library.path})"
            ) from e

        bound = BoundFunction(name, signature, function)
        library.bindings[name] = bound
        logger.debug("Bound %s from %s", name, library.name)
        return bound


def once(fn: Callable[[], T]) -> Callable[[], T]:
    """
    Run ``fn`` at most once; every caller observes the same result, or the same
    failure re-raised.
    """
    lock = threading.Lock()
    state = {}

    @functools.wraps(fn)
    def wrapper() -> T:
        if "result" not in state:
            with lock:
                if "result" not in state and "error" not in state:
                    try:
                        state["result"] = fn()
                    except Exception as e:
                        state["error"] = e
                        raise
        if "error" in state:
            error = state["error"]
            # A fresh copy keeps attributes such as NativeCallFailed.code
            raise copy.copy(error) from error
        return state["result"]

    return wrapper
