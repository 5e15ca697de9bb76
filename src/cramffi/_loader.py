"""
Locate, materialize and load the native compression libraries.

Libraries are bundled as package data under ``cramffi/_native/<platform>/``,
where ``<platform>`` is :func:`platform_identifier`. They are loaded at most
once per process and never unloaded.
"""

import atexit
import contextlib
import ctypes.util
import logging
import os
import platform
import sys
import threading
from importlib import resources
from typing import Dict, Optional

from ._config import LoaderConfig
from ._errors import LibraryLoadError
from ._ffi import ffi

__all__ = [
    "NativeLibrary",
    "NativeLoader",
    "library_file_name",
    "load_library",
    "platform_identifier",
]

logger = logging.getLogger(__name__)

RESOURCE_DIR = "_native"

# Extracted copies of zipped resources stay on disk until interpreter exit
_extracted = contextlib.ExitStack()
_extracted_lock = threading.Lock()
atexit.register(_extracted.close)

_platform: Optional[str] = None


def platform_identifier() -> str:
    """
    Name of the running platform, ie. ``Linux-x86_64`` or ``Darwin-arm64``.
    """
    global _platform
    if _platform is None:
        _platform = f"{platform.system()}-{platform.machine()}".replace(" ", "_")
    return _platform


def library_file_name(name: str) -> str:
    """
    Host file name for a library, ie. ``libzstd.so``, ``libzstd.dylib`` or ``zstd.dll``.
    """
    if sys.platform == "win32":
        return f"{name}.dll"
    if sys.platform == "darwin":
        return f"lib{name}.dylib"
    return f"lib{name}.so"


class NativeLibrary:
    """A loaded shared library; bindings are cached on it by the binder."""

    def __init__(self, name: str, path: Optional[str], source: str = "explicit"):
        self.name = name
        self.path = path
        self.source = source
        self.lib = ffi.dlopen(path)
        self.bindings: Dict[str, object] = {}
        self.lock = threading.Lock()

    def __repr__(self) -> str:
        return f"NativeLibrary<name={self.name}, path={self.path}, source={self.source}>"


class NativeLoader:
    """
    Resolves library names to :class:`NativeLibrary` instances, once per name.

    Failures are cached as well: every later call for that name raises a
    :class:`LibraryLoadError` with the same message.
    """

    def __init__(self, config: Optional[LoaderConfig] = None, package: str = "cramffi"):
        self.config = LoaderConfig.from_env() if config is None else config
        self.package = package
        self._libraries: Dict[str, NativeLibrary] = {}
        self._failures: Dict[str, LibraryLoadError] = {}
        self._lock = threading.Lock()

    def load(self, name: str) -> NativeLibrary:
        library = self._libraries.get(name)
        if library is not None:
            return library

        with self._lock:
            library = self._libraries.get(name)
            if library is not None:
                return library
            failure = self._failures.get(name)
            if failure is not None:
                raise LibraryLoadError(str(failure)) from failure

            try:
                library = self._load(name)
            except LibraryLoadError as e:
                logger.error("Unable to load native library %r: %s", name, e)
                self._failures[name] = e
                raise

            logger.info("Loaded native library %r from %s (%s)", name, library.path, library.source)
            self._libraries[name] = library
            return library

    def _load(self, name: str) -> NativeLibrary:
        override = self.config.override_for(name)
        if override is not None:
            if not os.path.isfile(override):
                raise LibraryLoadError(f"Library not found: {override}")
            return self._open(name, override, "override")

        file_name = library_file_name(name)
        for directory in self.config.search_paths:
            for candidate in (
                os.path.join(directory, platform_identifier(), file_name),
                os.path.join(directory, file_name),
            ):
                if os.path.isfile(candidate):
                    return self._open(name, candidate, "search path")

        resource = self._bundled_resource(file_name)
        if resource is not None:
            return self._open(name, self._materialize(name, resource), "bundled")

        if self.config.use_system_library:
            system_name = ctypes.util.find_library(name)
            if system_name is not None:
                return self._open(name, system_name, "system")
            raise LibraryLoadError(
                f"Library not found: {self._resource_path(file_name)} and no system {name!r} library"
            )

        raise LibraryLoadError(f"Library not found: {self._resource_path(file_name)}")

    def _resource_path(self, file_name: str) -> str:
        return f"{self.package}/{RESOURCE_DIR}/{platform_identifier()}/{file_name}"

    def _bundled_resource(self, file_name: str):
        try:
            resource = (
                resources.files(self.package)
                .joinpath(RESOURCE_DIR)
                .joinpath(platform_identifier())
                .joinpath(file_name)
            )
        except ModuleNotFoundError:
            return None
        return resource if resource.is_file() else None

    @staticmethod
    def _materialize(name: str, resource) -> str:
        try:
            with _extracted_lock:
                path = _extracted.enter_context(resources.as_file(resource))
        except OSError as e:
            raise LibraryLoadError(f"Failed to extract library {name!r}: {e}") from e
        return str(path)

    @staticmethod
    def _open(name: str, path: str, source: str) -> NativeLibrary:
        try:
            return NativeLibrary(name, path, source)
        except OSError as e:
            raise LibraryLoadError(f"Failed to load library {path}: {e}") from e


_default_loader: Optional[NativeLoader] = None
_default_loader_lock = threading.Lock()


def default_loader() -> NativeLoader:
    global _default_loader
    if _default_loader is None:
        with _default_loader_lock:
            if _default_loader is None:
                _default_loader = NativeLoader()
    return _default_loader


def load_library(name: str) -> NativeLibrary:
    """
    Load ``name`` through the process-wide loader, idempotent per name.
    """
    return default_loader().load(name)
