"""
Loader configuration, read from ``CRAMFFI_*`` environment variables.

``CRAMFFI_LIBRARY_PATH``
    ``os.pathsep`` separated directories searched before the bundled libraries.
``CRAMFFI_<NAME>_LIBRARY``
    Explicit file for one library, ie. ``CRAMFFI_ZSTD_LIBRARY=/opt/lib/libzstd.so``.
``CRAMFFI_USE_SYSTEM_LIBRARY``
    Opt in to libraries installed on the system when no bundled copy exists.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

__all__ = ["ENV_VAR_PREFIX", "LoaderConfig"]

ENV_VAR_PREFIX = "CRAMFFI_"

_TRUTHY = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class LoaderConfig:
    search_paths: Tuple[str, ...] = ()
    library_overrides: Mapping[str, str] = field(default_factory=dict)
    use_system_library: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LoaderConfig":
        env = os.environ if environ is None else environ

        raw_paths = env.get(f"{ENV_VAR_PREFIX}LIBRARY_PATH", "")
        search_paths = tuple(p for p in raw_paths.split(os.pathsep) if p)

        overrides = {}
        for key, value in env.items():
            if (
                key.startswith(ENV_VAR_PREFIX)
                and key.endswith("_LIBRARY")
                and key != f"{ENV_VAR_PREFIX}USE_SYSTEM_LIBRARY"
                and value
            ):
                name = key[len(ENV_VAR_PREFIX) : -len("_LIBRARY")].lower()
                if name:
                    overrides[name] = value

        use_system = (
            env.get(f"{ENV_VAR_PREFIX}USE_SYSTEM_LIBRARY", "").strip().lower() in _TRUTHY
        )
        return cls(search_paths, overrides, use_system)

    def override_for(self, name: str) -> Optional[str]:
        return self.library_overrides.get(name.lower())
