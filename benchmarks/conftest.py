import os

import pytest

os.environ.setdefault("CRAMFFI_USE_SYSTEM_LIBRARY", "1")

import cramffi  # noqa: E402


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "requires_library(name): skip unless the named native library loads"
    )


def pytest_runtest_setup(item):
    for marker in item.iter_markers("requires_library"):
        if not cramffi.is_available(marker.args[0]):
            pytest.skip(f"native {marker.args[0]} library not available")
