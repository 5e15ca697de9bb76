import os
import platform

import pytest

# Without bundled libraries, test against whatever the host has installed
os.environ.setdefault("CRAMFFI_USE_SYSTEM_LIBRARY", "1")

import cramffi  # noqa: E402


def pytest_configure(config):
    config.addinivalue_line("markers", "skip_pypy: skip this test on PyPy")
    config.addinivalue_line(
        "markers", "requires_library(name): skip unless the named native library loads"
    )


def pytest_runtest_setup(item):
    if "skip_pypy" in item.keywords and platform.python_implementation() == "PyPy":
        pytest.skip("skipped on PyPy")

    for marker in item.iter_markers("requires_library"):
        name = marker.args[0]
        if not cramffi.is_available(name):
            pytest.skip(f"native {name} library not available")
