"""Pytest configuration and fixtures for arduino-pkg tests.

Python 3.13 changed how stdout/stderr are handled, which can cause "I/O
operation on closed file" errors during teardown when a test swaps the
output stream used by ``arduino_pkg.output``. See
https://github.com/pytest-dev/pytest/issues/11439
"""

import sys
import warnings
from pathlib import Path

import pytest

from arduino_pkg import output
from arduino_pkg.config import DataLayout
from arduino_pkg.registry import PackageRegistry

# Suppress ResourceWarnings from file cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr and the output stream are restored after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__
    output.init_timer(sys.stdout)
    output.set_verbose(True)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Resolved data directory root inside tmp_path."""
    return (tmp_path / "arduino_data").resolve()


@pytest.fixture
def layout(data_dir: Path) -> DataLayout:
    layout = DataLayout(data_dir)
    layout.ensure()
    return layout


@pytest.fixture
def registry(layout: DataLayout) -> PackageRegistry:
    return PackageRegistry(layout)
