"""arduino-pkg - Arduino library and core package manager.

Installs libraries by name or from local archives into a data directory,
keeps a registry of installed libraries and cores, and resolves metadata
for libraries that are not installed.
"""

__version__ = "0.1.0"

from arduino_pkg.config import DataLayout, Settings, get_data_dir  # noqa: E402
from arduino_pkg.manager import OperationResult, PackageManager  # noqa: E402
from arduino_pkg.registry import PackageRegistry  # noqa: E402

__all__ = [
    "__version__",
    "DataLayout",
    "Settings",
    "get_data_dir",
    "OperationResult",
    "PackageManager",
    "PackageRegistry",
]
