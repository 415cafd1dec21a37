"""Data directory and runtime settings.

Resolution order for the data directory:
- Explicit directory passed by the caller (e.g. ``--data-dir``)
- ARDUINO_DATA_DIR environment variable
- First existing platform-conventional directory:
  ~/Library/Arduino15 (macOS), ~/.arduino15 (Linux),
  ~/AppData/Local/Arduino15 (Windows)
- ./arduino_data (created on demand)

Other settings:
- ARDUINO_PKG_HTTP_TIMEOUT: seconds per HTTP call (default 10)
- ARDUINO_PKG_GITHUB_API: code-hosting API base URL
- ARDUINO_PKG_INDEX_URL: package index fetched by index refresh
- ARDUINO_PKG_TOOLKIT: toolkit word used in searches and generated descriptions
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "ARDUINO_DATA_DIR"
HTTP_TIMEOUT_ENV = "ARDUINO_PKG_HTTP_TIMEOUT"
GITHUB_API_ENV = "ARDUINO_PKG_GITHUB_API"
INDEX_URL_ENV = "ARDUINO_PKG_INDEX_URL"
TOOLKIT_ENV = "ARDUINO_PKG_TOOLKIT"

DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_GITHUB_API = "https://api.github.com"
DEFAULT_INDEX_URL = "https://downloads.arduino.cc/packages/package_index_bundled.json"
DEFAULT_TOOLKIT = "Arduino"

# Relative to the home directory, checked in order
PLATFORM_DATA_DIRS = ("Library/Arduino15", ".arduino15", "AppData/Local/Arduino15")
FALLBACK_DATA_DIR = Path("arduino_data")


def get_data_dir(explicit: Optional[Union[str, Path]] = None) -> Path:
    """Get the data directory root.

    Args:
        explicit: Directory chosen by the caller, takes precedence

    Returns:
        Absolute path to the data directory (may not exist yet)
    """
    if explicit:
        return Path(explicit).expanduser().resolve()

    data_env = os.environ.get(DATA_DIR_ENV)
    if data_env:
        return Path(data_env).expanduser().resolve()

    try:
        home = Path.home()
    except RuntimeError:
        home = None

    if home is not None:
        for candidate in PLATFORM_DATA_DIRS:
            path = home / candidate
            if path.is_dir():
                return path.resolve()

    return FALLBACK_DATA_DIR.resolve()


def _float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={raw!r}, using {default}")
        return default
    return value


@dataclass
class Settings:
    """Runtime settings for a package manager instance."""

    data_dir: Path
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    github_api_url: str = DEFAULT_GITHUB_API
    index_url: str = DEFAULT_INDEX_URL
    toolkit: str = DEFAULT_TOOLKIT

    @classmethod
    def from_env(cls, data_dir: Optional[Union[str, Path]] = None) -> "Settings":
        """Build settings from the environment.

        Args:
            data_dir: Explicit data directory overriding the environment

        Returns:
            Settings instance
        """
        return cls(
            data_dir=get_data_dir(data_dir),
            http_timeout=_float_from_env(HTTP_TIMEOUT_ENV, DEFAULT_HTTP_TIMEOUT),
            github_api_url=os.environ.get(GITHUB_API_ENV, DEFAULT_GITHUB_API).rstrip("/"),
            index_url=os.environ.get(INDEX_URL_ENV, DEFAULT_INDEX_URL),
            toolkit=os.environ.get(TOOLKIT_ENV, DEFAULT_TOOLKIT),
        )


class DataLayout:
    """Directory layout under the data directory root."""

    SUBDIRS = ("packages", "libraries", "cores", "tools", "cache", "tmp", "downloads")

    def __init__(self, root: Union[str, Path]):
        """Initialize the layout.

        Args:
            root: Data directory root; resolved to an absolute path
        """
        self.root = Path(root).resolve()

    @property
    def packages(self) -> Path:
        return self.root / "packages"

    @property
    def libraries(self) -> Path:
        return self.root / "libraries"

    @property
    def cores(self) -> Path:
        return self.root / "cores"

    @property
    def tools(self) -> Path:
        return self.root / "tools"

    @property
    def cache(self) -> Path:
        return self.root / "cache"

    @property
    def tmp(self) -> Path:
        return self.root / "tmp"

    @property
    def downloads(self) -> Path:
        return self.root / "downloads"

    def ensure(self) -> None:
        """Create the root and all subdirectories (idempotent)."""
        for name in self.SUBDIRS:
            (self.root / name).mkdir(parents=True, exist_ok=True)

    def contains(self, path: Path) -> bool:
        """Check whether ``path`` lies strictly inside the data directory."""
        resolved = Path(path).resolve()
        return resolved != self.root and resolved.is_relative_to(self.root)

    def __repr__(self) -> str:
        return f"DataLayout({str(self.root)!r})"
