"""Package records and the package management error hierarchy.

This module defines the record type shared by libraries and cores, the
kind enum that selects between the two registry mappings, and the
exceptions raised by the installer, resolver and registry.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

DEFAULT_CATEGORY = "Communication"


class PackageError(Exception):
    """Base exception for package management errors.

    Subclasses set ``code`` to the short error name reported by the
    operations facade (e.g. ``"NotFound"``).
    """

    code = "PackageError"


class NotFoundError(PackageError):
    """Raised when an archive or uninstall target does not exist."""

    code = "NotFound"


class InvalidPackageError(PackageError):
    """Raised when an archive has no descriptor or a package name is unusable."""

    code = "InvalidPackage"


class ExtractionError(PackageError):
    """Raised on I/O failure or path escape while extracting an archive."""

    code = "ExtractionError"


class NetworkError(PackageError):
    """Raised on transport or HTTP status failures talking to a remote API."""

    code = "NetworkError"


class ParseError(PackageError):
    """Raised when a remote response body cannot be decoded."""

    code = "ParseError"


class NotInstalledError(PackageError):
    """Raised when an operation targets a package that is not installed."""

    code = "NotInstalled"


class FilesystemError(PackageError):
    """Raised when writing or removing an install directory fails."""

    code = "FilesystemError"


class PackageKind(Enum):
    """Which registry mapping a record belongs to."""

    LIBRARY = "library"
    CORE = "core"

    @property
    def subdir(self) -> str:
        """Name of the data directory subfolder holding this kind."""
        return "libraries" if self is PackageKind.LIBRARY else "packages"

    @property
    def descriptor_name(self) -> str:
        """Filename of the key=value descriptor inside an install directory."""
        return "library.properties" if self is PackageKind.LIBRARY else "platform.txt"


@dataclass(frozen=True)
class PackageRecord:
    """Metadata for an installed or installable package.

    Records are immutable; use ``dataclasses.replace`` to derive a copy
    with a different ``install_dir`` or ``name``.

    Attributes:
        name: Unique registry key (case-sensitive)
        version: Free-form version string
        author: Author attribution
        maintainer: Maintainer attribution
        description: One-line summary (``sentence`` in the descriptor)
        website: Project URL (``url`` in the descriptor)
        repository: Source repository URL
        category: Library category (e.g. "Display", "Sensors")
        architectures: Target architecture identifiers
        types: Classification tags, carried but not interpreted
        install_dir: Absolute install path, None when not installed
        license: SPDX identifier or empty string
    """

    name: str
    version: str = ""
    author: str = ""
    maintainer: str = ""
    description: str = ""
    website: str = ""
    repository: str = ""
    category: str = DEFAULT_CATEGORY
    architectures: frozenset[str] = field(default_factory=frozenset)
    types: tuple[str, ...] = ()
    install_dir: Optional[Path] = None
    license: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "version": self.version,
            "author": self.author,
            "maintainer": self.maintainer,
            "description": self.description,
            "website": self.website,
            "repository": self.repository,
            "category": self.category,
            "architectures": sorted(self.architectures),
            "types": list(self.types),
            "installDir": str(self.install_dir) if self.install_dir is not None else "",
            "license": self.license,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PackageRecord":
        """Deserialize from dictionary."""
        install_dir = data.get("installDir") or None
        return cls(
            name=data["name"],
            version=data.get("version", ""),
            author=data.get("author", ""),
            maintainer=data.get("maintainer", ""),
            description=data.get("description", ""),
            website=data.get("website", ""),
            repository=data.get("repository", ""),
            category=data.get("category", DEFAULT_CATEGORY),
            architectures=frozenset(data.get("architectures", [])),
            types=tuple(data.get("types", [])),
            install_dir=Path(install_dir) if install_dir else None,
            license=data.get("license", ""),
        )
