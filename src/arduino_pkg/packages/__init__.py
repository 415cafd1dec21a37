"""Package handling for arduino-pkg.

This module holds the descriptor codec, the archive installer, the
metadata resolver with its GitHub client and static catalog, and the
package index refresh.
"""

from .archive_installer import ArchiveInstaller, ArchiveInstallResult
from .catalog import STATIC_CATALOG, lookup_static
from .github_api import GitHubClient, GitHubRelease, GitHubRepository
from .index import IndexUpdater
from .package import (
    ExtractionError,
    FilesystemError,
    InvalidPackageError,
    NetworkError,
    NotFoundError,
    NotInstalledError,
    PackageError,
    PackageKind,
    PackageRecord,
    ParseError,
)
from .properties import parse_properties, serialize_properties
from .resolver import MetadataResolver, Resolution

__all__ = [
    "ArchiveInstaller",
    "ArchiveInstallResult",
    "STATIC_CATALOG",
    "lookup_static",
    "GitHubClient",
    "GitHubRelease",
    "GitHubRepository",
    "IndexUpdater",
    "PackageError",
    "NotFoundError",
    "InvalidPackageError",
    "ExtractionError",
    "NetworkError",
    "ParseError",
    "NotInstalledError",
    "FilesystemError",
    "PackageKind",
    "PackageRecord",
    "parse_properties",
    "serialize_properties",
    "MetadataResolver",
    "Resolution",
]
