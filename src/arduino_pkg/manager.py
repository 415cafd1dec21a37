"""Package Manager - public operations over the registry.

PackageManager composes the registry, archive installer, metadata resolver
and index updater into the operations exposed to callers:

    install_library(name)          install by name (reinstall overwrites)
    install_from_archive(path)     install from a local archive
    uninstall_library(name)        remove install dir, then the record
    search_libraries(term)         discovery search over installable names
    library_info(name)             installed record or resolved metadata
    list_libraries() / list_cores()
    install_core(name)
    update_index()
    prune()

Every operation returns an OperationResult instead of raising, so callers
across a library boundary always get a typed error and a message.
"""

import logging
import shutil
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Union

import requests

from arduino_pkg.config import DataLayout, Settings
from arduino_pkg.locks import NameLocks
from arduino_pkg.packages.archive_installer import ArchiveInstaller
from arduino_pkg.packages.catalog import SEARCH_CANDIDATES, catalog_names, default_core, default_library, lookup_static
from arduino_pkg.packages.github_api import GitHubClient
from arduino_pkg.packages.index import IndexUpdater
from arduino_pkg.packages.package import (
    FilesystemError,
    InvalidPackageError,
    NotInstalledError,
    PackageError,
    PackageKind,
    PackageRecord,
)
from arduino_pkg.packages.properties import load_properties_file, write_properties_file
from arduino_pkg.packages.resolver import MetadataResolver, with_name
from arduino_pkg.registry import PackageRegistry

logger = logging.getLogger(__name__)

STATUS_INSTALLED = "installed"
STATUS_AVAILABLE = "available, not installed"


@dataclass
class OperationResult:
    """Outcome of a facade operation.

    Attributes:
        success: True if the operation did what was asked
        message: Human-readable summary
        error: Error code (e.g. "NotFound") when success is False
        details: Operation-specific data (records, flags, paths)
        warnings: Non-fatal problems encountered along the way
    """

    success: bool
    message: str
    error: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls, message: str, warnings: Optional[list[str]] = None, **details: Any) -> "OperationResult":
        return cls(success=True, message=message, details=details, warnings=list(warnings or []))

    @classmethod
    def failure(cls, error: PackageError, message: Optional[str] = None) -> "OperationResult":
        return cls(success=False, message=message or str(error), error=error.code)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary (records become dicts)."""

        def _convert(value: Any) -> Any:
            if isinstance(value, PackageRecord):
                return value.to_dict()
            if isinstance(value, Path):
                return str(value)
            if isinstance(value, (list, tuple)):
                return [_convert(v) for v in value]
            return value

        return {
            "success": self.success,
            "message": self.message,
            "error": self.error,
            "details": {k: _convert(v) for k, v in self.details.items() if k != "refresh"},
            "warnings": list(self.warnings),
        }


def validate_package_name(name: Optional[str]) -> str:
    """Check that a name is usable as a single directory component.

    Raises:
        InvalidPackageError: If the name is empty or could escape its
            parent directory
    """
    name = (name or "").strip()
    if not name or name in (".", "..") or any(sep in name for sep in ("/", "\\", "\x00")):
        raise InvalidPackageError(f"Invalid package name: {name!r}")
    return name


class PackageManager:
    """Public operations for installing and inspecting packages."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[PackageRegistry] = None,
        resolver: Optional[MetadataResolver] = None,
        index_updater: Optional[IndexUpdater] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the manager.

        Args:
            settings: Runtime settings; read from the environment if None
            registry: Registry to use; a new one over settings.data_dir if None
            resolver: Metadata resolver; the standard chain if None
            index_updater: Index updater; one for settings.index_url if None
            session: HTTP session shared by the default collaborators
        """
        self.settings = settings if settings is not None else Settings.from_env()
        self.layout = registry.layout if registry is not None else DataLayout(self.settings.data_dir)
        self.registry = registry if registry is not None else PackageRegistry(self.layout)
        self.session = session if session is not None else requests.Session()

        if resolver is None:
            client = GitHubClient(self.settings.github_api_url, timeout=self.settings.http_timeout, session=self.session)
            resolver = MetadataResolver.with_defaults(client, toolkit=self.settings.toolkit)
        self.resolver = resolver

        self.index_updater = index_updater or IndexUpdater(self.layout, self.settings.index_url, timeout=self.settings.http_timeout, session=self.session)
        self._name_locks = NameLocks()
        self.installer = ArchiveInstaller(self.layout, self.registry, name_lock=self._library_lock)

    def _library_lock(self, name: str) -> Any:
        return self._name_locks.hold(f"library:{name}")

    def _core_lock(self, name: str) -> Any:
        return self._name_locks.hold(f"core:{name}")

    def init(self, refresh_index: bool = True) -> OperationResult:
        """Create the data layout and load installed packages.

        Args:
            refresh_index: Start a background package index download. Its
                outcome never affects this result; the Future is returned
                in ``details["refresh"]`` for callers that want to wait.

        Returns:
            OperationResult with library and core counts
        """
        refresh = self.index_updater.update if refresh_index else None
        try:
            future = self.registry.init(refresh=refresh)
        except OSError as e:
            return OperationResult.failure(FilesystemError(f"Cannot initialize data directory {self.layout.root}: {e}"))

        return OperationResult.ok(
            f"Initialized data directory {self.layout.root}",
            data_dir=self.layout.root,
            libraries=len(self.registry.list(PackageKind.LIBRARY)),
            cores=len(self.registry.list(PackageKind.CORE)),
            refresh=future,
        )

    def close(self) -> None:
        """Release the refresh executor and HTTP session."""
        self.registry.shutdown(wait=False)
        self.session.close()

    def __enter__(self) -> "PackageManager":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # --- Libraries ---------------------------------------------------------

    def install_library(self, name: str, cancel_event: Optional[threading.Event] = None) -> OperationResult:
        """Install a library by name.

        Installing a name that is already installed overwrites it; the
        result reports ``details["reinstalled"] == True``.

        Args:
            name: Library name
            cancel_event: Cancels remote metadata lookups

        Returns:
            OperationResult with the installed record
        """
        try:
            name = validate_package_name(name)
        except InvalidPackageError as e:
            return OperationResult.failure(e)

        with self._library_lock(name):
            reinstalled = self.registry.contains(PackageKind.LIBRARY, name)
            resolution = self.resolver.resolve_detailed(name, cancel_event=cancel_event)

            install_dir = self.layout.libraries / name
            record = replace(with_name(resolution.record, name), install_dir=install_dir)
            try:
                write_properties_file(install_dir / PackageKind.LIBRARY.descriptor_name, record)
            except OSError as e:
                logger.error(f"Failed to write descriptor for {name}: {e}")
                return OperationResult.failure(FilesystemError(f"Error installing library {name}: {e}"))

            try:
                self.registry.upsert(PackageKind.LIBRARY, record)
            except PackageError as e:
                return OperationResult.failure(e)

        action = "reinstalled" if reinstalled else "installed"
        return OperationResult.ok(
            f"Library {name} {action} successfully!",
            name=name,
            record=record,
            reinstalled=reinstalled,
            source=resolution.stage,
        )

    def install_from_archive(self, archive_path: Union[str, Path]) -> OperationResult:
        """Install a library from a local archive.

        A package that was extracted but whose descriptor could not be
        parsed is a success with warnings and ``details["registered"]``
        set to False.

        Args:
            archive_path: Path to a .zip / .tar.gz / .tgz / .tar.xz archive

        Returns:
            OperationResult with the structural name in ``details["name"]``
        """
        try:
            result = self.installer.install(archive_path)
        except PackageError as e:
            logger.warning(f"Archive install of {archive_path} failed: {e}")
            return OperationResult.failure(e, f"Error installing library from archive {archive_path}: {e}")
        except OSError as e:
            logger.error(f"Archive install of {archive_path} failed: {e}")
            return OperationResult.failure(FilesystemError(f"Error installing library from archive {archive_path}: {e}"))

        if result.registered:
            message = f"Library from archive {archive_path} installed successfully!\nLibrary name: {result.name}"
        else:
            message = f"Library from archive {archive_path} extracted but not registered\nLibrary name: {result.name}"

        return OperationResult.ok(
            message,
            warnings=result.warnings,
            name=result.name,
            install_dir=result.install_dir,
            record=result.record,
            registered=result.registered,
            reinstalled=result.replaced,
            files_written=result.files_written,
        )

    def uninstall_library(self, name: str) -> OperationResult:
        """Uninstall a library.

        The install directory is removed first; the registry record is
        dropped only if that succeeds.

        Returns:
            OperationResult; error "NotInstalled" if the name is unknown
        """
        with self._library_lock(name):
            record = self.registry.get(PackageKind.LIBRARY, name)
            if record is None:
                return OperationResult.failure(NotInstalledError(f"Library {name} is not installed"))

            install_dir = record.install_dir if record.install_dir is not None else self.layout.libraries / name
            if not self.layout.contains(install_dir):
                return OperationResult.failure(FilesystemError(f"Refusing to remove {install_dir}: outside {self.layout.root}"))

            try:
                shutil.rmtree(install_dir)
            except FileNotFoundError:
                logger.warning(f"Install directory {install_dir} already missing; dropping record for {name}")
            except OSError as e:
                logger.error(f"Failed to remove {install_dir}: {e}")
                return OperationResult.failure(FilesystemError(f"Error uninstalling library {name}: {e}"))

            self.registry.remove(PackageKind.LIBRARY, name)

        return OperationResult.ok(f"Library {name} uninstalled successfully!", name=name, install_dir=install_dir)

    def search_libraries(self, term: str) -> OperationResult:
        """Search installable libraries by case-insensitive substring.

        Searches the fixed candidate names plus the static catalog, not the
        installed packages. Metadata comes from the catalog (or the default
        record) without network access.

        Returns:
            OperationResult with ``details["results"]`` (list of records)
        """
        needle = (term or "").lower()
        results: list[PackageRecord] = []
        seen: set[str] = set()
        for name in (*SEARCH_CANDIDATES, *catalog_names()):
            key = name.lower()
            if key in seen or needle not in key:
                continue
            seen.add(key)
            results.append(lookup_static(name) or default_library(name, toolkit=self.settings.toolkit))

        return OperationResult.ok(format_search_results(term, results), term=term, results=results)

    def library_info(self, name: str, cancel_event: Optional[threading.Event] = None) -> OperationResult:
        """Describe a library, installed or not.

        Returns:
            OperationResult with ``details["record"]``, ``details["installed"]``
            and ``details["status"]``
        """
        try:
            name = validate_package_name(name)
        except InvalidPackageError as e:
            return OperationResult.failure(e)

        record = self.registry.get(PackageKind.LIBRARY, name)
        if record is not None:
            return OperationResult.ok(format_library_info(record, installed=True), record=record, installed=True, status=STATUS_INSTALLED)

        resolution = self.resolver.resolve_detailed(name, cancel_event=cancel_event)
        record = with_name(resolution.record, name)
        return OperationResult.ok(
            format_library_info(record, installed=False),
            record=record,
            installed=False,
            status=STATUS_AVAILABLE,
            source=resolution.stage,
        )

    def list_libraries(self) -> list[PackageRecord]:
        return self.registry.list(PackageKind.LIBRARY)

    def list_cores(self) -> list[PackageRecord]:
        return self.registry.list(PackageKind.CORE)

    # --- Cores -------------------------------------------------------------

    def install_core(self, name: str) -> OperationResult:
        """Install a platform core by name with default metadata."""
        try:
            name = validate_package_name(name)
        except InvalidPackageError as e:
            return OperationResult.failure(e)

        with self._core_lock(name):
            reinstalled = self.registry.contains(PackageKind.CORE, name)
            install_dir = self.layout.packages / name
            record = default_core(name, install_dir=install_dir)
            try:
                write_properties_file(install_dir / PackageKind.CORE.descriptor_name, record)
                self.registry.upsert(PackageKind.CORE, record)
            except OSError as e:
                return OperationResult.failure(FilesystemError(f"Error installing core {name}: {e}"))
            except PackageError as e:
                return OperationResult.failure(e)

        return OperationResult.ok(f"Core {name} installed successfully!", name=name, record=record, reinstalled=reinstalled)

    # --- Maintenance -------------------------------------------------------

    def update_index(self) -> OperationResult:
        """Download the package index into the cache directory."""
        try:
            path = self.index_updater.update()
        except PackageError as e:
            return OperationResult.failure(e, f"Error updating index: {e}")
        except OSError as e:
            return OperationResult.failure(FilesystemError(f"Error updating index: {e}"))
        return OperationResult.ok("Package index updated successfully!", path=path)

    def prune(self) -> OperationResult:
        """Remove library directories that hold no usable package.

        A directory is pruned when it has no parseable descriptor and no
        registry record points at it; this is what an interrupted install
        leaves behind.

        Returns:
            OperationResult with ``details["removed"]`` (directory names)
        """
        removed: list[str] = []
        warnings: list[str] = []
        libraries_dir = self.layout.libraries
        if not libraries_dir.is_dir():
            return OperationResult.ok("Nothing to prune", removed=removed)

        registered_dirs = {r.install_dir for r in self.registry.list(PackageKind.LIBRARY) if r.install_dir is not None}

        for entry in sorted(libraries_dir.iterdir()):
            if not entry.is_dir():
                continue
            with self._library_lock(entry.name):
                if entry.resolve() in registered_dirs:
                    continue
                descriptor = entry / PackageKind.LIBRARY.descriptor_name
                try:
                    if descriptor.is_file() and load_properties_file(descriptor) is not None:
                        continue
                except OSError as e:
                    logger.debug(f"Unreadable descriptor {descriptor}: {e}")
                try:
                    shutil.rmtree(entry)
                except OSError as e:
                    warnings.append(f"Could not remove {entry}: {e}")
                    continue
            logger.info(f"Pruned unregistered directory {entry}")
            removed.append(entry.name)

        message = f"Pruned {len(removed)} director{'y' if len(removed) == 1 else 'ies'}"
        return OperationResult.ok(message, warnings=warnings, removed=removed)


# --- Text reports ------------------------------------------------------------


def format_package_list(kind: PackageKind, records: list[PackageRecord]) -> str:
    """Render installed libraries or cores as an indented text list."""
    noun = "libraries" if kind is PackageKind.LIBRARY else "cores"
    if not records:
        command = "lib" if kind is PackageKind.LIBRARY else "core"
        return f"No {noun} installed.\nUse '{command} install <{kind.value}_name>' to install {noun}."
    lines = [f"Installed {noun.capitalize()}:"]
    for record in records:
        if kind is PackageKind.LIBRARY:
            lines.append(f"- {record.name} {record.version} (by {record.author})")
            lines.append(f"  {record.description}")
        else:
            lines.append(f"- {record.name} {record.version} (by {record.maintainer})")
        lines.append(f"  Repository: {record.repository}")
        lines.append(f"  License: {record.license}")
    return "\n".join(lines)


def format_search_results(term: str, records: list[PackageRecord]) -> str:
    if not records:
        return f"No libraries found matching '{term}'"
    lines = [f"Search results for '{term}':"]
    for i, lib in enumerate(records, start=1):
        lines.append(f"{i}. {lib.name} {lib.version} (by {lib.author})")
        lines.append(f"  {lib.description}")
    return "\n".join(lines)


def format_library_info(record: PackageRecord, installed: bool) -> str:
    """Render library details in the installed or available form."""
    if installed:
        lines = [
            f"Library Info for {record.name} (Installed):",
            f"Version: {record.version}",
        ]
    else:
        lines = [
            f"Library Info for {record.name} (Available):",
            f"Latest Version: {record.version}",
        ]
    lines += [
        f"Author: {record.author}",
        f"Maintainer: {record.maintainer}",
        f"Description: {record.description}",
        f"Website: {record.website}",
        f"Category: {record.category}",
        f"Repository: {record.repository}",
        f"License: {record.license}",
    ]
    if installed:
        lines.append(f"Install Directory: {record.install_dir}")
    else:
        lines.append("Status: Not installed (use 'Install Library' to install)")
    return "\n".join(lines)
