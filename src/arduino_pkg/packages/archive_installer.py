"""Archive installer for library packages.

Installs a library from a local archive (.zip, .tar.gz, .tgz, .tar.xz)
into ``<dataDir>/libraries/<name>``.

Layout rules:
    - The package root is the directory holding the first
      ``library.properties`` entry in the archive.
    - The package name is the first path segment of that root. It decides
      the install directory, is the value returned to the caller and keys
      the registry, even when the descriptor declares a different ``name``.
    - Every entry under the package root is copied with its relative
      structure. Entries outside the root are ignored.
    - An entry whose relative path would land outside the install
      directory fails the whole install before anything is written.

After extraction the copied descriptor is re-parsed and registered. If
it cannot be parsed the files stay on disk but nothing is registered;
the result reports this as ``registered=False``, and any record left over
from an earlier install of the same directory is dropped.
"""

import logging
import posixpath
import shutil
import tarfile
import zipfile
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager, nullcontext
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Callable, Optional, Union

from arduino_pkg.config import DataLayout

from .package import (
    ExtractionError,
    InvalidPackageError,
    NotFoundError,
    PackageKind,
    PackageRecord,
)
from .properties import load_properties_file

if TYPE_CHECKING:
    from arduino_pkg.registry import PackageRegistry

logger = logging.getLogger(__name__)

DESCRIPTOR_FILENAME = PackageKind.LIBRARY.descriptor_name


@dataclass
class _ArchiveEntry:
    """A member of an opened archive."""

    path: str
    is_dir: bool
    open: Callable[[], IO[bytes]]


@dataclass
class ArchiveInstallResult:
    """Outcome of an archive install.

    Attributes:
        name: Package name derived from the archive structure
        install_dir: Directory the files were extracted into
        record: Parsed descriptor, None if it could not be parsed
        registered: True if the record was upserted into the registry
        replaced: True if the upsert overwrote an existing record
        files_written: Number of regular files written
        warnings: Non-fatal problems (e.g. extracted but not registered)
    """

    name: str
    install_dir: Path
    record: Optional[PackageRecord] = None
    registered: bool = False
    replaced: bool = False
    files_written: int = 0
    warnings: list[str] = field(default_factory=list)


def _normalize(member_name: str) -> str:
    name = member_name.replace("\\", "/")
    while name.startswith("./"):
        name = name[2:]
    return name.rstrip("/")


@contextmanager
def _open_archive(archive_path: Path) -> Iterator[list[_ArchiveEntry]]:
    """Open an archive and yield its entries.

    Raises:
        NotFoundError: If the archive cannot be opened for reading
        InvalidPackageError: If the file is not a supported archive
    """
    try:
        fileobj = open(archive_path, "rb")
    except OSError as e:
        raise NotFoundError(f"Archive not readable: {archive_path}: {e}")

    with fileobj:
        if zipfile.is_zipfile(fileobj):
            fileobj.seek(0)
            try:
                zf = zipfile.ZipFile(fileobj, "r")
            except zipfile.BadZipFile as e:
                raise InvalidPackageError(f"Corrupt zip archive {archive_path.name}: {e}")
            with zf:
                entries = [
                    _ArchiveEntry(path=_normalize(info.filename), is_dir=info.is_dir(), open=lambda info=info: zf.open(info))
                    for info in zf.infolist()
                ]
                yield entries
            return

        fileobj.seek(0)
        if tarfile.is_tarfile(fileobj):
            fileobj.seek(0)
            try:
                tf = tarfile.open(fileobj=fileobj, mode="r:*")
            except tarfile.TarError as e:
                raise InvalidPackageError(f"Corrupt tar archive {archive_path.name}: {e}")
            with tf:
                entries = []
                for member in tf.getmembers():
                    if not (member.isfile() or member.isdir()):
                        logger.warning(f"Skipping link or special entry {member.name} in {archive_path.name}")
                        continue
                    entries.append(
                        _ArchiveEntry(
                            path=_normalize(member.name),
                            is_dir=member.isdir(),
                            open=lambda member=member: tf.extractfile(member),  # type: ignore[return-value,misc]
                        )
                    )
                yield entries
            return

    raise InvalidPackageError(f"Unsupported archive format: {archive_path.name}")


def _find_package_root(entries: list[_ArchiveEntry]) -> Optional[str]:
    for entry in entries:
        if not entry.is_dir and posixpath.basename(entry.path) == DESCRIPTOR_FILENAME:
            return posixpath.dirname(entry.path)
    return None


def _relative_to_root(entry_path: str, root: str) -> Optional[str]:
    if not root:
        return entry_path
    if entry_path == root:
        return ""
    if entry_path.startswith(root + "/"):
        return entry_path[len(root) + 1 :]
    return None


class ArchiveInstaller:
    """Extracts library archives into the data directory and registers them."""

    def __init__(
        self,
        layout: DataLayout,
        registry: "PackageRegistry",
        name_lock: Optional[Callable[[str], AbstractContextManager[Any]]] = None,
    ):
        """Initialize the installer.

        Args:
            layout: Data directory layout
            registry: Registry that receives the parsed record
            name_lock: Returns a context manager serializing work on one
                package name; held from extraction through registration
        """
        self.layout = layout
        self.registry = registry
        self.name_lock = name_lock if name_lock is not None else (lambda name: nullcontext())

    def install(self, archive_path: Union[str, Path]) -> ArchiveInstallResult:
        """Install a library from an archive.

        Args:
            archive_path: Path to the archive file

        Returns:
            ArchiveInstallResult describing what was extracted and registered

        Raises:
            NotFoundError: If the archive does not exist or cannot be read
            InvalidPackageError: If the archive has no descriptor or is not
                a supported archive
            ExtractionError: On a path-escape entry or an I/O failure
        """
        archive_path = Path(archive_path)
        if not archive_path.is_file():
            raise NotFoundError(f"Archive not found: {archive_path}")

        with _open_archive(archive_path) as entries:
            return self._install_entries(archive_path, entries)

    def _install_entries(self, archive_path: Path, entries: list[_ArchiveEntry]) -> ArchiveInstallResult:
        root = _find_package_root(entries)
        if root is None:
            raise InvalidPackageError(f"No {DESCRIPTOR_FILENAME} found in {archive_path.name}")

        # Descriptor at the archive root: fall back to the archive's own name
        package_name = root.split("/")[0] if root else _archive_stem(archive_path)
        if package_name in ("", ".", ".."):
            raise ExtractionError(f"Cannot derive a package name from {archive_path.name}")

        install_dir = (self.layout.libraries / package_name).resolve()
        if install_dir.parent != self.layout.libraries.resolve():
            raise ExtractionError(f"Package name {package_name!r} escapes the libraries directory")

        plan = self._plan_extraction(entries, root, install_dir)

        with self.name_lock(package_name):
            return self._extract_and_register(archive_path, package_name, install_dir, plan)

    def _extract_and_register(
        self,
        archive_path: Path,
        package_name: str,
        install_dir: Path,
        plan: list[tuple[_ArchiveEntry, Path]],
    ) -> ArchiveInstallResult:
        try:
            install_dir.mkdir(parents=True, exist_ok=True)
            files_written = 0
            for entry, target in plan:
                if entry.is_dir:
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with entry.open() as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                files_written += 1
        except (OSError, zipfile.BadZipFile, tarfile.TarError) as e:
            raise ExtractionError(f"Error extracting {archive_path.name} into {install_dir}: {e}")

        logger.info(f"Extracted {files_written} files from {archive_path.name} into {install_dir}")
        result = ArchiveInstallResult(name=package_name, install_dir=install_dir, files_written=files_written)

        descriptor = install_dir / DESCRIPTOR_FILENAME
        try:
            record = load_properties_file(descriptor)
        except OSError as e:
            record = None
            logger.warning(f"Could not read extracted descriptor {descriptor}: {e}")

        if record is None:
            result.warnings.append(f"Extracted {package_name} but {DESCRIPTOR_FILENAME} could not be parsed; package not registered")
            # The descriptor on disk no longer describes the old record
            if self.registry.remove(PackageKind.LIBRARY, package_name):
                result.warnings.append(f"Previous registration of {package_name} was removed")
            return result

        if record.name != package_name:
            logger.warning(f"Archive folder {package_name!r} declares name {record.name!r}; registering as {package_name!r}")
            record = replace(record, name=package_name)

        result.record = record
        result.replaced = self.registry.upsert(PackageKind.LIBRARY, record)
        result.registered = True
        return result

    @staticmethod
    def _plan_extraction(entries: list[_ArchiveEntry], root: str, install_dir: Path) -> list[tuple[_ArchiveEntry, Path]]:
        """Map archive entries under ``root`` to target paths.

        Raises:
            ExtractionError: If any entry would resolve outside install_dir
        """
        plan: list[tuple[_ArchiveEntry, Path]] = []
        for entry in entries:
            rel_path = _relative_to_root(entry.path, root)
            if not rel_path:
                continue

            if rel_path.startswith("/") or posixpath.isabs(rel_path):
                raise ExtractionError(f"Refusing absolute archive entry: {entry.path}")

            target = (install_dir / rel_path).resolve()
            if target == install_dir:
                continue
            if not target.is_relative_to(install_dir):
                raise ExtractionError(f"Refusing archive entry outside the install directory: {entry.path}")

            plan.append((entry, target))
        return plan


def _archive_stem(archive_path: Path) -> str:
    name = archive_path.name
    for suffix in (".tar.gz", ".tar.xz", ".tgz", ".zip"):
        if name.lower().endswith(suffix):
            return name[: -len(suffix)]
    return archive_path.stem
