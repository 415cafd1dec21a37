"""Package Registry - catalog of installed libraries and cores.

The registry owns two name -> record mappings backed by descriptor files
on disk:
- libraries: <dataDir>/libraries/<name>/library.properties
- cores:     <dataDir>/packages/<name>/platform.txt

Mutations (upsert, remove, load) take the write side of a reader/writer
lock; get and list take the read side and return immutable records, so
callers never observe a half-updated mapping.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Optional

from arduino_pkg.config import DataLayout
from arduino_pkg.locks import RWLock
from arduino_pkg.packages.package import InvalidPackageError, PackageKind, PackageRecord
from arduino_pkg.packages.properties import load_properties_file

logger = logging.getLogger(__name__)


class PackageRegistry:
    """Registry for installed packages.

    Instances are independent; tests create one per temporary data
    directory.
    """

    def __init__(self, layout: DataLayout):
        """Initialize an empty registry.

        Args:
            layout: Data directory layout the registry mirrors
        """
        self.layout = layout
        self._mappings: dict[PackageKind, dict[str, PackageRecord]] = {kind: {} for kind in PackageKind}
        self._lock = RWLock()
        self._init_lock = threading.Lock()
        self._initialized = False
        self._refresh_executor: Optional[ThreadPoolExecutor] = None
        self._refresh_future: Optional[Future[Any]] = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self, refresh: Optional[Callable[[], Any]] = None) -> Optional[Future[Any]]:
        """Create the data layout, load descriptors and start a refresh.

        Only the first call does any work; later calls return the refresh
        handle from the first call.

        Args:
            refresh: Optional callable run once in the background (e.g. an
                index download). Its failure is logged, never raised.

        Returns:
            Future for the background refresh, or None if none was started
        """
        with self._init_lock:
            if self._initialized:
                return self._refresh_future

            self.layout.ensure()
            self.load()

            if refresh is not None:
                self._refresh_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="index-refresh")
                self._refresh_future = self._refresh_executor.submit(refresh)
                self._refresh_future.add_done_callback(_log_refresh_outcome)

            self._initialized = True
            logger.info(f"Registry initialized at {self.layout.root}")
            return self._refresh_future

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background refresh executor, if one was started."""
        if self._refresh_executor is not None:
            self._refresh_executor.shutdown(wait=wait)

    def load(self) -> dict[PackageKind, int]:
        """Scan the data directory and replace both mappings.

        Unreadable or nameless descriptors are logged and skipped.

        Returns:
            Number of records loaded per kind
        """
        loaded = {kind: _scan(self._scan_root(kind), kind.descriptor_name) for kind in PackageKind}

        with self._lock.write():
            for kind, records in loaded.items():
                self._mappings[kind] = records

        counts = {kind: len(records) for kind, records in loaded.items()}
        logger.info(f"Loaded {counts[PackageKind.LIBRARY]} libraries and {counts[PackageKind.CORE]} cores")
        return counts

    def _scan_root(self, kind: PackageKind) -> Path:
        return self.layout.root / kind.subdir

    def upsert(self, kind: PackageKind, record: PackageRecord) -> bool:
        """Insert or overwrite a record by name (last write wins).

        Args:
            kind: Mapping to update
            record: Record to store

        Returns:
            True if an existing record was replaced

        Raises:
            InvalidPackageError: If the record has no name or its install
                directory lies outside the data directory
        """
        if not record.name:
            raise InvalidPackageError("Cannot register a package without a name")
        if record.install_dir is not None and not self.layout.contains(record.install_dir):
            raise InvalidPackageError(f"Install directory {record.install_dir} is outside {self.layout.root}")

        with self._lock.write():
            mapping = self._mappings[kind]
            replaced = record.name in mapping
            mapping[record.name] = record

        logger.info(f"{'Updated' if replaced else 'Registered'} {kind.value} {record.name} {record.version}")
        return replaced

    def remove(self, kind: PackageKind, name: str) -> bool:
        """Remove a record.

        Returns:
            True if the record was present and removed
        """
        with self._lock.write():
            removed = self._mappings[kind].pop(name, None) is not None

        if removed:
            logger.info(f"Removed {kind.value} {name}")
        return removed

    def get(self, kind: PackageKind, name: str) -> Optional[PackageRecord]:
        with self._lock.read():
            return self._mappings[kind].get(name)

    def contains(self, kind: PackageKind, name: str) -> bool:
        with self._lock.read():
            return name in self._mappings[kind]

    def list(self, kind: PackageKind) -> list[PackageRecord]:
        """List records of one kind, sorted by name."""
        with self._lock.read():
            records = list(self._mappings[kind].values())
        return sorted(records, key=lambda r: r.name)

    def names(self, kind: PackageKind) -> set[str]:
        with self._lock.read():
            return set(self._mappings[kind])


def _scan(root: Path, descriptor_name: str) -> dict[str, PackageRecord]:
    """Parse ``<root>/<entry>/<descriptor_name>`` for every entry.

    Args:
        root: Directory whose subdirectories are install directories
        descriptor_name: Descriptor filename inside each install directory

    Returns:
        Records keyed by install directory name. A descriptor that declares
        a different ``name`` is registered under its directory name, the
        same key an archive install of that directory uses.
    """
    records: dict[str, PackageRecord] = {}
    if not root.is_dir():
        return records

    for entry in sorted(root.iterdir()):
        if not entry.is_dir():
            continue
        descriptor = entry / descriptor_name
        if not descriptor.is_file():
            logger.debug(f"No descriptor in {entry}, skipping")
            continue
        try:
            record = load_properties_file(descriptor)
        except OSError as e:
            logger.warning(f"Failed to read {descriptor}: {e}")
            continue
        if record is None:
            logger.warning(f"Descriptor {descriptor} declares no name, skipping")
            continue
        if record.name != entry.name:
            logger.debug(f"{descriptor} declares {record.name!r}; keying by directory {entry.name!r}")
            record = replace(record, name=entry.name)
        records[entry.name] = record

    return records


def _log_refresh_outcome(future: "Future[Any]") -> None:
    if future.cancelled():
        logger.debug("Background index refresh cancelled")
        return
    error = future.exception()
    if error is not None:
        logger.warning(f"Background index refresh failed: {error}")
    else:
        logger.info("Background index refresh completed")
