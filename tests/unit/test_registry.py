"""Unit tests for PackageRegistry."""

import threading
from pathlib import Path

import pytest

from arduino_pkg.config import DataLayout
from arduino_pkg.packages.package import InvalidPackageError, PackageKind, PackageRecord
from arduino_pkg.packages.properties import write_properties_file
from arduino_pkg.registry import PackageRegistry


def write_library(layout: DataLayout, folder: str, content: bytes) -> Path:
    lib_dir = layout.libraries / folder
    lib_dir.mkdir(parents=True, exist_ok=True)
    (lib_dir / "library.properties").write_bytes(content)
    return lib_dir


class TestRegistryLoad:
    """Tests for load() and init()."""

    def test_load_libraries_and_cores(self, layout: DataLayout, registry: PackageRegistry) -> None:
        write_library(layout, "Servo", b"name=Servo\nversion=1.1.8\n")
        write_library(layout, "Wire", b"name=Wire\nversion=1.0\n")
        core_dir = layout.packages / "arduino-avr"
        write_properties_file(core_dir / "platform.txt", PackageRecord(name="arduino-avr", version="1.0.0"))

        counts = registry.load()

        assert counts == {PackageKind.LIBRARY: 2, PackageKind.CORE: 1}
        assert [r.name for r in registry.list(PackageKind.LIBRARY)] == ["Servo", "Wire"]
        core = registry.get(PackageKind.CORE, "arduino-avr")
        assert core is not None
        assert core.install_dir == core_dir.resolve()

    def test_load_skips_bad_entries(self, layout: DataLayout, registry: PackageRegistry) -> None:
        """Nameless descriptors, missing descriptors and stray files are skipped."""
        write_library(layout, "Good", b"name=Good\n")
        write_library(layout, "Nameless", b"version=1.0\n")
        (layout.libraries / "NoDescriptor").mkdir()
        (layout.libraries / "stray.txt").write_text("not a library")

        registry.load()

        assert registry.names(PackageKind.LIBRARY) == {"Good"}

    def test_load_keys_by_directory_name(self, layout: DataLayout, registry: PackageRegistry) -> None:
        """Two folders declaring the same name stay two packages."""
        a_dir = write_library(layout, "A-folder", b"name=Dup\nversion=1\n")
        b_dir = write_library(layout, "B-folder", b"name=Dup\nversion=2\n")

        registry.load()

        assert registry.names(PackageKind.LIBRARY) == {"A-folder", "B-folder"}
        a_record = registry.get(PackageKind.LIBRARY, "A-folder")
        b_record = registry.get(PackageKind.LIBRARY, "B-folder")
        assert a_record is not None and b_record is not None
        assert (a_record.name, a_record.version, a_record.install_dir) == ("A-folder", "1", a_dir.resolve())
        assert (b_record.name, b_record.version, b_record.install_dir) == ("B-folder", "2", b_dir.resolve())
        assert registry.get(PackageKind.LIBRARY, "Dup") is None

    def test_load_replaces_previous_state(self, layout: DataLayout, registry: PackageRegistry) -> None:
        registry.upsert(PackageKind.LIBRARY, PackageRecord(name="Ghost"))
        registry.load()
        assert registry.get(PackageKind.LIBRARY, "Ghost") is None

    def test_load_missing_directories(self, tmp_path: Path) -> None:
        registry = PackageRegistry(DataLayout(tmp_path / "never-created"))
        assert registry.load() == {PackageKind.LIBRARY: 0, PackageKind.CORE: 0}

    def test_init_creates_layout_and_is_idempotent(self, tmp_path: Path) -> None:
        layout = DataLayout(tmp_path / "data")
        registry = PackageRegistry(layout)

        assert registry.init() is None
        assert registry.initialized
        assert layout.tools.is_dir()
        write_library(layout, "Late", b"name=Late\n")
        registry.init()

        # Second init does not rescan
        assert registry.get(PackageKind.LIBRARY, "Late") is None

    def test_init_runs_refresh_in_background(self, tmp_path: Path) -> None:
        registry = PackageRegistry(DataLayout(tmp_path / "data"))
        release = threading.Event()

        def refresh() -> str:
            release.wait(5)
            return "refreshed"

        future = registry.init(refresh=refresh)

        assert future is not None
        assert not future.done()
        assert registry.initialized
        release.set()
        assert future.result(timeout=5) == "refreshed"
        assert registry.init(refresh=refresh) is future
        registry.shutdown()

    def test_refresh_failure_does_not_affect_init(self, tmp_path: Path) -> None:
        registry = PackageRegistry(DataLayout(tmp_path / "data"))

        def refresh() -> None:
            raise RuntimeError("index server down")

        future = registry.init(refresh=refresh)

        assert future is not None
        assert isinstance(future.exception(timeout=5), RuntimeError)
        assert registry.initialized
        registry.shutdown()


class TestRegistryMutations:
    """Tests for upsert/remove/get/list."""

    def test_upsert_last_write_wins(self, layout: DataLayout, registry: PackageRegistry) -> None:
        assert registry.upsert(PackageKind.LIBRARY, PackageRecord(name="Servo", version="1.0")) is False
        assert registry.upsert(PackageKind.LIBRARY, PackageRecord(name="Servo", version="2.0")) is True

        records = registry.list(PackageKind.LIBRARY)
        assert len(records) == 1
        assert records[0].version == "2.0"

    def test_kinds_are_independent(self, registry: PackageRegistry) -> None:
        registry.upsert(PackageKind.LIBRARY, PackageRecord(name="avr"))
        assert registry.get(PackageKind.CORE, "avr") is None
        assert registry.contains(PackageKind.LIBRARY, "avr")

    def test_names_are_case_sensitive(self, registry: PackageRegistry) -> None:
        registry.upsert(PackageKind.LIBRARY, PackageRecord(name="Servo"))
        assert registry.get(PackageKind.LIBRARY, "servo") is None

    def test_remove(self, registry: PackageRegistry) -> None:
        registry.upsert(PackageKind.LIBRARY, PackageRecord(name="Servo"))
        assert registry.remove(PackageKind.LIBRARY, "Servo") is True
        assert registry.remove(PackageKind.LIBRARY, "Servo") is False
        assert registry.get(PackageKind.LIBRARY, "Servo") is None

    def test_list_sorted_by_name(self, registry: PackageRegistry) -> None:
        for name in ("Wire", "Adafruit_GFX", "FastLED"):
            registry.upsert(PackageKind.LIBRARY, PackageRecord(name=name))
        assert [r.name for r in registry.list(PackageKind.LIBRARY)] == ["Adafruit_GFX", "FastLED", "Wire"]

    def test_upsert_rejects_empty_name(self, registry: PackageRegistry) -> None:
        with pytest.raises(InvalidPackageError):
            registry.upsert(PackageKind.LIBRARY, PackageRecord(name=""))

    def test_upsert_rejects_install_dir_outside_data_dir(self, tmp_path: Path, registry: PackageRegistry) -> None:
        with pytest.raises(InvalidPackageError):
            registry.upsert(PackageKind.LIBRARY, PackageRecord(name="Evil", install_dir=tmp_path / "elsewhere"))

    def test_independent_registries(self, tmp_path: Path) -> None:
        first = PackageRegistry(DataLayout(tmp_path / "one"))
        second = PackageRegistry(DataLayout(tmp_path / "two"))
        first.upsert(PackageKind.LIBRARY, PackageRecord(name="Servo"))
        assert second.get(PackageKind.LIBRARY, "Servo") is None

    def test_concurrent_upserts(self, registry: PackageRegistry) -> None:
        """Parallel writers never lose records."""

        def worker(prefix: str) -> None:
            for i in range(50):
                registry.upsert(PackageKind.LIBRARY, PackageRecord(name=f"{prefix}{i}"))
                registry.list(PackageKind.LIBRARY)

        threads = [threading.Thread(target=worker, args=(p,)) for p in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(registry.names(PackageKind.LIBRARY)) == 200
