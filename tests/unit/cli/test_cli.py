"""Unit tests for the arduino-pkg command line.

Commands run in-process through main(); remote metadata lookups are
patched out so no test touches the network.
"""

import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from arduino_pkg.cli import build_parser, main
from arduino_pkg.packages.package import NetworkError


def run_cli(data_dir: Path, *args: str) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(["--data-dir", str(data_dir), *args])
    return exc_info.value.code


@pytest.fixture(autouse=True)
def _offline():
    """Remote lookups are inconclusive, so the static stages answer."""
    with patch("arduino_pkg.packages.resolver.RemoteLookupStage.run", return_value=None):
        yield


class TestParser:
    """Tests for argument parsing."""

    def test_lib_install(self) -> None:
        args = build_parser().parse_args(["lib", "install", "Servo"])
        assert args.command == "lib"
        assert args.action == "install"
        assert args.name == "Servo"

    def test_global_data_dir(self, tmp_path: Path) -> None:
        args = build_parser().parse_args(["--data-dir", str(tmp_path), "core", "list", "--table"])
        assert args.data_dir == tmp_path
        assert args.table is True

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "usage:" in capsys.readouterr().out

    def test_missing_subcommand_is_usage_error(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["lib"])
        assert exc_info.value.code == 2


class TestLibraryCommands:
    """End-to-end library commands against a temporary data directory."""

    def test_install_list_uninstall(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run_cli(data_dir, "lib", "install", "Servo") == 0
        out = capsys.readouterr().out
        assert "Library Servo installed successfully!" in out
        assert "Version: 1.1.8" in out

        assert run_cli(data_dir, "lib", "list") == 0
        out = capsys.readouterr().out
        assert "Installed Libraries:" in out
        assert "- Servo 1.1.8 (by Arduino)" in out

        assert run_cli(data_dir, "lib", "uninstall", "Servo") == 0
        assert not (data_dir / "libraries" / "Servo").exists()

    def test_empty_list(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run_cli(data_dir, "lib", "list") == 0
        assert "No libraries installed." in capsys.readouterr().out

    def test_list_table(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        run_cli(data_dir, "lib", "install", "FastLED")
        capsys.readouterr()

        assert run_cli(data_dir, "lib", "list", "--table") == 0
        out = capsys.readouterr().out
        assert "Installed Libraries" in out
        assert "FastLED" in out
        assert "3.6.0" in out

    def test_uninstall_not_installed(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run_cli(data_dir, "lib", "uninstall", "Servo") == 1
        assert "ERROR: Library Servo is not installed" in capsys.readouterr().out

    def test_install_zip(self, tmp_path: Path, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        archive = tmp_path / "servo.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("Servo/library.properties", "name=Servo\nversion=1.1.8\n")

        assert run_cli(data_dir, "lib", "install-zip", str(archive)) == 0
        assert "Library name: Servo" in capsys.readouterr().out
        assert (data_dir / "libraries" / "Servo" / "library.properties").is_file()

    def test_install_zip_missing(self, tmp_path: Path, data_dir: Path) -> None:
        assert run_cli(data_dir, "lib", "install-zip", str(tmp_path / "nope.zip")) == 1

    def test_search(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run_cli(data_dir, "lib", "search", "wi") == 0
        out = capsys.readouterr().out
        assert "Search results for 'wi':" in out
        assert "WiFi" in out
        assert "Wire" in out

    def test_info_available(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run_cli(data_dir, "lib", "info", "Adafruit_GFX") == 0
        out = capsys.readouterr().out
        assert "Library Info for Adafruit_GFX (Available):" in out
        assert "Latest Version: 1.11.9" in out


class TestOtherCommands:
    """Core, index and prune commands."""

    def test_core_install_and_list(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run_cli(data_dir, "core", "list") == 0
        assert "No cores installed." in capsys.readouterr().out

        assert run_cli(data_dir, "core", "install", "arduino-avr") == 0
        assert run_cli(data_dir, "core", "list") == 0
        out = capsys.readouterr().out
        assert "Core arduino-avr installed successfully!" in out
        assert "- arduino-avr 1.0.0 (by Arduino Team)" in out

    def test_update_index_failure(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("arduino_pkg.packages.index.IndexUpdater.update", side_effect=NetworkError("offline")):
            assert run_cli(data_dir, "update-index") == 1
        assert "ERROR: Error updating index: offline" in capsys.readouterr().out

    def test_update_index_success(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("arduino_pkg.packages.index.IndexUpdater.update", return_value=data_dir / "cache" / "package_index.json"):
            assert run_cli(data_dir, "update-index") == 0
        assert "Package index updated successfully!" in capsys.readouterr().out

    def test_prune(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (data_dir / "libraries" / "Leftover").mkdir(parents=True)

        assert run_cli(data_dir, "prune") == 0
        out = capsys.readouterr().out
        assert "Pruned 1 directory" in out
        assert "Removed: Leftover" in out
        assert not (data_dir / "libraries" / "Leftover").exists()

    def test_output_is_timestamped(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        run_cli(data_dir, "lib", "list")
        first_line = capsys.readouterr().out.splitlines()[0]
        assert first_line[2] == ":" and first_line[5] == "."
        assert "arduino-pkg v" in first_line
