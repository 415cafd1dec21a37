"""
Command-line interface for arduino-pkg.

This module provides the `arduino-pkg` tool for installing and inspecting
Arduino libraries and cores in a local data directory.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from arduino_pkg import __version__
from arduino_pkg.config import Settings
from arduino_pkg.manager import (
    OperationResult,
    PackageManager,
    format_package_list,
)
from arduino_pkg.output import (
    get_output_stream,
    init_timer,
    log,
    log_detail,
    log_error,
    log_header,
    log_outcome,
    log_warning,
    set_verbose,
)
from arduino_pkg.packages.package import PackageKind, PackageRecord


@dataclass
class CommandArgs:
    """Arguments shared by every command."""

    group: str
    action: Optional[str] = None
    target: Optional[str] = None
    data_dir: Optional[Path] = None
    table: bool = False
    verbose: bool = False


def _print_table(title: str, records: list[PackageRecord], by_maintainer: bool = False) -> None:
    table = Table(title=title, show_lines=False)
    table.add_column("Name", style="bold")
    table.add_column("Version")
    table.add_column("Maintainer" if by_maintainer else "Author")
    table.add_column("Category")
    table.add_column("License")
    for record in records:
        table.add_row(
            record.name,
            record.version,
            record.maintainer if by_maintainer else record.author,
            record.category,
            record.license,
        )
    Console(file=get_output_stream()).print(table)


def _report(result: OperationResult) -> int:
    return log_outcome(result.success, result.message, result.warnings)


def _show_installed(kind: PackageKind, records: list[PackageRecord], table: bool) -> int:
    if table and records:
        title = "Installed Libraries" if kind is PackageKind.LIBRARY else "Installed Cores"
        _print_table(title, records, by_maintainer=kind is PackageKind.CORE)
    else:
        log(format_package_list(kind, records))
    return 0


def lib_command(manager: PackageManager, args: CommandArgs) -> int:
    """Run a `lib` subcommand.

    Examples:
        arduino-pkg lib install FastLED
        arduino-pkg lib install-zip ./Servo.zip
        arduino-pkg lib uninstall FastLED
        arduino-pkg lib search led
        arduino-pkg lib info Servo
        arduino-pkg lib list --table
    """
    action = args.action
    if action == "install":
        log(f"Installing library {args.target}...")
        result = manager.install_library(args.target or "")
        if result.success:
            record = result.details["record"]
            log_detail(f"Version: {record.version}")
            log_detail(f"Metadata source: {result.details['source']}", verbose_only=True)
        return _report(result)

    if action == "install-zip":
        log(f"Installing library from archive {args.target}...")
        return _report(manager.install_from_archive(args.target or ""))

    if action == "uninstall":
        return _report(manager.uninstall_library(args.target or ""))

    if action == "search":
        result = manager.search_libraries(args.target or "")
        if args.table and result.details["results"]:
            _print_table(f"Search results for '{args.target}'", result.details["results"])
            return 0
        log(result.message)
        return 0

    if action == "info":
        result = manager.library_info(args.target or "")
        if not result.success:
            return _report(result)
        log(result.message)
        return 0

    if action == "list":
        return _show_installed(PackageKind.LIBRARY, manager.list_libraries(), args.table)

    log_error(f"Unknown lib command: {action}")
    return 2


def core_command(manager: PackageManager, args: CommandArgs) -> int:
    """Run a `core` subcommand."""
    if args.action == "install":
        return _report(manager.install_core(args.target or ""))

    if args.action == "list":
        return _show_installed(PackageKind.CORE, manager.list_cores(), args.table)

    log_error(f"Unknown core command: {args.action}")
    return 2


def run_command(args: CommandArgs) -> int:
    """Initialize a manager for ``args.data_dir`` and dispatch the command.

    Returns:
        Process exit code
    """
    settings = Settings.from_env(args.data_dir)
    with PackageManager(settings) as manager:
        init_result = manager.init(refresh_index=False)
        if not init_result.success:
            return _report(init_result)
        log_detail(f"Data directory: {manager.layout.root}", verbose_only=True)

        if args.group == "lib":
            return lib_command(manager, args)
        if args.group == "core":
            return core_command(manager, args)
        if args.group == "update-index":
            log("Updating package index...")
            return _report(manager.update_index())
        if args.group == "prune":
            result = manager.prune()
            code = _report(result)
            for name in result.details.get("removed", []):
                log_detail(f"Removed: {name}")
            return code

    log_error(f"Unknown command: {args.group}")
    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="arduino-pkg",
        description="arduino-pkg - Arduino library and core manager",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"arduino-pkg {__version__}",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Data directory (default: $ARDUINO_DATA_DIR, the platform directory, or ./arduino_data)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Library commands
    lib_parser = subparsers.add_parser("lib", help="Manage libraries")
    lib_sub = lib_parser.add_subparsers(dest="action", help="Library command")
    for action, target, help_text in (
        ("install", "name", "Install a library by name"),
        ("install-zip", "archive", "Install a library from a local archive (.zip, .tar.gz, .tgz, .tar.xz)"),
        ("uninstall", "name", "Uninstall a library"),
        ("search", "term", "Search libraries by name"),
        ("info", "name", "Show library details"),
    ):
        action_parser = lib_sub.add_parser(action, help=help_text)
        action_parser.add_argument(target, help=help_text)
        if action == "search":
            action_parser.add_argument("--table", action="store_true", help="Render results as a table")
    list_parser = lib_sub.add_parser("list", help="List installed libraries")
    list_parser.add_argument("--table", action="store_true", help="Render results as a table")

    # Core commands
    core_parser = subparsers.add_parser("core", help="Manage platform cores")
    core_sub = core_parser.add_subparsers(dest="action", help="Core command")
    core_install = core_sub.add_parser("install", help="Install a core by name")
    core_install.add_argument("name", help="Core name")
    core_list = core_sub.add_parser("list", help="List installed cores")
    core_list.add_argument("--table", action="store_true", help="Render results as a table")

    subparsers.add_parser("update-index", help="Download the package index")
    subparsers.add_parser("prune", help="Remove library directories without a usable descriptor")

    return parser


def _target(parsed_args: argparse.Namespace) -> Optional[str]:
    for attr in ("name", "archive", "term"):
        value = getattr(parsed_args, attr, None)
        if value is not None:
            return value
    return None


def main(argv: Optional[list[str]] = None) -> None:
    """arduino-pkg - Arduino library and core manager."""
    parser = build_parser()
    parsed_args = parser.parse_args(argv)

    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    if parsed_args.command in ("lib", "core") and not parsed_args.action:
        parser.error(f"{parsed_args.command} requires a subcommand")

    args = CommandArgs(
        group=parsed_args.command,
        action=getattr(parsed_args, "action", None),
        target=_target(parsed_args),
        data_dir=parsed_args.data_dir,
        table=getattr(parsed_args, "table", False),
        verbose=parsed_args.verbose,
    )

    init_timer()
    set_verbose(args.verbose)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    log_header("arduino-pkg", __version__)

    try:
        sys.exit(run_command(args))
    except KeyboardInterrupt:
        log_warning("Interrupted")
        sys.exit(130)  # Standard exit code for SIGINT


if __name__ == "__main__":
    main()
