"""
User-facing console output for arduino-pkg.

Every line carries the time since the command started (MM:SS.cc), so a
slow GitHub lookup or index download shows up in the transcript. Log
records from the package modules go through ``logging`` instead and only
appear with ``--verbose``.

    00:00.04 arduino-pkg v0.1.0
    00:00.05 Installing library FastLED...
    00:01.31       Version: 3.6.0
    00:01.31 Library FastLED installed successfully!
"""

import sys
import time
from collections.abc import Iterable
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: TextIO = sys.stdout
_verbose: bool = True


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Start the command clock and pick the stream output goes to.

    Args:
        output_stream: Destination stream (defaults to sys.stdout)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    _output_stream = output_stream if output_stream is not None else sys.stdout


def set_verbose(verbose: bool) -> None:
    global _verbose
    _verbose = verbose


def get_output_stream() -> TextIO:
    return _output_stream


def format_timestamp() -> str:
    if _start_time is None:
        init_timer()
    elapsed = time.time() - _start_time  # type: ignore[operator]
    minutes, seconds = divmod(elapsed, 60)
    return f"{int(minutes):02d}:{seconds:05.2f}"


def _print(message: str) -> None:
    timestamp = format_timestamp()
    # Package reports span several lines; each keeps the timestamp
    for line in message.split("\n"):
        _output_stream.write(f"{timestamp} {line}\n")
    _output_stream.flush()


def log(message: str, verbose_only: bool = False) -> None:
    if verbose_only and not _verbose:
        return
    _print(message)


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """Log an indented line under the previous message."""
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def log_header(title: str, version: str) -> None:
    _print(f"{title} v{version}")


def log_error(message: str) -> None:
    _print(f"ERROR: {message}")


def log_warning(message: str) -> None:
    _print(f"WARNING: {message}")


def log_outcome(success: bool, message: str, warnings: Iterable[str] = ()) -> int:
    """
    Print the outcome of a package operation followed by its warnings.

    Args:
        success: Whether the operation succeeded
        message: Summary line(s) from the operation
        warnings: Non-fatal problems to list after the summary

    Returns:
        Process exit code (0 on success, 1 on failure)
    """
    if success:
        _print(message)
    else:
        log_error(message)
    for warning in warnings:
        log_warning(warning)
    return 0 if success else 1
