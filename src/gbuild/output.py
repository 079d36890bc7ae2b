"""
Centralized logging and output module for gbuild.

This module provides timestamped output from program launch to help audit
where time is spent during builds. All output is prefixed with elapsed time
in MM:SS.cc format (minutes:seconds.centiseconds).

Example output:
    00:00.12 gbuild v0.3.0
    00:00.15 (in net/http) building "net/http"
    00:01.23      compile 4 sources
    00:01.45 Built 3 targets

Every write goes through a single lock, so concurrent build workers can log
and flush captured toolchain output without interleaving inside a line.

Usage:
    from gbuild.output import log, log_detail, init_timer

    init_timer()
    log("Scanning . ...")
    log_detail("found 12 units")
"""

import sys
import threading
import time
from types import TracebackType
from typing import Optional, TextIO

# Global state for the timer
_start_time: Optional[float] = None
_output_stream: TextIO = sys.stdout
_verbose: bool = False
_output_file: Optional[TextIO] = None
_write_lock = threading.RLock()


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    Call this at program startup to set the reference time for all timestamps.
    If not called explicitly, it will be called automatically on first log.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def reset_timer() -> None:
    """Reset the timer to current time."""
    global _start_time
    _start_time = time.time()


def set_output_stream(output_stream: TextIO) -> None:
    """
    Redirect all output to another stream.

    Args:
        output_stream: Stream that receives every line
    """
    global _output_stream
    with _write_lock:
        _output_stream = output_stream


def get_output_stream() -> TextIO:
    """Return the stream currently receiving output."""
    return _output_stream


def set_verbose(verbose: bool) -> None:
    """
    Set verbose mode for logging.

    Args:
        verbose: If True, all messages are printed. If False, only non-verbose messages.
    """
    global _verbose
    _verbose = verbose


def is_verbose() -> bool:
    """Return True when verbose output is enabled."""
    return _verbose


def set_output_file(output_file: Optional[TextIO]) -> None:
    """
    Set a file to receive all log output (in addition to the output stream).

    Args:
        output_file: File object to receive output, or None to disable file output
    """
    global _output_file
    _output_file = output_file


def get_elapsed() -> float:
    """
    Get elapsed time since timer initialization.

    Returns:
        Elapsed time in seconds
    """
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore


def format_timestamp() -> str:
    """
    Format the current elapsed time as MM:SS.cc.

    Returns:
        Formatted timestamp string
    """
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _emit(text: str) -> None:
    with _write_lock:
        _output_stream.write(text)
        _output_stream.flush()

        if _output_file is not None:
            _output_file.write(text)
            _output_file.flush()


def _print(message: str, end: str = "\n") -> None:
    """
    Internal print function with timestamp.

    Args:
        message: Message to print
        end: End character (default newline)
    """
    _emit(f"{format_timestamp()} {message}{end}")


def write_block(text: str) -> None:
    """
    Write a block of raw text (e.g. captured toolchain output) atomically.

    The block is written without timestamps and is never split by
    lines logged from other threads.

    Args:
        text: Text to write; a trailing newline is added if missing
    """
    if not text:
        return
    if not text.endswith("\n"):
        text += "\n"
    _emit(text)


def log(message: str, verbose_only: bool = False) -> None:
    """
    Log a message with timestamp.

    Args:
        message: Message to log
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(message)


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """
    Log a build phase message.

    Format: [N/M] message

    Args:
        phase: Current phase number
        total: Total number of phases
        message: Phase description
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"[{phase}/{total}] {message}")


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """
    Log a detail message (indented).

    Args:
        message: Detail message
        indent: Number of spaces to indent (default 6)
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def log_unit(directory: str, message: str, verbose_only: bool = False) -> None:
    """
    Log a message scoped to a unit directory.

    Format: (in dir) message

    Args:
        directory: Unit directory
        message: Message text
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"(in {directory}) {message}")


def log_header(title: str, version: str) -> None:
    """
    Log a header message (e.g., program startup).

    Args:
        title: Program title
        version: Version string
    """
    _print(f"{title} v{version}")


def log_build_complete(build_time: float, verbose_only: bool = False) -> None:
    """
    Log build completion message.

    Args:
        build_time: Total build time in seconds
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"Build time: {build_time:.2f}s")


def log_error(message: str) -> None:
    """
    Log an error message.

    Args:
        message: Error message
    """
    _print(f"ERROR: {message}")


def log_warning(message: str) -> None:
    """
    Log a warning message.

    Args:
        message: Warning message
    """
    _print(f"WARNING: {message}")


def log_success(message: str) -> None:
    """
    Log a success message.

    Args:
        message: Success message
    """
    _print(message)


class TimedLogger:
    """
    Context manager for logging with elapsed time tracking.

    Usage:
        with TimedLogger("Scanning source tree") as logger:
            # Do scan
            logger.detail("found 10 units")
        # Automatically logs completion time
    """

    def __init__(self, operation: str, phase: Optional[tuple[int, int]] = None, verbose_only: bool = False):
        """
        Initialize timed logger.

        Args:
            operation: Description of the operation
            phase: Optional (current, total) phase numbers
            verbose_only: If True, only print if verbose mode is enabled
        """
        self.operation = operation
        self.phase = phase
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        if self.phase:
            log_phase(self.phase[0], self.phase[1], f"{self.operation}...", self.verbose_only)
        else:
            log(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)", verbose_only=self.verbose_only)
        return None

    def detail(self, message: str) -> None:
        """Log a detail message within this operation."""
        log_detail(message, verbose_only=self.verbose_only)

    def log(self, message: str) -> None:
        """Log a message within this operation."""
        log(message, self.verbose_only)
