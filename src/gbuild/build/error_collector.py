"""
Error Collector - Structured error collection for a build run.

Non-fatal failures (scan errors, broken units, failed toolchain steps, failed
installs) are collected here instead of being raised, so one run reports every
problem at once. Worker threads add errors concurrently.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ErrorSeverity(Enum):
    """Severity level of a build error."""

    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


@dataclass
class BuildError:
    """Single build error."""

    severity: ErrorSeverity
    phase: str  # "scan", "resolve", "build", "install", "test"
    directory: Optional[str]
    error_message: str
    target: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def format(self) -> str:
        """Format error as a human-readable line.

        Returns:
            "(in dir) message" when a directory is known, else the message
        """
        if self.directory:
            return f"(in {self.directory}) {self.error_message}"
        return self.error_message


class ErrorCollector:
    """Collects errors during a build run."""

    def __init__(self, max_errors: int = 1000):
        """Initialize error collector.

        Args:
            max_errors: Maximum number of errors to keep
        """
        self.errors: list[BuildError] = []
        self.lock = threading.Lock()
        self.max_errors = max_errors

    def add_error(self, error: BuildError) -> None:
        """Add error to collection.

        Args:
            error: Build error to add
        """
        with self.lock:
            if len(self.errors) >= self.max_errors:
                logging.warning(f"ErrorCollector full ({self.max_errors} errors), dropping oldest")
                self.errors.pop(0)

            self.errors.append(error)

        logging.debug(f"Added {error.severity.value} error in phase {error.phase}: {error.error_message}")

    def add(self, phase: str, message: str, directory: Optional[str] = None, target: Optional[str] = None, severity: ErrorSeverity = ErrorSeverity.ERROR) -> None:
        """Shorthand for add_error()."""
        self.add_error(BuildError(severity=severity, phase=phase, directory=directory, error_message=message, target=target))

    def get_errors(self, severity: Optional[ErrorSeverity] = None) -> list[BuildError]:
        """Get all errors, optionally filtered by severity.

        Args:
            severity: Filter by severity (None = all errors)

        Returns:
            List of build errors
        """
        with self.lock:
            if severity:
                return [e for e in self.errors if e.severity == severity]
            return self.errors.copy()

    def get_errors_by_phase(self, phase: str) -> list[BuildError]:
        """Get errors for a specific phase."""
        with self.lock:
            return [e for e in self.errors if e.phase == phase]

    def has_fatal_errors(self) -> bool:
        """Check if any fatal errors occurred."""
        with self.lock:
            return any(e.severity == ErrorSeverity.FATAL for e in self.errors)

    def has_errors(self) -> bool:
        """Check if any errors (non-warning) occurred."""
        with self.lock:
            return any(e.severity in (ErrorSeverity.ERROR, ErrorSeverity.FATAL) for e in self.errors)

    def format_errors(self) -> list[str]:
        """Format every error as one line, oldest first."""
        with self.lock:
            return [e.format() for e in self.errors]

    def clear(self) -> None:
        """Clear all collected errors."""
        with self.lock:
            self.errors.clear()
