"""Exception types raised by the chart pipeline.

Library modules raise these; only the CLI turns them into a diagnostic line and
a non-zero exit status.
"""

from __future__ import annotations


class ZiweiError(Exception):
    """Base class for every failure the CLI reports."""


class InputFileError(ZiweiError):
    """Input file is missing, unreadable, or not valid JSON."""


class ValidationError(ZiweiError):
    """A birth or query field is missing or out of range."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field} {message}")
        self.field = field


class DependencyError(ZiweiError):
    """The charting library could not be used."""


class MissingDependencyError(DependencyError):
    """py_iztro is not installed."""


class IncompatibleDependencyError(DependencyError):
    """py_iztro is importable but does not expose the expected API."""


class ChartDataError(ZiweiError):
    """The library built a chart but part of the expected data is absent."""
