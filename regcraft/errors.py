"""Shared exceptions for the regcraft compilation pipeline.

Every failure is fatal to the invocation that raised it; the command line
surfaces the message as diagnostic text and exits with a nonzero status.
"""

from pathlib import Path
from typing import Optional, Union


class RegCraftError(Exception):
    """Base class for errors raised by regcraft."""


class MalformedElement(RegCraftError):
    """Required structural or textual data is missing or unparsable."""

    def __init__(
        self,
        message: str,
        element_path: str,
        file_path: Optional[Union[str, Path]] = None,
        line: Optional[int] = None,
    ):
        self.reason = message
        self.element_path = element_path
        self.file_path = Path(file_path) if file_path is not None else None
        self.line = line
        super().__init__(self._format_message(message))

    def _format_message(self, message: str) -> str:
        """Format error message with file, line and element information."""
        parts = []
        if self.file_path:
            parts.append(f"File: {self.file_path}")
        if self.line is not None:
            parts.append(f"Line: {self.line}")
        parts.append(f"Element: {self.element_path}")
        parts.append(message)
        return " | ".join(parts)


class LayoutConflict(RegCraftError):
    """Two elements of the device model conflict with each other.

    ``first`` and ``second`` are human-readable element names
    (e.g. ``field CR1.SPE``), the ranges are the conflicting bit or byte ranges.
    """

    def __init__(
        self,
        first: str,
        first_range: str,
        second: str,
        second_range: str,
        reason: str,
    ):
        self.first = first
        self.first_range = first_range
        self.second = second
        self.second_range = second_range
        self.reason = reason
        super().__init__(
            f"{reason}: {first} {first_range} conflicts with {second} {second_range}"
        )


class PlannerInvariantViolation(RegCraftError):
    """An internal invariant was broken after validation. Always a bug."""


class ConfigError(RegCraftError):
    """The generator configuration file could not be loaded."""
