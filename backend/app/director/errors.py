"""Director error types.

Configuration problems are fatal at load time (``ConfigError``). Everything that
can go wrong during a tick is reported through diagnostics instead of raised.
"""
from __future__ import annotations


class DirectorError(Exception):
    """Base class for narrative director errors."""


class ConfigError(DirectorError):
    """Director configuration or storylet content failed validation."""

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        self.problems = list(problems or [])
        if self.problems:
            message = f"{message}: " + "; ".join(self.problems)
        super().__init__(message)


class StoryletLookupError(DirectorError, LookupError):
    """A storylet key no longer resolves in the library."""

    def __init__(self, key: int) -> None:
        self.key = key
        super().__init__(f"storylet key {key} not found in library")


class InvariantViolation(DirectorError):
    """A bounded value was found outside its declared range."""

    def __init__(self, name: str, value: float, low: float, high: float) -> None:
        self.name = name
        self.value = value
        self.low = low
        self.high = high
        super().__init__(f"{name}={value!r} outside [{low}, {high}]")


class SnapshotError(DirectorError):
    """A persisted director snapshot could not be read."""
