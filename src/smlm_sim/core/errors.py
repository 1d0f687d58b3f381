"""Custom exception types for closed-loop acquisition simulation."""

from __future__ import annotations

from typing import Any


class SimulationError(Exception):
    """Base exception for all simulation errors."""

    pass


class ConfigError(SimulationError, ValueError):
    """Invalid parameters, rejected before any frame is produced."""

    pass


class ShapeError(SimulationError):
    """A frame whose dimensions differ from the rest of the run.

    Fatal for the run. The loop attaches the history it had recorded when the
    error surfaced so callers can still persist it.
    """

    def __init__(
        self,
        message: str,
        expected: tuple[int, ...] | None = None,
        actual: tuple[int, ...] | None = None,
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual
        self.history: list[Any] = []


__all__ = [
    "SimulationError",
    "ConfigError",
    "ShapeError",
]
