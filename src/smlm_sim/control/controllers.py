"""Feedback controllers for the acquisition loop.

A controller turns a measurement (e.g. spot count per frame) into a bounded
actuation value (e.g. activation laser power). Every update is recorded as a
:class:`ControlSample` so the output in effect at any step can be recovered.
"""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..core.errors import ConfigError


@dataclass(frozen=True)
class ControlSample:
    """One controller update."""

    step: int
    measurement: float
    setpoint: float
    output: float


@runtime_checkable
class Controller(Protocol):
    """Given a new measurement, produce a new bounded output and remember it."""

    def set_target(self, setpoint: float) -> None: ...

    def next_value(self, measurement: float, step: int | None = None) -> float: ...

    def get_current_output(self) -> float: ...

    def get_setpoint(self) -> float: ...

    def get_history(self, step: int) -> float: ...

    def get_custom_parameters(self) -> dict[str, float]: ...

    def get_name(self) -> str: ...


def _check_finite(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ConfigError(f"{name} must be finite, got {value}")
    return value


def _check_gain(name: str, value: float) -> float:
    value = _check_finite(name, value)
    if value < 0:
        raise ConfigError(f"{name} must be non-negative, got {value}")
    return value


class BoundedController:
    """Shared state for controllers with clamped output and an update log."""

    name = "Controller"

    def __init__(
        self,
        setpoint: float = 0.0,
        lower: float = 0.0,
        upper: float = 1.0,
        initial_output: float | None = None,
    ) -> None:
        self.lower = _check_finite("lower bound", lower)
        self.upper = _check_finite("upper bound", upper)
        if self.lower > self.upper:
            raise ConfigError(f"lower bound {self.lower} exceeds upper bound {self.upper}")

        self.setpoint = _check_finite("setpoint", setpoint)
        start = self.lower if initial_output is None else _check_finite("initial output", initial_output)
        self.initial_output = self.clamp(start)
        self.output = self.initial_output
        self.samples: list[ControlSample] = []

    def clamp(self, value: float) -> float:
        """Limit ``value`` to the output bounds; NaN maps to the lower bound."""
        if math.isnan(value):
            return self.lower
        return min(max(value, self.lower), self.upper)

    def set_target(self, setpoint: float) -> None:
        self.setpoint = _check_finite("setpoint", setpoint)

    def get_setpoint(self) -> float:
        return self.setpoint

    def get_current_output(self) -> float:
        return self.output

    def get_history(self, step: int) -> float:
        """Output in effect before ``step``: the last update recorded at an earlier step."""
        steps = [s.step for s in self.samples]
        idx = bisect.bisect_left(steps, step)
        if idx == 0:
            return self.initial_output
        return self.samples[idx - 1].output

    def next_value(self, measurement: float, step: int | None = None) -> float:
        measurement = float(measurement)
        if step is None:
            step = self.samples[-1].step + 1 if self.samples else 1
        elif self.samples and step <= self.samples[-1].step:
            raise ValueError(f"Controller step {step} does not advance past {self.samples[-1].step}")

        if not math.isfinite(measurement):
            # No usable information this window: hold the previous output.
            output = self.output
        else:
            raw = self._update(self.setpoint - measurement)
            output = self.output if math.isnan(raw) else self.clamp(raw)

        self.output = output
        self.samples.append(ControlSample(step, measurement, self.setpoint, output))
        return output

    def _update(self, error: float) -> float:
        raise NotImplementedError

    def get_custom_parameters(self) -> dict[str, float]:
        return {"setpoint": self.setpoint, "lower": self.lower, "upper": self.upper}

    def get_name(self) -> str:
        return self.name


class ProportionalController(BoundedController):
    """output = clamp(Kp * (setpoint - measurement))."""

    name = "Proportional"

    def __init__(
        self,
        kp: float,
        setpoint: float = 0.0,
        lower: float = 0.0,
        upper: float = 1.0,
        initial_output: float | None = None,
    ) -> None:
        self.kp = _check_gain("kp", kp)
        super().__init__(setpoint, lower, upper, initial_output)

    def _update(self, error: float) -> float:
        return self.kp * error

    def get_custom_parameters(self) -> dict[str, float]:
        return {"kp": self.kp, **super().get_custom_parameters()}


class PIDController(BoundedController):
    """PID law with anti-windup.

    While the error pushes the output past a bound, the integral stops
    growing once the output has reached that bound, so it unwinds at once
    when the error changes sign. The derivative uses the change in error
    since the previous update and is zero on the first one.
    """

    name = "PID"

    def __init__(
        self,
        kp: float,
        ki: float = 0.0,
        kd: float = 0.0,
        setpoint: float = 0.0,
        lower: float = 0.0,
        upper: float = 1.0,
        initial_output: float | None = None,
    ) -> None:
        self.kp = _check_gain("kp", kp)
        self.ki = _check_gain("ki", ki)
        self.kd = _check_gain("kd", kd)
        super().__init__(setpoint, lower, upper, initial_output)
        self.integral = 0.0
        self.previous_error: float | None = None

    def set_target(self, setpoint: float) -> None:
        super().set_target(setpoint)
        # Error history refers to the old setpoint.
        self.previous_error = None

    def _update(self, error: float) -> float:
        derivative = 0.0 if self.previous_error is None else error - self.previous_error
        self.previous_error = error

        p = self.kp * error
        d = self.kd * derivative
        if self.ki == 0:
            return p + d

        integral = self.integral + error
        raw = p + self.ki * integral + d
        if raw > self.upper and error > 0:
            # Accumulate only up to the point where the output reaches the bound.
            integral = max(self.integral, (self.upper - p - d) / self.ki)
        elif raw < self.lower and error < 0:
            integral = min(self.integral, (self.lower - p - d) / self.ki)

        self.integral = integral
        return p + self.ki * integral + d

    def get_custom_parameters(self) -> dict[str, float]:
        return {"kp": self.kp, "ki": self.ki, "kd": self.kd, **super().get_custom_parameters()}


__all__ = [
    "ControlSample",
    "Controller",
    "BoundedController",
    "ProportionalController",
    "PIDController",
]
