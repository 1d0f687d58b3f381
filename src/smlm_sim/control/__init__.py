"""Feedback controllers."""

from .controllers import (
    BoundedController,
    ControlSample,
    Controller,
    PIDController,
    ProportionalController,
)

__all__ = [
    "BoundedController",
    "ControlSample",
    "Controller",
    "PIDController",
    "ProportionalController",
]
