"""Constant obstructions of the field of view (beads, dirt)."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np

from ..core.errors import ConfigError


@runtime_checkable
class Obstructor(Protocol):
    def apply_to(self, pixels: np.ndarray) -> None:
        """Draw the obstruction in place onto a photon image."""
        ...


class GoldBead:
    """Bright, non-blinking fiducial rendered as a Gaussian blob.

    Args:
        x, y: Center in pixels
        brightness: Peak photons per frame
        sigma: Blob width in pixels
    """

    def __init__(self, x: float, y: float, brightness: float, sigma: float = 1.5):
        if brightness < 0 or sigma <= 0:
            raise ConfigError("GoldBead needs non-negative brightness and positive sigma")
        self.x = float(x)
        self.y = float(y)
        self.brightness = float(brightness)
        self.sigma = float(sigma)

    def apply_to(self, pixels: np.ndarray) -> None:
        rows, cols = pixels.shape
        yy, xx = np.mgrid[0:rows, 0:cols]
        blob = np.exp(-((xx - self.x) ** 2 + (yy - self.y) ** 2) / (2.0 * self.sigma**2))
        pixels += self.brightness * blob


__all__ = ["Obstructor", "GoldBead"]
