"""Deterministic source with a fixed set of always-on emitters."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Dict

import numpy as np

from ..core.errors import ConfigError
from ..core.units import fps_to_frame_ms
from ..physics.camera import Camera
from .base import BaseSource
from .obstructors import Obstructor
from .render import blur, place_emitters


class StaticSpotSource(BaseSource):
    """Emitters that never blink, ignore the control signal and stay put.

    Without a camera each emitter is a single pixel of ``brightness`` on a
    flat ``background``, so frames are exact and noise free. With a camera the
    photon image is blurred by its PSF and run through the sensor noise
    pipeline.

    The true signal is the number of emitters inside the frame.
    """

    name = "StaticSpots"

    def __init__(
        self,
        shape: tuple[int, int],
        positions: Sequence[tuple[float, float]],
        brightness: float = 200.0,
        background: float = 0.0,
        camera: Camera | None = None,
        obstructors: Sequence[Obstructor] = (),
        seed: int = 0,
    ):
        if camera is not None:
            shape = camera.shape
            super().__init__(camera.object_space_pixel_size, fps_to_frame_ms(camera.acq_speed))
        else:
            super().__init__()
        if len(shape) != 2 or min(shape) < 1:
            raise ConfigError(f"Frame shape must be two positive sizes, got {shape}")
        if brightness < 0 or background < 0:
            raise ConfigError("brightness and background must be non-negative")

        self.shape = (int(shape[0]), int(shape[1]))
        self.positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        self.brightness = float(brightness)
        self.background = float(background)
        self.camera = camera
        self.obstructors = list(obstructors)
        self._rng = np.random.default_rng(seed)

        photons = place_emitters(self.shape, self.positions, self.brightness)
        if camera is not None:
            photons = blur(photons, camera.psf_digital)
        photons += self.background
        for obstructor in self.obstructors:
            obstructor.apply_to(photons)
        self._photons = photons
        xs, ys = np.rint(self.positions).T
        inside = (xs >= 0) & (xs < self.shape[1]) & (ys >= 0) & (ys < self.shape[0])
        self._truth = float(np.count_nonzero(inside))

    def _render(self) -> tuple[np.ndarray, float]:
        if self.camera is None:
            frame = self._photons.copy()
        else:
            frame = self.camera.to_counts(self._photons, self._rng)
        return frame, self._truth

    def get_custom_parameters(self) -> Dict[str, float]:
        return {
            "emitters": float(len(self.positions)),
            "brightness": self.brightness,
            "background": self.background,
        }


__all__ = ["StaticSpotSource"]
