"""Blinking fluorophore population driven by an activation laser.

Each emitter is in one of three states: off (dark, activatable), on
(emitting) or bleached (permanently dark). Every time step:

- an off emitter switches on with probability ``activation_rate * power``
- an on emitter bleaches with probability ``p_bleach``, otherwise it returns
  to off with probability ``p_off``

``power`` is the control signal, clipped to be non-negative. The true signal
of a frame is the number of emitters that were on while it was exposed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Dict

import numpy as np

from ..core.errors import ConfigError
from ..core.units import fps_to_frame_ms
from ..core.logging import get_logger
from ..physics.camera import Camera
from .base import BaseSource
from .obstructors import Obstructor
from .render import blur, place_emitters

logger = get_logger(__name__)

OFF, ON, BLEACHED = 0, 1, 2


class FluorophoreSource(BaseSource):
    """Synthetic SMLM microscope: random emitters, camera PSF and noise.

    Args:
        camera: Camera model; sets frame shape, PSF and noise
        n_emitters: Number of fluorophores scattered uniformly over the frame
        photons: Photons per on-emitter per frame
        activation_rate: Activation probability per unit laser power
        p_off: Probability an on emitter returns to off each step
        p_bleach: Probability an on emitter bleaches each step
        background: Uniform background photons per pixel
        obstructors: Constant obstructions drawn onto every photon image
        seed: RNG seed for positions, blinking and noise
        device: Torch device used for PSF convolution
    """

    name = "Fluorophores"

    def __init__(
        self,
        camera: Camera,
        n_emitters: int = 500,
        photons: float = 1000.0,
        activation_rate: float = 0.01,
        p_off: float = 0.5,
        p_bleach: float = 0.01,
        background: float = 10.0,
        obstructors: Sequence[Obstructor] = (),
        seed: int = 0,
        device: str = "cpu",
    ):
        super().__init__(camera.object_space_pixel_size, fps_to_frame_ms(camera.acq_speed))
        if n_emitters < 0:
            raise ConfigError(f"n_emitters must be non-negative, got {n_emitters}")
        for label, p in (("p_off", p_off), ("p_bleach", p_bleach)):
            if not 0.0 <= p <= 1.0:
                raise ConfigError(f"{label} must be a probability, got {p}")
        if p_off + p_bleach > 1.0:
            raise ConfigError("p_off + p_bleach must not exceed 1")
        if activation_rate < 0 or photons < 0 or background < 0:
            raise ConfigError("activation_rate, photons and background must be non-negative")

        self.camera = camera
        self.photons = float(photons)
        self.activation_rate = float(activation_rate)
        self.p_off = float(p_off)
        self.p_bleach = float(p_bleach)
        self.background = float(background)
        self.obstructors = list(obstructors)
        self.device = device

        self._rng = np.random.default_rng(seed)
        rows, cols = camera.shape
        self.positions = np.column_stack(
            [self._rng.uniform(0, cols, n_emitters), self._rng.uniform(0, rows, n_emitters)]
        )
        self.states = np.full(n_emitters, OFF, dtype=np.int8)

    def _advance(self) -> None:
        power = max(self._control_signal, 0.0)
        p_on = min(self.activation_rate * power, 1.0)
        draw = self._rng.random(self.states.size)

        off = self.states == OFF
        on = self.states == ON

        activate = off & (draw < p_on)
        bleach = on & (draw < self.p_bleach)
        deactivate = on & ~bleach & (draw < self.p_bleach + self.p_off)

        self.states[activate] = ON
        self.states[bleach] = BLEACHED
        self.states[deactivate] = OFF

    def _render(self) -> tuple[np.ndarray, float]:
        self._advance()
        active = self.states == ON

        photons = place_emitters(self.camera.shape, self.positions[active], self.photons)
        photons = blur(photons, self.camera.psf_digital, device=self.device)
        photons += self.background
        for obstructor in self.obstructors:
            obstructor.apply_to(photons)

        frame = self.camera.to_counts(photons, self._rng)
        n_active = int(np.count_nonzero(active))
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Rendered frame",
                {"active": n_active, "bleached": self.bleached_count(), "power": self._control_signal},
            )
        return frame, float(n_active)

    def bleached_count(self) -> int:
        return int(np.count_nonzero(self.states == BLEACHED))

    def get_custom_parameters(self) -> Dict[str, float]:
        return {
            "emitters": float(self.states.size),
            "photons": self.photons,
            "activation_rate": self.activation_rate,
            "p_off": self.p_off,
            "p_bleach": self.p_bleach,
            "background": self.background,
        }


__all__ = ["FluorophoreSource"]
