"""Camera model: diffraction-limited PSF kernels and sensor noise.

The Airy disk of the objective is approximated by a Gaussian whose FWHM equals
the Airy radius ``0.61 * lambda / NA``. Two kernels are built from it:

- ``psf``: sampled on the object-space grid (one sample per ``radius``)
- ``psf_digital``: magnified onto the camera pixel grid

Both are square, odd-sized and centered, and share the same peak value so
that photon budgets agree whichever grid a convolution runs on.

The sensor pipeline converts an expected-photon image into camera counts:
shot noise, quantum efficiency and analog gain, dark-current electrons and
Gaussian readout noise.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from ..core.errors import ConfigError

# FWHM = 2 * sqrt(2 * ln 2) * sigma
FWHM_TO_SIGMA = 2.0 * math.sqrt(2.0 * math.log(2.0))
AIRY_FACTOR = 0.61


def gaussian_kernel(size: int, sigma: float) -> np.ndarray:
    """Square, centered Gaussian kernel with unit peak.

    Args:
        size: Side length in samples, must be odd
        sigma: Standard deviation in samples

    Raises:
        ConfigError: If ``size`` is not a positive odd integer or sigma <= 0
    """
    if size < 1 or size % 2 != 1:
        raise ConfigError(f"Gaussian kernel size must be a positive odd integer, got {size}")
    if not sigma > 0:
        raise ConfigError(f"Gaussian kernel sigma must be positive, got {sigma}")

    mid = (size - 1) // 2
    steps = np.arange(-mid, mid + 1, dtype=np.float64)
    yy, xx = np.meshgrid(steps, steps, indexing="ij")
    return np.exp(-(xx**2 + yy**2) / (2.0 * sigma**2))


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class Camera:
    """Optical and sensor description of the simulated microscope camera.

    Attributes:
        res_x, res_y: Sensor resolution in pixels
        acq_speed: Acquisition rate in frames per second
        readout_noise: Readout noise in electrons rms
        dark_current: Dark current in electrons per second
        quantum_efficiency: Fraction of photons converted to electrons
        gain: Analog gain in counts per electron
        pixel_size: Camera pixel pitch in micrometers
        NA: Numerical aperture of the objective
        wavelength: Emission wavelength in micrometers
        magnification: Objective magnification
        radius: Object-space sampling unit in micrometers
    """

    res_x: int
    res_y: int
    acq_speed: float
    readout_noise: float
    dark_current: float
    quantum_efficiency: float
    gain: float
    pixel_size: float
    NA: float
    wavelength: float
    magnification: float
    radius: float

    thermal_noise: float = field(init=False)
    quantum_gain: float = field(init=False)
    fwhm: float = field(init=False)
    fwhm_digital: float = field(init=False)
    psf: np.ndarray = field(init=False, repr=False)
    psf_digital: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._validate()

        airy_psf_radius = AIRY_FACTOR * self.wavelength / self.NA
        airy_psf_radius_digital = airy_psf_radius * self.magnification

        fwhm = airy_psf_radius / self.radius
        fwhm_digital = airy_psf_radius_digital / self.pixel_size

        # Both grids use the pixel-space size so the kernels can be swapped.
        psf_size = 2 * int(fwhm_digital) + 1

        psf_digital = gaussian_kernel(psf_size, fwhm_digital / FWHM_TO_SIGMA)
        psf_temp = gaussian_kernel(psf_size, fwhm / FWHM_TO_SIGMA)
        psf = psf_temp * (psf_digital.max() / psf_temp.max())

        object.__setattr__(self, "thermal_noise", self.dark_current / self.acq_speed)
        object.__setattr__(self, "quantum_gain", self.quantum_efficiency * self.gain)
        object.__setattr__(self, "fwhm", fwhm)
        object.__setattr__(self, "fwhm_digital", fwhm_digital)
        object.__setattr__(self, "psf", _frozen(psf))
        object.__setattr__(self, "psf_digital", _frozen(psf_digital))

    def _validate(self) -> None:
        if self.res_x < 1 or self.res_y < 1:
            raise ConfigError(f"Resolution must be positive, got {self.res_x}x{self.res_y}")
        positive = {
            "acq_speed": self.acq_speed,
            "pixel_size": self.pixel_size,
            "NA": self.NA,
            "wavelength": self.wavelength,
            "magnification": self.magnification,
            "radius": self.radius,
            "gain": self.gain,
        }
        for name, value in positive.items():
            if not (math.isfinite(value) and value > 0):
                raise ConfigError(f"{name} must be positive and finite, got {value}")
        if not 0.0 < self.quantum_efficiency <= 1.0:
            raise ConfigError(
                f"quantum_efficiency must be in (0, 1], got {self.quantum_efficiency}"
            )
        if self.readout_noise < 0 or self.dark_current < 0:
            raise ConfigError("readout_noise and dark_current must be non-negative")

    @property
    def shape(self) -> tuple[int, int]:
        """Frame shape as (rows, columns)."""
        return (self.res_y, self.res_x)

    @property
    def object_space_pixel_size(self) -> float:
        """Side of one camera pixel projected into the sample, in micrometers."""
        return self.pixel_size / self.magnification

    def to_counts(self, photons: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """Run an expected-photon image through the sensor noise pipeline.

        Args:
            photons: Expected photons per pixel, shape ``(res_y, res_x)``
            rng: Random generator driving every noise source

        Returns:
            Non-negative float32 image in camera counts
        """
        photons = np.clip(np.asarray(photons, dtype=np.float64), 0.0, None)
        signal = self.quantum_gain * rng.poisson(photons)
        thermal = self.gain * rng.poisson(self.thermal_noise, size=photons.shape)
        readout = rng.normal(0.0, self.readout_noise, size=photons.shape) if self.readout_noise else 0.0
        counts = signal + thermal + readout
        return np.clip(counts, 0.0, None).astype(np.float32)

    def parameters(self) -> dict[str, float]:
        """Scalar settings, used in report headers."""
        return {
            "res_x": self.res_x,
            "res_y": self.res_y,
            "acq_speed": self.acq_speed,
            "readout_noise": self.readout_noise,
            "dark_current": self.dark_current,
            "quantum_efficiency": self.quantum_efficiency,
            "gain": self.gain,
            "pixel_size": self.pixel_size,
            "NA": self.NA,
            "wavelength": self.wavelength,
            "magnification": self.magnification,
            "radius": self.radius,
        }


__all__ = [
    "Camera",
    "gaussian_kernel",
    "FWHM_TO_SIGMA",
]
