"""Configuration models and I/O for closed-loop simulation.

Pydantic models for the camera, image source, detector, controller and run,
with YAML/JSON I/O. Lengths are micrometers internally; wavelength is
accepted in nanometers.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError
from .units import nm_to_um


class CameraConfig(BaseModel):
    """Optics and sensor of the simulated microscope."""

    res_x: int = Field(default=64, ge=8, le=4096, description="Sensor width in pixels")
    res_y: int = Field(default=64, ge=8, le=4096, description="Sensor height in pixels")
    acq_speed: float = Field(default=100.0, gt=0, description="Frames per second")
    readout_noise: float = Field(default=1.6, ge=0, description="Readout noise, e- rms")
    dark_current: float = Field(default=0.06, ge=0, description="Dark current, e-/s")
    quantum_efficiency: float = Field(default=0.8, gt=0, le=1, description="Photon to e- ratio")
    gain: float = Field(default=6.0, gt=0, description="Analog gain, counts per e-")
    pixel_size_um: float = Field(default=6.45, gt=0, description="Camera pixel pitch")
    NA: float = Field(default=1.3, description="Numerical aperture")
    wavelength_nm: float = Field(default=600.0, description="Emission wavelength")
    magnification: float = Field(default=60.0, gt=0, description="Objective magnification")
    radius_um: float = Field(default=0.1, gt=0, description="Object-space sampling unit")

    @field_validator("NA")
    @classmethod
    def validate_na(cls, v: float) -> float:
        if not 0.01 <= v <= 1.7:
            raise ValueError(f"NA must be between 0.01 and 1.7, got {v}")
        return v

    @field_validator("wavelength_nm")
    @classmethod
    def validate_wavelength(cls, v: float) -> float:
        if not 100 <= v <= 2000:
            raise ValueError(f"Wavelength must be between 100 and 2000 nm, got {v}")
        return v

    @property
    def wavelength_um(self) -> float:
        return nm_to_um(self.wavelength_nm)


class GoldBeadConfig(BaseModel):
    x: float
    y: float
    brightness: float = Field(default=5000.0, ge=0)
    sigma: float = Field(default=1.5, gt=0)


class SourceConfig(BaseModel):
    """Synthetic image source."""

    kind: Literal["fluorophores", "static"] = Field(default="fluorophores")
    seed: int = Field(default=0, description="RNG seed for positions, blinking and noise")
    background: float = Field(default=10.0, ge=0, description="Background photons per pixel")
    gold_beads: list[GoldBeadConfig] = Field(default_factory=list)

    # fluorophores
    n_emitters: int = Field(default=500, ge=0)
    photons: float = Field(default=1000.0, ge=0, description="Photons per on-emitter per frame")
    activation_rate: float = Field(default=0.01, ge=0, description="P(on) per unit power")
    p_off: float = Field(default=0.5, ge=0, le=1)
    p_bleach: float = Field(default=0.01, ge=0, le=1)

    # static
    positions: list[tuple[float, float]] = Field(default_factory=list)
    brightness: float = Field(default=200.0, ge=0)
    noiseless: bool = Field(default=True, description="Static source skips camera blur and noise")

    @model_validator(mode="after")
    def validate_source(self) -> SourceConfig:
        if self.kind == "fluorophores" and self.p_off + self.p_bleach > 1:
            raise ValueError("p_off + p_bleach must not exceed 1")
        if self.kind == "static" and not self.positions:
            raise ValueError("Static source must list at least one emitter position")
        return self


class DetectorConfig(BaseModel):
    """Spot counter settings."""

    noise_tolerance: float = Field(default=100.0, ge=0)
    box_size: int = Field(default=5, ge=1)

    @field_validator("box_size")
    @classmethod
    def validate_box_size(cls, v: int) -> int:
        if v % 2 == 0:
            raise ValueError(f"box_size must be odd, got {v}")
        return v


class ControllerConfig(BaseModel):
    """Feedback law settings."""

    kind: Literal["proportional", "pid"] = Field(default="pid")
    setpoint: float = Field(default=10.0, description="Target analyzer output")
    kp: float = Field(default=0.05, ge=0)
    ki: float = Field(default=0.01, ge=0)
    kd: float = Field(default=0.0, ge=0)
    lower: float = Field(default=0.0, description="Lowest control output")
    upper: float = Field(default=10.0, description="Highest control output")
    initial_output: float | None = Field(default=None)

    @model_validator(mode="after")
    def validate_bounds(self) -> ControllerConfig:
        if self.lower > self.upper:
            raise ValueError(f"lower ({self.lower}) must be <= upper ({self.upper})")
        return self


class RunConfig(BaseModel):
    frames: int = Field(default=100, ge=1, description="Frame budget")
    refresh_period: int = Field(default=1, ge=1, description="Steps between controller updates")
    csv_name: str = Field(default="report.csv")
    tiff_name: str | None = Field(default="stack.tif")
    log_name: str | None = Field(default="run.jsonl")


class SimulationConfig(BaseModel):
    """Complete closed-loop configuration."""

    camera: CameraConfig = Field(default_factory=CameraConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    controller: ControllerConfig = Field(default_factory=ControllerConfig)
    run: RunConfig = Field(default_factory=RunConfig)


def parse_config(data: dict | None) -> SimulationConfig:
    """Validate a raw mapping, raising :class:`ConfigError` on failure."""
    try:
        return SimulationConfig(**(data or {}))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(path: str | Path) -> SimulationConfig:
    """Load configuration from YAML or JSON file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigError: If config is invalid
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Failed to parse YAML config: {e}") from e

    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping, got {type(data).__name__}")
    return parse_config(data)


def save_config(config: SimulationConfig, path: str | Path) -> None:
    """Save configuration to YAML or JSON file, chosen by suffix."""
    path = Path(path)
    data = config.model_dump(mode="json")

    with open(path, "w", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


__all__ = [
    "CameraConfig",
    "GoldBeadConfig",
    "SourceConfig",
    "DetectorConfig",
    "ControllerConfig",
    "RunConfig",
    "SimulationConfig",
    "parse_config",
    "load_config",
    "save_config",
]
