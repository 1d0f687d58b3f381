"""Build runtime objects from configuration models."""

from __future__ import annotations

from ..analysis.analyzers import SpotCounterAnalyzer
from ..control.controllers import BoundedController, PIDController, ProportionalController
from ..core.config import (
    CameraConfig,
    ControllerConfig,
    DetectorConfig,
    SimulationConfig,
    SourceConfig,
)
from ..physics.camera import Camera
from ..sources.base import BaseSource
from ..sources.fluorophores import FluorophoreSource
from ..sources.obstructors import GoldBead, Obstructor
from ..sources.static import StaticSpotSource
from .context import SimulationContext
from .loop import ClosedLoopSimulator


def build_camera(cfg: CameraConfig) -> Camera:
    return Camera(
        res_x=cfg.res_x,
        res_y=cfg.res_y,
        acq_speed=cfg.acq_speed,
        readout_noise=cfg.readout_noise,
        dark_current=cfg.dark_current,
        quantum_efficiency=cfg.quantum_efficiency,
        gain=cfg.gain,
        pixel_size=cfg.pixel_size_um,
        NA=cfg.NA,
        wavelength=cfg.wavelength_um,
        magnification=cfg.magnification,
        radius=cfg.radius_um,
    )


def build_obstructors(cfg: SourceConfig) -> list[Obstructor]:
    return [GoldBead(b.x, b.y, b.brightness, b.sigma) for b in cfg.gold_beads]


def build_source(cfg: SourceConfig, camera: Camera) -> BaseSource:
    obstructors = build_obstructors(cfg)
    if cfg.kind == "static":
        return StaticSpotSource(
            camera.shape,
            cfg.positions,
            brightness=cfg.brightness,
            background=cfg.background,
            camera=None if cfg.noiseless else camera,
            obstructors=obstructors,
            seed=cfg.seed,
        )

    return FluorophoreSource(
        camera,
        n_emitters=cfg.n_emitters,
        photons=cfg.photons,
        activation_rate=cfg.activation_rate,
        p_off=cfg.p_off,
        p_bleach=cfg.p_bleach,
        background=cfg.background,
        obstructors=obstructors,
        seed=cfg.seed,
    )


def build_analyzer(cfg: DetectorConfig) -> SpotCounterAnalyzer:
    return SpotCounterAnalyzer(noise_tolerance=cfg.noise_tolerance, box_size=cfg.box_size)


def build_controller(cfg: ControllerConfig) -> BoundedController:
    if cfg.kind == "proportional":
        return ProportionalController(
            cfg.kp,
            setpoint=cfg.setpoint,
            lower=cfg.lower,
            upper=cfg.upper,
            initial_output=cfg.initial_output,
        )
    return PIDController(
        cfg.kp,
        cfg.ki,
        cfg.kd,
        setpoint=cfg.setpoint,
        lower=cfg.lower,
        upper=cfg.upper,
        initial_output=cfg.initial_output,
    )


def build_simulator(
    cfg: SimulationConfig, context: SimulationContext | None = None
) -> ClosedLoopSimulator:
    """Assemble a simulator; every component validates before any frame exists."""
    camera = build_camera(cfg.camera)
    simulator = ClosedLoopSimulator(
        build_source(cfg.source, camera),
        build_analyzer(cfg.detector),
        build_controller(cfg.controller),
        refresh_period=cfg.run.refresh_period,
    )
    if context is not None:
        context.add_simulator(simulator, source_config=cfg.source)
    return simulator


__all__ = [
    "build_camera",
    "build_source",
    "build_analyzer",
    "build_controller",
    "build_simulator",
]
