"""Closed-loop acquisition: source → analyzer → controller → source.

Every step generates one frame, analyzes it and, on refresh steps, updates
the controller and pushes its new output to the source. The output computed
at step ``i`` first affects frame ``i + 1``.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path

import numpy as np

from ..analysis.base import Analyzer
from ..control.controllers import Controller
from ..core.errors import ConfigError, ShapeError, SimulationError
from ..core.logging import get_logger
from ..sources.base import ImageSource
from .report import write_report

logger = get_logger(__name__)

DEFAULT_FRAME_DURATION_MS = 10.0


@dataclass(frozen=True)
class HistoryEntry:
    """State of the loop after one step."""

    step: int
    true_signal: float
    analyzer_output: float
    controller_output: float
    controller_setpoint: float


class ClosedLoopSimulator:
    """Drives an image source, an analyzer and a controller in lockstep.

    Args:
        source: Synthetic microscope
        analyzer: Per-frame reduction feeding the controller
        controller: Feedback law whose output is the source's control signal
        refresh_period: Controller updates every ``refresh_period`` steps
    """

    def __init__(
        self,
        source: ImageSource,
        analyzer: Analyzer,
        controller: Controller,
        refresh_period: int = 1,
    ):
        if int(refresh_period) != refresh_period or refresh_period < 1:
            raise ConfigError(f"refresh_period must be a positive integer, got {refresh_period}")

        self.source = source
        self.analyzer = analyzer
        self.controller = controller
        self.refresh_period = int(refresh_period)
        self.id: int | None = None

        self.history: list[HistoryEntry] = []
        self.frame_shape: tuple[int, ...] | None = None
        self._stop_requested = False
        self.aborted = False

        self.source.set_control_signal(self.controller.get_current_output())
        self._log = logger

    @property
    def image_count(self) -> int:
        return len(self.history)

    def _frame_duration_ms(self) -> float:
        getter = getattr(self.source, "get_frame_duration_ms", None)
        return float(getter()) if getter is not None else DEFAULT_FRAME_DURATION_MS

    def _check_shape(self, frame: np.ndarray) -> None:
        if frame.ndim != 2:
            raise ShapeError(f"Frame must be 2-D, got shape {frame.shape}", actual=frame.shape)
        if self.frame_shape is None:
            self.frame_shape = frame.shape
        elif frame.shape != self.frame_shape:
            raise ShapeError(
                f"Frame {self.image_count + 1} has shape {frame.shape}, "
                f"expected {self.frame_shape}",
                expected=self.frame_shape,
                actual=frame.shape,
            )

    def step(self) -> HistoryEntry:
        """Generate, analyze and (on refresh steps) control one frame.

        Raises:
            ShapeError: If the frame's dimensions differ from the first frame.
                The history so far is attached to the error and the simulator
                refuses further steps, since the source already holds the
                rejected frame.
            SimulationError: If a previous step was aborted
        """
        if self.aborted:
            raise SimulationError(
                f"Simulator aborted after {self.image_count} frames; build a new one to continue"
            )
        step = self.image_count + 1

        try:
            frame = np.asarray(self.source.get_next_image())
            self._check_shape(frame)
            height, width = frame.shape
            self.analyzer.process_image(
                frame,
                width,
                height,
                self.source.get_object_space_pixel_size(),
                self._frame_duration_ms(),
            )
        except ShapeError as exc:
            self.aborted = True
            exc.history = list(self.history)
            raise

        if step % self.refresh_period == 0:
            measurement = self.analyzer.get_batch_output()
            output = self.controller.next_value(measurement, step)
            self.source.set_control_signal(output)
            self._log.debug(
                "Controller refresh",
                {"step": step, "measurement": measurement, "output": output},
            )

        entry = HistoryEntry(
            step=step,
            true_signal=float(self.source.get_true_signal(step)),
            analyzer_output=float(self.analyzer.get_intermittent_output()),
            controller_output=float(self.controller.get_current_output()),
            controller_setpoint=float(self.controller.get_setpoint()),
        )
        self.history.append(entry)
        return entry

    def stop(self) -> None:
        """Request the run to end before the next step."""
        self._stop_requested = True

    def execute(
        self,
        no_of_images: int,
        csv_save_path: str | Path | None = None,
        tiff_save_path: str | Path | None = None,
        on_step: Callable[[HistoryEntry], None] | None = None,
    ) -> list[HistoryEntry]:
        """Run up to ``no_of_images`` steps, then persist the results.

        Args:
            no_of_images: Frame budget for this call
            csv_save_path: Optional CSV report destination
            tiff_save_path: Optional TIFF stack destination
            on_step: Called with each new history entry; may call :meth:`stop`

        Returns:
            The full history of this simulator

        Raises:
            ConfigError: If ``no_of_images`` < 1, before any frame is produced
            ShapeError: If a frame's dimensions differ from the first frame;
                the history recorded so far is attached to the error and kept
                on the simulator
            SimulationError: If the simulator was aborted by an earlier run
        """
        if int(no_of_images) != no_of_images or no_of_images < 1:
            raise ConfigError(f"no_of_images must be a positive integer, got {no_of_images}")

        self._stop_requested = False
        run_log = self._log.bind(simulator=self.id)
        run_log.info(
            "Starting closed-loop run",
            {"frames": int(no_of_images), "refresh_period": self.refresh_period},
        )
        t0 = time.perf_counter()

        try:
            for _ in range(int(no_of_images)):
                if self._stop_requested:
                    run_log.info("Run stopped by caller", {"frames": self.image_count})
                    break
                entry = self.step()
                if on_step is not None:
                    on_step(entry)
        except ShapeError as exc:
            run_log.error("Run aborted on frame shape", {"frames": self.image_count, "error": str(exc)})
            raise

        run_log.info(
            "Finished closed-loop run",
            {"frames": self.image_count, "elapsed_s": round(time.perf_counter() - t0, 3)},
        )

        if csv_save_path is not None:
            self.save_to_csv(csv_save_path)
        if tiff_save_path is not None:
            self.source.save_stack(tiff_save_path)
        return list(self.history)

    def report_columns(self) -> list[str]:
        analyzer_name = self.analyzer.get_name()
        return [
            "true-signal",
            "control-signal",
            *(f"{analyzer_name}:{key}" for key in self.analyzer.get_output_keys()),
            f"{self.controller.get_name()}:setpoint",
        ]

    def report_settings(self) -> dict[str, dict[str, float]]:
        source_name = getattr(self.source, "name", type(self.source).__name__)
        return {
            "loop": {"refresh-period": self.refresh_period},
            source_name: self.source.get_custom_parameters(),
            self.analyzer.get_name(): self.analyzer.get_custom_parameters(),
            self.controller.get_name(): self.controller.get_custom_parameters(),
        }

    def save_to_csv(self, path: str | Path) -> Path:
        """Write one line per generated frame."""
        rows = []
        for entry in self.history:
            analyzer_values = self.analyzer.get_output_values(entry.step)
            rows.append(
                (
                    entry.step,
                    [
                        entry.true_signal,
                        entry.controller_output,
                        *analyzer_values.values(),
                        entry.controller_setpoint,
                    ],
                )
            )
        path = write_report(path, self.report_settings(), self.report_columns(), rows)
        self._log.info("Wrote report", {"path": str(path), "frames": len(rows)})
        return path

    def history_records(self) -> list[dict[str, float]]:
        return [asdict(entry) for entry in self.history]


__all__ = ["HistoryEntry", "ClosedLoopSimulator"]
