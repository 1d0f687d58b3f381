"""Concrete analyzers built on the spot detector."""

from __future__ import annotations

import math

import numpy as np

from ..core.errors import ShapeError
from .spot_counter import PreFilter, SpotDetector, SpotStatistics


class SpotCounterAnalyzer:
    """Counts spots per frame and keeps the per-frame statistics of a run.

    The intermittent output is the spot count of the last frame. The batch
    output is the mean spot count over the frames processed since the last
    batch call, NaN when no frame was processed in between.
    """

    name = "SpotCounter"

    def __init__(
        self,
        noise_tolerance: float = 100.0,
        box_size: int = 5,
        pre_filter: PreFilter | None = None,
    ) -> None:
        self.detector = SpotDetector(noise_tolerance, box_size, pre_filter)
        self.statistics: list[SpotStatistics] = []
        self._window: list[float] = []

    def process_image(
        self,
        pixels: np.ndarray,
        width: int,
        height: int,
        pixel_size: float = 1.0,
        frame_duration_ms: float = 10.0,
    ) -> None:
        frame = np.asarray(pixels)
        if frame.ndim == 1:
            if frame.size != width * height:
                raise ShapeError(
                    f"Flat pixel buffer of {frame.size} does not match {width}x{height}",
                    expected=(height, width),
                    actual=frame.shape,
                )
            frame = frame.reshape(height, width)
        elif frame.shape != (height, width):
            raise ShapeError(
                f"Frame shape {frame.shape} does not match {width}x{height}",
                expected=(height, width),
                actual=frame.shape,
            )

        stats = self.detector.analyze(frame)
        self.statistics.append(stats)
        self._window.append(float(stats.count))

    def get_intermittent_output(self) -> float:
        if not self.statistics:
            return math.nan
        return float(self.statistics[-1].count)

    def get_batch_output(self) -> float:
        if not self._window:
            return math.nan
        value = float(np.mean(self._window))
        self._window = []
        return value

    def get_output_values(self, frame: int) -> dict[str, float]:
        """Statistics of a processed frame, 1-based."""
        if not 1 <= frame <= len(self.statistics):
            raise IndexError(f"Frame {frame} outside 1..{len(self.statistics)}")
        return self.statistics[frame - 1].as_dict()

    def get_processed_count(self) -> int:
        return len(self.statistics)

    def get_output_keys(self) -> list[str]:
        return list(SpotStatistics(0, math.nan, math.nan, math.nan).as_dict())

    def get_custom_parameters(self) -> dict[str, float]:
        return {
            "noise-tolerance": self.detector.noise_tolerance,
            "box-size": self.detector.box_size,
        }

    def get_name(self) -> str:
        return self.name


__all__ = ["SpotCounterAnalyzer"]
