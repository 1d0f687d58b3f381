"""Analyzer protocol: per-frame image reductions fed to a controller."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class Analyzer(Protocol):
    """Reduces each frame of a run to scalar outputs.

    ``get_intermittent_output`` is the reduction of the most recent frame;
    ``get_batch_output`` reduces every frame processed since the previous
    batch call and resets that window.
    """

    def process_image(
        self,
        pixels: np.ndarray,
        width: int,
        height: int,
        pixel_size: float,
        frame_duration_ms: float,
    ) -> None: ...

    def get_intermittent_output(self) -> float: ...

    def get_batch_output(self) -> float: ...

    def get_output_values(self, frame: int) -> dict[str, float]: ...

    def get_output_keys(self) -> list[str]: ...

    def get_processed_count(self) -> int: ...

    def get_custom_parameters(self) -> dict[str, float]: ...

    def get_name(self) -> str: ...


__all__ = ["Analyzer"]
