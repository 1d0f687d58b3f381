"""Base protocol and shared bookkeeping for image sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Protocol, runtime_checkable

import numpy as np

from ..io.tiff import write_stack
from ..physics.camera import Camera


@runtime_checkable
class ImageSource(Protocol):
    """Protocol for synthetic microscopes.

    A source produces one frame per call of ``get_next_image`` and reads the
    control signal most recently pushed by the controller. Sources are not
    reentrant.
    """

    def get_next_image(self) -> np.ndarray:
        """Generate the next frame and append it to the internal stack."""
        ...

    def set_control_signal(self, value: float) -> None: ...

    def get_control_signal(self) -> float: ...

    def get_true_signal(self, image_no: int) -> float:
        """Ground-truth signal for a 1-based image number, NaN if unknown."""
        ...

    def increment_time_step(self) -> None:
        """Advance the simulation one step without producing a frame."""
        ...

    def get_image_count(self) -> int: ...

    def get_stack(self) -> List[np.ndarray]: ...

    def save_stack(self, path: str | Path) -> Path: ...

    def get_object_space_pixel_size(self) -> float: ...

    def get_custom_parameters(self) -> Dict[str, float]: ...


class BaseSource(ABC):
    """Abstract source keeping the frame stack, truth signal and control signal."""

    name = "Source"
    camera: Camera | None = None

    def __init__(self, pixel_size_um: float = 1.0, frame_duration_ms: float = 10.0):
        self._control_signal = 0.0
        self._stack: List[np.ndarray] = []
        self._true_signal: List[float] = []
        self._pixel_size_um = float(pixel_size_um)
        self._frame_duration_ms = float(frame_duration_ms)

    @abstractmethod
    def _render(self) -> tuple[np.ndarray, float]:
        """Advance one step and return (frame, true signal)."""

    def _advance(self) -> None:
        """Advance internal state one step without rendering."""

    def get_next_image(self) -> np.ndarray:
        frame, truth = self._render()
        frame = np.asarray(frame, dtype=np.float32)
        frame.setflags(write=False)
        self._stack.append(frame)
        self._true_signal.append(float(truth))
        return frame

    def set_control_signal(self, value: float) -> None:
        self._control_signal = float(value)

    def get_control_signal(self) -> float:
        return self._control_signal

    def get_true_signal(self, image_no: int) -> float:
        if not 1 <= image_no <= len(self._true_signal):
            return float("nan")
        return self._true_signal[image_no - 1]

    def increment_time_step(self) -> None:
        self._advance()

    def get_image_count(self) -> int:
        return len(self._stack)

    def get_stack(self) -> List[np.ndarray]:
        return list(self._stack)

    def save_stack(self, path: str | Path) -> Path:
        metadata = {"source": self.name, "parameters": self.get_custom_parameters()}
        if self.camera is not None:
            metadata["camera"] = self.camera.parameters()
        return write_stack(
            path,
            self._stack,
            metadata=metadata,
            pixel_size_um=self._pixel_size_um,
            frame_duration_ms=self._frame_duration_ms,
        )

    def get_object_space_pixel_size(self) -> float:
        return self._pixel_size_um

    def get_frame_duration_ms(self) -> float:
        return self._frame_duration_ms

    def get_custom_parameters(self) -> Dict[str, float]:
        return {}


__all__ = ["ImageSource", "BaseSource"]
