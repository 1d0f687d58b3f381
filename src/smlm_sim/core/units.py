"""Unit conversion utilities.

Optical lengths are carried in micrometers, loop timing in milliseconds.
"""


def nm_to_um(value: float | int) -> float:
    """Convert nanometers to micrometers."""
    return float(value) / 1000.0


def fps_to_frame_ms(fps: float | int) -> float:
    """Frame duration in milliseconds for an acquisition rate in frames per second."""
    return 1000.0 / float(fps)


__all__ = [
    "nm_to_um",
    "fps_to_frame_ms",
]
