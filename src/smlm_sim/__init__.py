"""Closed-loop simulation of single-molecule localization microscopy.

A synthetic microscope emits one noisy frame per step, a spot counter reduces
it to a scalar, and a feedback controller adjusts the activation laser for
the frames that follow.
"""

__version__ = "0.1.0"

__all__ = [
    "analysis",
    "cli",
    "control",
    "core",
    "io",
    "physics",
    "simulator",
    "sources",
]
