"""Synthetic image sources and field-of-view obstructions."""

from .base import BaseSource, ImageSource
from .fluorophores import FluorophoreSource
from .obstructors import GoldBead, Obstructor
from .static import StaticSpotSource

__all__ = [
    "BaseSource",
    "FluorophoreSource",
    "GoldBead",
    "ImageSource",
    "Obstructor",
    "StaticSpotSource",
]
