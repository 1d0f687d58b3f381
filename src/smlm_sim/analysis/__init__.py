"""Frame analysis: spot detection and analyzers."""

from .analyzers import SpotCounterAnalyzer
from .base import Analyzer
from .spot_counter import Spot, SpotDetector, SpotStatistics

__all__ = [
    "Analyzer",
    "Spot",
    "SpotCounterAnalyzer",
    "SpotDetector",
    "SpotStatistics",
]
