"""Closed-loop simulation, run bookkeeping and reports."""

from .context import SimulationContext
from .evaluation import evaluate_stack, evaluate_tiff
from .loop import ClosedLoopSimulator, HistoryEntry

__all__ = [
    "ClosedLoopSimulator",
    "HistoryEntry",
    "SimulationContext",
    "evaluate_stack",
    "evaluate_tiff",
]
