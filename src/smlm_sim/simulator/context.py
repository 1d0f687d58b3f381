"""Caller-owned registry of simulators.

Replaces a process-wide manager: each context keeps its own simulators and a
reference to the source configuration most recently used to build one.
"""

from __future__ import annotations

import copy
import itertools
from typing import Any

from .loop import ClosedLoopSimulator


class SimulationContext:
    def __init__(self) -> None:
        self._simulators: dict[int, ClosedLoopSimulator] = {}
        self._ids = itertools.count(1)
        self._most_recent_source_config: Any = None

    def add_simulator(self, simulator: ClosedLoopSimulator, source_config: Any = None) -> int:
        """Register a simulator and return its id.

        ``source_config`` (if given) becomes the most recently used source
        configuration, handy for building the next simulator alike.
        """
        sim_id = next(self._ids)
        simulator.id = sim_id
        self._simulators[sim_id] = simulator
        if source_config is not None:
            self._most_recent_source_config = copy.deepcopy(source_config)
        return sim_id

    def get_simulator(self, sim_id: int) -> ClosedLoopSimulator:
        try:
            return self._simulators[sim_id]
        except KeyError:
            raise KeyError(f"No simulator with id {sim_id}") from None

    def remove_simulator(self, sim_id: int) -> None:
        self.get_simulator(sim_id).id = None
        del self._simulators[sim_id]

    def get_ids(self) -> list[int]:
        return sorted(self._simulators)

    def get_most_recent_source_config(self) -> Any:
        """Copy of the last registered source configuration, or None."""
        return copy.deepcopy(self._most_recent_source_config)

    def __len__(self) -> int:
        return len(self._simulators)


__all__ = ["SimulationContext"]
