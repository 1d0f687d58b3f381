"""Spot detection and nearest-neighbor statistics for single frames.

A pixel is reported as a spot when it is the strict maximum of the
``box_size x box_size`` neighborhood centered on it and exceeds the brightest
of its neighbors by at least ``noise_tolerance``. Neighborhoods are truncated
at the frame border.

Every spot is represented by a square region of side ``box_size`` centered on
the maximum. Statistics are computed on the center-to-center distance from
each region to its nearest neighbor.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from scipy.ndimage import maximum_filter

from ..core.errors import ConfigError

PreFilter = Callable[[np.ndarray], np.ndarray]


@dataclass(frozen=True)
class Spot:
    """A detected local maximum.

    Attributes:
        x, y: Pixel coordinates of the maximum (column, row)
        size: Side of the bounding box in pixels
    """

    x: int
    y: int
    size: int

    @property
    def bounds(self) -> tuple[int, int, int, int]:
        """Bounding box as (x0, y0, width, height)."""
        half = self.size // 2
        return (self.x - half, self.y - half, self.size, self.size)

    @property
    def center(self) -> tuple[float, float]:
        """Geometric center of the bounding box."""
        x0, y0, w, h = self.bounds
        return (x0 + w / 2.0, y0 + h / 2.0)


@dataclass(frozen=True)
class SpotStatistics:
    """Per-frame reduction of detected spots.

    Distance statistics are NaN when fewer than two spots were found.
    """

    count: int
    min_distance: float
    mean_distance: float
    p10_distance: float

    def as_dict(self) -> dict[str, float]:
        return {
            "spot-count": float(self.count),
            "min-dist": self.min_distance,
            "mean-dist": self.mean_distance,
            "p10-dist": self.p10_distance,
        }


def find_local_maxima(frame: np.ndarray, box_size: int, noise_tolerance: float) -> np.ndarray:
    """Locate maxima that stand out of their neighborhood by ``noise_tolerance``.

    Args:
        frame: 2-D image
        box_size: Odd side length of the neighborhood
        noise_tolerance: Minimum margin over the brightest neighbor

    Returns:
        Integer array of shape (n, 2) holding (row, col) of each maximum, in
        row-major order
    """
    img = np.asarray(frame, dtype=np.float64)
    if img.ndim != 2:
        raise ValueError(f"Expected a 2-D frame, got shape {img.shape}")

    if box_size == 1:
        neighbor_max = np.full(img.shape, -np.inf)
    else:
        footprint = np.ones((box_size, box_size), dtype=bool)
        footprint[box_size // 2, box_size // 2] = False
        # Pixels outside the frame never win, so the box is truncated at borders.
        neighbor_max = maximum_filter(img, footprint=footprint, mode="constant", cval=-np.inf)

    margin = img - neighbor_max
    peaks = (margin > 0) & (margin >= noise_tolerance)
    return np.argwhere(peaks)


def nearest_neighbor_distances(spots: list[Spot]) -> np.ndarray:
    """Distance from each spot center to the closest other spot center.

    Returns an empty array for fewer than two spots.
    """
    if len(spots) < 2:
        return np.empty(0, dtype=np.float64)

    centers = np.array([s.center for s in spots], dtype=np.float64)
    diff = centers[:, None, :] - centers[None, :, :]
    dist = np.sqrt(np.sum(diff**2, axis=-1))
    np.fill_diagonal(dist, np.inf)
    return dist.min(axis=1)


def p10_index(count: int) -> int:
    """Index of the 10th percentile in a sorted array of length ``count``.

    ``ceil(count / 10)`` clamped to the last valid index.
    """
    return min(math.ceil(count / 10.0), count - 1)


def summarize(spots: list[Spot]) -> SpotStatistics:
    """Reduce a list of spots to count and nearest-neighbor statistics."""
    count = len(spots)
    distances = np.sort(nearest_neighbor_distances(spots))
    if distances.size == 0:
        return SpotStatistics(count, math.nan, math.nan, math.nan)

    return SpotStatistics(
        count=count,
        min_distance=float(distances[0]),
        mean_distance=float(distances.mean()),
        p10_distance=float(distances[p10_index(distances.size)]),
    )


class SpotDetector:
    """Stateless spot detector with fixed configuration.

    Changing ``noise_tolerance`` or ``box_size`` requires a new instance.
    """

    __slots__ = ("_noise_tolerance", "_box_size", "_pre_filter")

    def __init__(
        self,
        noise_tolerance: float = 100.0,
        box_size: int = 5,
        pre_filter: PreFilter | None = None,
    ) -> None:
        if isinstance(box_size, bool) or int(box_size) != box_size:
            raise ConfigError(f"box_size must be an integer, got {box_size!r}")
        box_size = int(box_size)
        if box_size < 1 or box_size % 2 == 0:
            raise ConfigError(f"box_size must be a positive odd integer, got {box_size}")
        if not (math.isfinite(noise_tolerance) and noise_tolerance >= 0):
            raise ConfigError(f"noise_tolerance must be non-negative, got {noise_tolerance}")

        self._noise_tolerance = float(noise_tolerance)
        self._box_size = box_size
        self._pre_filter = pre_filter

    @property
    def noise_tolerance(self) -> float:
        return self._noise_tolerance

    @property
    def box_size(self) -> int:
        return self._box_size

    def detect(self, frame: np.ndarray) -> list[Spot]:
        """Find spots in a frame."""
        img = np.asarray(frame)
        if self._pre_filter is not None:
            img = self._pre_filter(img)
        maxima = find_local_maxima(img, self._box_size, self._noise_tolerance)
        return [Spot(x=int(c), y=int(r), size=self._box_size) for r, c in maxima]

    def analyze(self, frame: np.ndarray) -> SpotStatistics:
        """Detect spots and reduce them to per-frame statistics."""
        return summarize(self.detect(frame))

    def __repr__(self) -> str:
        return (
            f"SpotDetector(noise_tolerance={self._noise_tolerance}, "
            f"box_size={self._box_size})"
        )


__all__ = [
    "Spot",
    "SpotStatistics",
    "SpotDetector",
    "find_local_maxima",
    "nearest_neighbor_distances",
    "p10_index",
    "summarize",
]
