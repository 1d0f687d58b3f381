"""CSV reports of a run.

Layout::

    #<component>.<key>:<value>,<component>.<key>:<value>,...
    frame-id,<column>,<column>,...
    1,<value>,<value>,...

Numeric fields are written with fixed precision (``%.6f``); NaN is written
as ``nan``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

FLOAT_FORMAT = "{:.6f}"


def format_settings(components: Mapping[str, Mapping[str, float]]) -> str:
    """Join component settings as ``name.key:value`` pairs."""
    pairs = []
    for component, params in components.items():
        for key, value in params.items():
            pairs.append(f"{component}.{key}:{_format_setting(value)}")
    return ",".join(pairs)


def _format_setting(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_value(value: float) -> str:
    value = float(value)
    if math.isnan(value):
        return "nan"
    return FLOAT_FORMAT.format(value)


def write_report(
    path: str | Path,
    settings: Mapping[str, Mapping[str, float]],
    columns: Sequence[str],
    rows: Iterable[tuple[int, Sequence[float]]],
) -> Path:
    """Write a settings line, a column line and one line per frame.

    Args:
        path: Destination CSV file
        settings: Component name → parameter map
        columns: Column names following ``frame-id``
        rows: ``(frame_id, values)`` with one value per column
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="\n") as fh:
        fh.write("#" + format_settings(settings) + "\n")
        fh.write(",".join(["frame-id", *columns]) + "\n")
        for frame_id, values in rows:
            if len(values) != len(columns):
                raise ValueError(
                    f"Frame {frame_id} has {len(values)} values for {len(columns)} columns"
                )
            fh.write(",".join([str(frame_id), *(format_value(v) for v in values)]) + "\n")
    return path


__all__ = ["format_settings", "format_value", "write_report"]
