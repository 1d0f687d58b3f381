"""TIFF stack I/O for simulated acquisitions.

Stacks are written as 32-bit float ``(frames, y, x)`` with a JSON metadata
block in the ImageDescription tag.
"""

from __future__ import annotations

import json
import platform
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import tifffile
import torch


def _as_stack(data: Union[torch.Tensor, np.ndarray, Sequence[np.ndarray]]) -> np.ndarray:
    if isinstance(data, torch.Tensor):
        data = data.detach().cpu().numpy()
    elif not isinstance(data, np.ndarray):
        frames = list(data)
        if not frames:
            raise ValueError("Cannot write an empty stack")
        data = np.stack([np.asarray(f) for f in frames], axis=0)

    stack = np.asarray(data, dtype=np.float32)
    if stack.ndim == 2:
        stack = stack[np.newaxis, ...]
    if stack.ndim != 3:
        raise ValueError(f"Unsupported data dimensions: {stack.ndim}")
    return np.ascontiguousarray(stack)


def _prepare_metadata(stack: np.ndarray,
                      user_metadata: Optional[Dict],
                      pixel_size_um: float,
                      frame_duration_ms: Optional[float]) -> Dict:
    meta = {
        'units': 'micrometers',
        'pixel_size_um': pixel_size_um,
        'frames': int(stack.shape[0]),
        'shape': list(stack.shape),
        'dtype': 'float32',
        'timestamp': datetime.now().isoformat(),
        'system': {
            'platform': platform.platform(),
            'python_version': platform.python_version(),
            'numpy_version': np.__version__,
            'torch_version': torch.__version__,
        },
    }
    if frame_duration_ms is not None:
        meta['frame_duration_ms'] = float(frame_duration_ms)

    if user_metadata:
        for key, value in user_metadata.items():
            if key not in meta:
                meta[key] = value
    return meta


def write_stack(filename: Union[str, Path],
                frames: Union[torch.Tensor, np.ndarray, Sequence[np.ndarray]],
                metadata: Optional[Dict] = None,
                pixel_size_um: float = 1.0,
                frame_duration_ms: Optional[float] = None) -> Path:
    """Write an ordered frame sequence to a float32 TIFF stack.

    Args:
        filename: Output filename
        frames: ``(frames, y, x)`` array/tensor, a single 2-D frame, or a
            sequence of equally shaped 2-D frames
        metadata: Additional metadata merged into the description block
        pixel_size_um: Object-space pixel size
        frame_duration_ms: Exposure per frame

    Returns:
        Path written
    """
    filename = Path(filename)
    filename.parent.mkdir(parents=True, exist_ok=True)

    stack = _as_stack(frames)
    meta = _prepare_metadata(stack, metadata, pixel_size_um, frame_duration_ms)

    # Resolution in pixels per centimeter
    resolution = (10000.0 / pixel_size_um, 10000.0 / pixel_size_um)
    tifffile.imwrite(
        filename,
        stack,
        dtype=np.float32,
        resolution=resolution,
        resolutionunit='CENTIMETER',
        description=json.dumps(meta, indent=2, default=str),
        metadata=None,
    )
    return filename


def read_stack(filename: Union[str, Path]) -> tuple[np.ndarray, Dict]:
    """Read a TIFF stack and its JSON metadata.

    Returns:
        Tuple of (``(frames, y, x)`` array, metadata). Metadata is empty when
        the file carries no JSON description.
    """
    with tifffile.TiffFile(Path(filename)) as tif:
        data = tif.asarray()
        metadata: Dict = {}
        description = tif.pages[0].description
        if description:
            try:
                metadata = json.loads(description)
            except json.JSONDecodeError:
                metadata = {'description': description}

    if data.ndim == 2:
        data = data[np.newaxis, ...]
    return data, metadata


__all__ = [
    "write_stack",
    "read_stack",
]
