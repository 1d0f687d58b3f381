"""Photon image rendering: point emitters blurred by the pixel-space PSF."""

from __future__ import annotations

import numpy as np
import torch
import torch.nn.functional as F


def place_emitters(
    shape: tuple[int, int],
    positions: np.ndarray,
    photons: np.ndarray | float,
) -> np.ndarray:
    """Deposit emitter photons on the nearest pixel.

    Args:
        shape: Image shape (rows, cols)
        positions: Array of (x, y) pixel positions, shape (n, 2)
        photons: Photons per emitter, scalar or shape (n,)

    Returns:
        float64 photon image; emitters outside the frame are dropped
    """
    image = np.zeros(shape, dtype=np.float64)
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
    if positions.size == 0:
        return image

    weights = np.broadcast_to(np.asarray(photons, dtype=np.float64), (positions.shape[0],))
    cols = np.rint(positions[:, 0]).astype(int)
    rows = np.rint(positions[:, 1]).astype(int)
    inside = (rows >= 0) & (rows < shape[0]) & (cols >= 0) & (cols < shape[1])
    np.add.at(image, (rows[inside], cols[inside]), weights[inside])
    return image


def blur(image: np.ndarray, kernel: np.ndarray, device: str = "cpu") -> np.ndarray:
    """Convolve an image with a centered odd kernel, preserving total photons.

    The kernel is normalized to unit sum; the output has the input's shape.
    """
    k = torch.as_tensor(np.asarray(kernel), dtype=torch.float64, device=device)
    k = k / k.sum()
    pad = k.shape[-1] // 2
    img = torch.as_tensor(np.asarray(image), dtype=torch.float64, device=device)
    out = F.conv2d(img[None, None], k[None, None], padding=pad)
    return out[0, 0].cpu().numpy()


__all__ = ["place_emitters", "blur"]
