import os
import random

import numpy as np
import pytest
import torch

from smlm_sim.physics.camera import Camera


def pytest_configure(config: pytest.Config) -> None:  # noqa: ARG001
    config.addinivalue_line("markers", "gpu: marks tests that require a CUDA GPU")


@pytest.fixture(autouse=True)
def seed_rng() -> None:
    random.seed(0)
    np.random.seed(0)
    torch.manual_seed(0)
    os.environ["PYTHONHASHSEED"] = "0"


@pytest.fixture()
def device() -> str:
    return "cuda" if torch.cuda.is_available() else "cpu"


@pytest.fixture()
def camera() -> Camera:
    """64x64 EMCCD-like camera behind a 60x / 1.3 NA objective."""
    return Camera(
        res_x=64,
        res_y=64,
        acq_speed=100,
        readout_noise=1.6,
        dark_current=0.06,
        quantum_efficiency=0.8,
        gain=6.0,
        pixel_size=6.45,
        NA=1.3,
        wavelength=0.6,
        magnification=60.0,
        radius=0.1,
    )


@pytest.fixture()
def two_spot_frame() -> np.ndarray:
    """Two single-pixel spots 20 px apart on a dark 64x64 frame."""
    frame = np.zeros((64, 64), dtype=np.float32)
    frame[32, 20] = 200.0
    frame[32, 40] = 200.0
    return frame
