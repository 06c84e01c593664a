import os

# headless: no window, no sound card
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import numpy as np
import pytest

from dissolve_engine import ValueNoise3D


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def noise():
    return ValueNoise3D(seed=7)


def box_raster(width, height, box=None, color=(255, 255, 255, 255)):
    """Opaque black (w, h, 4) raster with an optional filled box (x0, y0, x1, y1)."""
    raster = np.zeros((width, height, 4), dtype=np.uint8)
    raster[:, :, 3] = 255
    if box is not None:
        x0, y0, x1, y1 = box
        raster[x0:x1, y0:y1] = color
    return raster


@pytest.fixture
def make_raster():
    return box_raster
