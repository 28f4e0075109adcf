import logging

import numpy as np
import pytest
from PIL import Image

from cargoqr.record import CargoRecord, Location


def make_photo(width: int, height: int, seed: int = 0) -> Image.Image:
    """Smooth colour gradient, deterministic per seed."""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    r = np.tile(xs, (height, 1))
    g = np.tile(ys[:, None], (1, width))
    b = np.full((height, width), (seed * 37) % 256, dtype=np.float32)
    return Image.fromarray(np.dstack([r, g, b]).astype(np.uint8))


@pytest.fixture(autouse=True)
def _reset_cargoqr_logging():
    yield
    logger = logging.getLogger("cargoqr")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def pallet() -> CargoRecord:
    return CargoRecord(
        id="X1",
        description="Pallet",
        length="10",
        width="5",
        height="4",
        weight="20",
    )


@pytest.fixture
def pallet_with_fix(pallet) -> CargoRecord:
    return pallet.with_location(Location(12.34, 56.78, 1234567890))


@pytest.fixture
def photo() -> Image.Image:
    return make_photo(1000, 800)
