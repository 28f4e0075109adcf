"""Code renderer: payload text -> square two-tone QR raster.

The compositor only depends on the ``CodeRenderer`` protocol. Two backends
are provided, one on ``qrcode`` and one on ``segno``; both build the module
matrix at one pixel per module and upscale it with nearest-neighbour so the
output side is exactly the requested size.
"""

from enum import Enum
from typing import Awaitable, Protocol

import numpy as np
import qrcode
import qrcode.constants
import qrcode.exceptions
import segno
from PIL import Image

from cargoqr.errors import PayloadTooLarge, RenderFailure
from cargoqr.logging import audit, get_logger, trace

log = get_logger("renderer")


class ECCLevel(Enum):
    L = qrcode.constants.ERROR_CORRECT_L  # 7%
    M = qrcode.constants.ERROR_CORRECT_M  # 15%
    Q = qrcode.constants.ERROR_CORRECT_Q  # 25%
    H = qrcode.constants.ERROR_CORRECT_H  # 30%


ECC_NAMES = {"L": ECCLevel.L, "M": ECCLevel.M, "Q": ECCLevel.Q, "H": ECCLevel.H}


class CodeRenderer(Protocol):
    def render(self, payload: str, target_size: int) -> "Image.Image | Awaitable[Image.Image]":
        ...


def _matrix_to_image(matrix: np.ndarray, target_size: int) -> Image.Image:
    """Dark modules -> black, light -> white, scaled to target_size square."""
    pixels = np.where(matrix, 0, 255).astype(np.uint8)
    img = Image.fromarray(pixels)
    return img.resize((target_size, target_size), Image.NEAREST).convert("RGB")


def _check_size(target_size: int):
    if target_size < 1:
        raise RenderFailure(f"target_size must be at least 1px, got {target_size}")


class QRCodeRenderer:
    """Renderer backed by the ``qrcode`` library."""

    name = "qrcode"

    def __init__(self, ecc: str = "M", margin: int = 1):
        self.ecc = ecc.upper()
        self.margin = margin
        self._level = ECC_NAMES[self.ecc]

    @trace
    def render(self, payload: str, target_size: int) -> Image.Image:
        _check_size(target_size)
        qr = qrcode.QRCode(
            version=None,
            error_correction=self._level.value,
            box_size=1,
            border=self.margin,
        )
        try:
            qr.add_data(payload)
            qr.make(fit=True)
            matrix = np.array(qr.get_matrix(), dtype=bool)
        except qrcode.exceptions.DataOverflowError as e:
            raise PayloadTooLarge(len(payload), self.ecc) from e
        except (ValueError, TypeError) as e:
            # newer qrcode reports overflow from fit=True as "Invalid version (was 41 ...)"
            if self._exceeds_capacity(payload):
                raise PayloadTooLarge(len(payload), self.ecc) from e
            raise RenderFailure(f"qrcode failed to encode payload: {e}") from e

        img = _matrix_to_image(matrix, target_size)
        audit("code.rendered", logger=log, backend=self.name, version=qr.version,
              ecc=self.ecc, modules=matrix.shape[0], image_px=f"{target_size}x{target_size}")
        return img

    def _exceeds_capacity(self, payload: str) -> bool:
        """True if the payload does not fit even a version 40 symbol."""
        largest = qrcode.QRCode(version=40, error_correction=self._level.value, box_size=1, border=0)
        try:
            largest.add_data(payload)
            largest.make(fit=False)
        except qrcode.exceptions.DataOverflowError:
            return True
        except (ValueError, TypeError):
            pass
        return False


class SegnoRenderer:
    """Renderer backed by ``segno``."""

    name = "segno"

    def __init__(self, ecc: str = "M", margin: int = 1):
        self.ecc = ecc.upper()
        self.margin = margin
        if self.ecc not in ECC_NAMES:
            raise KeyError(self.ecc)

    @trace
    def render(self, payload: str, target_size: int) -> Image.Image:
        _check_size(target_size)
        try:
            qr = segno.make_qr(payload, error=self.ecc.lower(), boost_error=False)
        except segno.DataOverflowError as e:
            raise PayloadTooLarge(len(payload), self.ecc) from e
        except (ValueError, TypeError) as e:
            raise RenderFailure(f"segno failed to encode payload: {e}") from e

        matrix = np.array(
            [[bool(bit) for bit in row] for row in qr.matrix_iter(scale=1, border=self.margin)],
            dtype=bool,
        )
        img = _matrix_to_image(matrix, target_size)
        audit("code.rendered", logger=log, backend=self.name, version=qr.version,
              ecc=self.ecc, modules=matrix.shape[0], image_px=f"{target_size}x{target_size}")
        return img


RENDERERS = {
    QRCodeRenderer.name: QRCodeRenderer,
    SegnoRenderer.name: SegnoRenderer,
}


def get_renderer(name: str = "qrcode", ecc: str = "M", margin: int = 1) -> CodeRenderer:
    """Instantiate a renderer backend by name."""
    try:
        cls = RENDERERS[name]
    except KeyError:
        raise ValueError(f"Unknown renderer {name!r}; choose from {sorted(RENDERERS)}") from None
    return cls(ecc=ecc, margin=margin)
