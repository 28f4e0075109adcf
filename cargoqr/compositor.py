"""Compositor: overlay the QR code and cargo label onto the photo.

Layout, for a W x H photo::

    code_size = floor(min(W * 0.25, H * 0.25))
    x, y      = W - code_size - padding, H - code_size - padding

The code sits on a translucent white panel that extends ``backing_inset``
past it on every side; the label is right-aligned just above the panel.
"""

import functools
import math
from dataclasses import dataclass

from PIL import Image, ImageDraw, ImageFont

from cargoqr.config import ArtifactSettings
from cargoqr.errors import PhotoUnavailable, RenderFailure
from cargoqr.logging import audit, get_logger, trace

log = get_logger("compositor")

DEFAULT_SETTINGS = ArtifactSettings()

# Tried in order; Pillow's bundled scalable font is the last resort
_FONT_CANDIDATES = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf", "LiberationSans-Bold.ttf")


@dataclass(frozen=True)
class OverlayGeometry:
    """Pixel placement of everything compose() draws over the photo."""

    canvas: tuple[int, int]
    code_size: int
    x: int
    y: int
    backing: tuple[int, int, int, int]  # x0, y0, x1, y1 (right/bottom exclusive)
    label_anchor: tuple[int, int]       # right end of the label baseline
    font_size: int

    @property
    def bottom_right(self) -> tuple[int, int]:
        return (self.x + self.code_size, self.y + self.code_size)


def _alpha(fraction: float) -> int:
    return round(fraction * 255)


def compute_overlay_geometry(
    width: int,
    height: int,
    settings: ArtifactSettings = DEFAULT_SETTINGS,
) -> OverlayGeometry:
    """Place the code overlay for a canvas of the given size.

    The side is bounded by the smaller canvas dimension so that very wide or
    very tall photos never get an overlay that spills across either axis.
    """
    if width <= 0 or height <= 0:
        raise PhotoUnavailable(f"Canvas has no pixels: {width}x{height}")

    fraction = settings.code_fraction
    code_size = math.floor(min(width * fraction, height * fraction))
    if code_size < 1:
        raise PhotoUnavailable(f"Photo too small to carry a code: {width}x{height}")

    padding = settings.padding
    inset = settings.backing_inset
    x = width - code_size - padding
    y = height - code_size - padding
    if x < 0 or y < 0:
        raise PhotoUnavailable(f"Photo too small for a {padding}px overlay margin: {width}x{height}")

    return OverlayGeometry(
        canvas=(width, height),
        code_size=code_size,
        x=x,
        y=y,
        backing=(x - inset, y - inset, x + code_size + inset, y + code_size + inset),
        label_anchor=(width - padding, y - inset - settings.label_gap),
        font_size=max(settings.font_min_size, round(width * settings.font_ratio)),
    )


@functools.lru_cache(maxsize=16)
def _label_font(size: int) -> ImageFont.ImageFont:
    for name in _FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    log.debug("no bold TrueType font found, using Pillow default at %dpx", size)
    return ImageFont.load_default(size=size)


def _checked_photo(base_photo) -> Image.Image:
    if base_photo is None:
        raise PhotoUnavailable("No base photo to compose onto")
    try:
        base_photo.load()
    except OSError as e:
        raise PhotoUnavailable(f"Base photo is not decoded: {e}") from e
    if base_photo.width == 0 or base_photo.height == 0:
        raise PhotoUnavailable("Base photo has no pixels")
    return base_photo


@trace
def compose(
    base_photo: Image.Image,
    code: Image.Image,
    label: str,
    settings: ArtifactSettings = DEFAULT_SETTINGS,
) -> Image.Image:
    """Composite ``code`` and ``label`` onto ``base_photo``.

    Pure function of its inputs: the same photo, code and label always give
    pixel-identical output, and the inputs are never modified.

    Args:
        base_photo: Fully decoded photo; its size becomes the output size.
        code: Square QR raster from a CodeRenderer.
        label: Text drawn above the code panel, e.g. ``"ID: X1"``.

    Returns:
        RGB image the same size as ``base_photo``.

    Raises:
        PhotoUnavailable: base photo missing, undecoded or empty.
        RenderFailure: code raster is not square.
    """
    photo = _checked_photo(base_photo)
    if code is None or code.width != code.height or code.width == 0:
        size = None if code is None else code.size
        raise RenderFailure(f"Code raster must be a non-empty square, got {size}")

    geo = compute_overlay_geometry(photo.width, photo.height, settings)
    canvas = photo.convert("RGBA")

    # Light panel behind the code
    panel = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    x0, y0, x1, y1 = geo.backing
    ImageDraw.Draw(panel).rectangle(
        [x0, y0, x1 - 1, y1 - 1], fill=(255, 255, 255, _alpha(settings.backing_alpha)),
    )
    canvas = Image.alpha_composite(canvas, panel)

    # Nearest-neighbour keeps module edges hard
    scaled = code.convert("RGBA").resize((geo.code_size, geo.code_size), Image.NEAREST)
    canvas.paste(scaled, (geo.x, geo.y))

    if label:
        text_layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        ImageDraw.Draw(text_layer).text(
            geo.label_anchor,
            label,
            font=_label_font(geo.font_size),
            fill=(0, 0, 0, _alpha(settings.label_alpha)),
            anchor="rs",
        )
        canvas = Image.alpha_composite(canvas, text_layer)

    result = canvas.convert("RGB")
    audit("artifact.composed", logger=log,
          canvas=f"{photo.width}x{photo.height}", code_size=geo.code_size,
          x=geo.x, y=geo.y, font_size=geo.font_size)
    return result
