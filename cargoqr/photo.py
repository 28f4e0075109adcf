"""Photo source adapter: decode a captured photo into an RGB raster."""

import io
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from cargoqr.errors import PhotoUnavailable
from cargoqr.logging import audit, get_logger, trace

log = get_logger("photo")


@trace
def load_photo(source: "str | Path | bytes | Image.Image") -> Image.Image:
    """Decode a photo fully, honour its EXIF orientation and return RGB.

    Raises:
        PhotoUnavailable: the source is missing, undecodable or has no pixels.
    """
    if source is None:
        raise PhotoUnavailable("No photo captured")

    try:
        if isinstance(source, Image.Image):
            img = source
        elif isinstance(source, (bytes, bytearray)):
            img = Image.open(io.BytesIO(source))
        else:
            img = Image.open(Path(source))
        img.load()
        img = ImageOps.exif_transpose(img)
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise PhotoUnavailable(f"Photo could not be decoded: {e}") from e

    if img.width == 0 or img.height == 0:
        raise PhotoUnavailable("Photo has no pixels")

    img = img.convert("RGB")
    audit("photo.loaded", logger=log, size=f"{img.width}x{img.height}")
    return img
