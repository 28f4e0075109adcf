"""Artifact emitter: final raster -> self-contained JPEG bytes."""

import base64
import io
import time

from PIL import Image

from cargoqr.logging import audit, get_logger, trace

log = get_logger("emitter")

# 0.9 keeps the embedded code scannable after JPEG re-compression
DEFAULT_QUALITY = 0.9
MIME_TYPE = "image/jpeg"


@trace
def emit(raster: Image.Image, quality: float = DEFAULT_QUALITY) -> bytes:
    """Encode the composite as JPEG.

    Args:
        raster: Final composite; any alpha is flattened.
        quality: Fraction of maximum JPEG quality, in (0, 1].
    """
    if not 0 < quality <= 1:
        raise ValueError(f"quality must be in (0, 1], got {quality}")

    buf = io.BytesIO()
    raster.convert("RGB").save(buf, format="JPEG", quality=round(quality * 100))
    data = buf.getvalue()
    audit("artifact.emitted", logger=log, size=f"{raster.width}x{raster.height}",
          quality=quality, bytes=len(data))
    return data


def suggested_filename(now: float | None = None) -> str:
    """``cargo_<epoch milliseconds>.jpg``."""
    ts = time.time() if now is None else now
    return f"cargo_{int(ts * 1000)}.jpg"


def to_data_url(data: bytes) -> str:
    """Inline form of the artifact for preview surfaces."""
    return f"data:{MIME_TYPE};base64,{base64.b64encode(data).decode('ascii')}"
