"""Artifact settings: every layout and encoding constant in one place."""

import os
from dataclasses import dataclass, fields, replace

from cargoqr.logging import get_logger

log = get_logger("config")

ENV_PREFIX = "CARGOQR_"


@dataclass(frozen=True)
class ArtifactSettings:
    """Constants for rendering, compositing and encoding an artifact."""

    # Code overlay
    padding: int = 20            # px between overlay and canvas edge
    backing_inset: int = 10      # px the light panel extends past the code
    code_fraction: float = 0.25  # overlay side as a fraction of min(W, H)
    backing_alpha: float = 0.8

    # Label
    font_min_size: int = 16
    font_ratio: float = 0.03     # font size as a fraction of canvas width
    label_alpha: float = 0.8
    label_gap: int = 5           # px between label baseline and backing panel

    # Code renderer
    renderer: str = "qrcode"
    code_size: int = 200
    ecc: str = "M"
    margin: int = 1              # quiet zone in modules

    # Emitter
    jpeg_quality: float = 0.9

    # Pipeline
    recompute: str = "eager"

    def __post_init__(self):
        if not 0 < self.code_fraction <= 1:
            raise ValueError(f"code_fraction must be in (0, 1], got {self.code_fraction}")
        if not 0 < self.jpeg_quality <= 1:
            raise ValueError(f"jpeg_quality must be in (0, 1], got {self.jpeg_quality}")
        if self.ecc.upper() not in ("L", "M", "Q", "H"):
            raise ValueError(f"ecc must be one of L/M/Q/H, got {self.ecc!r}")
        if self.padding < 0 or self.backing_inset < 0:
            raise ValueError("padding and backing_inset must be non-negative")

    @classmethod
    def from_env(cls, environ=None) -> "ArtifactSettings":
        """Defaults overridden by ``CARGOQR_<FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            default = f.default
            if isinstance(default, int):
                overrides[f.name] = int(raw)
            elif isinstance(default, float):
                overrides[f.name] = float(raw)
            else:
                overrides[f.name] = raw
        if overrides:
            log.debug("settings overrides from env: %s", sorted(overrides))
        return cls(**overrides)

    def with_overrides(self, **overrides) -> "ArtifactSettings":
        """Copy with the non-None keyword values applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
