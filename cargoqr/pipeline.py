"""Artifact pipeline: recompute-on-change with superseding generations.

Every input change (a new record snapshot or a new photo) bumps the
generation counter. A refresh snapshots the inputs together with the
generation it started from and only publishes its artifact if that
generation is still current when it finishes; results from superseded
generations are dropped whatever order they complete in.

Everything runs on one asyncio loop. The renderer and the photo source may
be asynchronous; compositing holds ``_surface`` so only one generation
draws at a time.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from enum import Enum

from PIL import Image

from cargoqr.compositor import compose
from cargoqr.config import ArtifactSettings
from cargoqr.emitter import emit, suggested_filename
from cargoqr.errors import CargoQRError, PhotoUnavailable, RenderFailure
from cargoqr.logging import audit, get_logger, trace
from cargoqr.payload import serialize
from cargoqr.photo import load_photo
from cargoqr.record import CargoRecord
from cargoqr.renderer import CodeRenderer, get_renderer

log = get_logger("pipeline")

_UNCHANGED = object()


class RecomputePolicy(Enum):
    EAGER = "eager"          # every record change regenerates the artifact
    ON_DEMAND = "on_demand"  # record changes wait for an explicit refresh


@dataclass(frozen=True)
class Artifact:
    """One finished composite, tied to the generation that produced it."""

    generation: int
    payload: str
    image: Image.Image
    data: bytes
    filename: str


class ArtifactPipeline:
    """Holds the current inputs and the latest artifact built from them."""

    def __init__(
        self,
        renderer: CodeRenderer | None = None,
        settings: ArtifactSettings | None = None,
        sink=None,
        policy: "RecomputePolicy | str | None" = None,
        clock=time.time,
    ):
        self.settings = settings or ArtifactSettings()
        self.renderer = renderer or get_renderer(
            self.settings.renderer, ecc=self.settings.ecc, margin=self.settings.margin,
        )
        self.sink = sink
        self.policy = RecomputePolicy(policy or self.settings.recompute)
        self._clock = clock

        self._record: CargoRecord | None = None
        self._photo: Image.Image | None = None
        self._generation = 0
        self._photo_requests = 0
        self._latest: Artifact | None = None
        self._surface = asyncio.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def latest(self) -> Artifact | None:
        return self._latest

    def update(self, record=_UNCHANGED, photo=_UNCHANGED) -> int:
        """Store new input snapshots and start a new generation."""
        if record is not _UNCHANGED:
            self._record = record
        if photo is not _UNCHANGED:
            self._photo = photo
        self._generation += 1
        return self._generation

    def _superseded(self, generation: int, stage: str) -> bool:
        if generation == self._generation:
            return False
        audit("generation.superseded", logger=log, generation=generation,
              current=self._generation, stage=stage)
        return True

    async def _render(self, payload: str) -> Image.Image:
        """Run the renderer, sync or async; foreign errors become RenderFailure."""
        try:
            code = self.renderer.render(payload, self.settings.code_size)
            if inspect.isawaitable(code):
                code = await code
        except CargoQRError:
            raise
        except Exception as e:
            raise RenderFailure(f"Renderer failed: {e}") from e
        return code

    @trace
    async def refresh(self) -> Artifact | None:
        """Build the artifact for the current inputs.

        Returns ``None`` when there is nothing to compose yet or when newer
        inputs arrived while this run was in flight.

        Raises:
            PayloadTooLarge, RenderFailure: artifact production aborted.
        """
        generation = self._generation
        record, photo = self._record, self._photo

        if record is None or photo is None:
            audit("pipeline.skipped", logger=log, generation=generation,
                  has_record=record is not None, has_photo=photo is not None)
            self._latest = None
            return None

        try:
            payload = serialize(record)
            code = await self._render(payload)
            if self._superseded(generation, "render"):
                return None

            async with self._surface:
                if self._superseded(generation, "compose"):
                    return None
                image = compose(photo, code, f"ID: {record.id}", self.settings)
                data = emit(image, self.settings.jpeg_quality)
        except CargoQRError:
            if generation == self._generation:
                self._latest = None
            raise

        artifact = Artifact(
            generation=generation,
            payload=payload,
            image=image,
            data=data,
            filename=suggested_filename(self._clock()),
        )
        self._latest = artifact
        audit("artifact.published", logger=log, generation=generation,
              bytes=len(data), filename=artifact.filename)
        return artifact

    async def submit(self, record=_UNCHANGED, photo=_UNCHANGED) -> Artifact | None:
        """Replace inputs and regenerate immediately."""
        self.update(record=record, photo=photo)
        return await self.refresh()

    async def on_record_changed(self, record: CargoRecord) -> Artifact | None:
        self.update(record=record)
        if self.policy is RecomputePolicy.ON_DEMAND:
            return None
        return await self.refresh()

    async def on_photo_changed(self, source) -> Artifact | None:
        """Accept a photo (path, bytes, Image, or an awaitable of one).

        A photo that fails to decode clears the current photo; composition is
        skipped rather than attempted on a blank canvas.
        """
        self._photo_requests += 1
        ticket = self._photo_requests
        if inspect.isawaitable(source):
            source = await source
        if ticket != self._photo_requests:
            audit("photo.superseded", logger=log, ticket=ticket, current=self._photo_requests)
            return None

        try:
            photo = load_photo(source)
        except PhotoUnavailable as e:
            audit("photo.unavailable", logger=log, error=str(e))
            self.update(photo=None)
            self._latest = None
            return None

        self.update(photo=photo)
        return await self.refresh()

    @trace
    def deliver(self, filename: str | None = None):
        """Hand the latest artifact to the sink; returns whatever the sink returns.

        Only an artifact built from the current generation is delivered; after
        an input change it has to be refreshed first.
        """
        if self.sink is None:
            raise ValueError("No sink configured")
        if self._latest is None or self._latest.generation != self._generation:
            raise CargoQRError("No artifact is ready to deliver")
        return self.sink.deliver(self._latest.data, filename or self._latest.filename)
