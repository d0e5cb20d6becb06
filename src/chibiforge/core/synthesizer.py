"""Chibi character synthesis for one detected person.

:class:`ChibiSynthesizer` sends the source photo plus the person's
description to the image model, asking for a chibi version of that one
person on a pure white canvas.  The first usable image is run through the
background segmenter and written as ``chibi-{record_id}-{person_index}.png``.

Each person gets one of six poses.  The choice mixes the person's ordinal
with the record id so the same number of people in different records do not
all end up waving the same hand.
"""

from __future__ import annotations

import logging
import zlib
from collections.abc import Callable
from pathlib import Path
from typing import Any

from chibiforge.core.content import (
    TEXT_AND_IMAGE,
    build_contents,
    iter_inline_images,
    mime_type_for,
    response_text,
)
from chibiforge.core.invoker import AllModelsUnavailable, ResilientInvoker
from chibiforge.core.policy import PacingPolicy
from chibiforge.core.scanner import resolve_media_path
from chibiforge.core.segmenter import SegmentationResult, remove_background

logger = logging.getLogger(__name__)

MIN_IMAGE_BYTES = 5000

CHIBI_POSES = (
    "cute standing pose with one hand waving hello, slight head tilt to the right",
    "playful pose with both hands behind back, leaning forward slightly with a wink",
    "cheerful pose doing a peace sign with one hand, other hand on hip",
    "adorable pose holding the hem of their clothes, looking up shyly",
    "confident pose with arms crossed, smiling brightly",
    "sweet pose with one hand touching their cheek, gentle smile",
)


def chibi_filename(record_id: str, person_index: int) -> str:
    return f"chibi-{record_id}-{person_index}.png"


def record_number(record_id: str) -> int:
    """Integer value of a record id; non-numeric ids hash to a stable number."""
    try:
        return int(str(record_id).strip())
    except ValueError:
        return zlib.crc32(str(record_id).encode("utf-8"))


def select_pose(record_id: str, person_index: int, poses: tuple[str, ...] = CHIBI_POSES) -> str:
    """Pick the pose for the ``person_index``-th person (1-based) of a record."""
    count = len(poses)
    return poses[(person_index - 1 + record_number(record_id) % count) % count]


def build_chibi_prompt(description: str, pose: str) -> str:
    """Generation prompt for one person in one pose."""
    return f"""Look at this photo. I need you to create a cute chibi (Q-version) character based on THIS SPECIFIC PERSON: {description}

CRITICAL REQUIREMENTS:
- PURE WHITE background (#FFFFFF), absolutely nothing else in the background
- Soft watercolor painting style with gentle brush strokes and smooth color blending
- NO hard outlines or sharp edges, soft color boundaries
- 2-head body proportion (oversized cute head, small body)
- Big round sparkly anime eyes with highlights
- Precisely match this person's: hair style & color, clothing colors & style, skin tone, accessories
- POSE: {pose}
- ONLY this ONE character, no other elements, no text, no shadow, no decorations
- Full body visible head to toe, centered in frame
- Professional quality, clear and sharp, no ghosting or blur"""


class ChibiSynthesizer:
    """Generates and stores one transparent chibi PNG per person.

    Attributes:
        invoker: Invoker over the image-capable model tier(s).
        media_root: Directory source photo references resolve against.
        uploads_dir: Directory the PNGs are written to.
        public_prefix: Public path prefix returned for written files.
        policy: Attempt count and delays between attempts.
        min_image_bytes: Smallest inline image accepted.
        segment: ``bytes -> SegmentationResult`` background remover.
    """

    def __init__(
        self,
        invoker: ResilientInvoker,
        media_root: Path,
        uploads_dir: Path,
        public_prefix: str = "/uploads",
        policy: PacingPolicy | None = None,
        min_image_bytes: int = MIN_IMAGE_BYTES,
        segment: Callable[[bytes], SegmentationResult] = remove_background,
    ) -> None:
        self.invoker = invoker
        self.media_root = Path(media_root)
        self.uploads_dir = Path(uploads_dir)
        self.public_prefix = public_prefix.rstrip("/")
        self.policy = policy or PacingPolicy()
        self.min_image_bytes = min_image_bytes
        self.segment = segment

    def synthesize(
        self,
        photo_path: str,
        description: str,
        record_id: str,
        person_index: int,
    ) -> str | None:
        """Generate the chibi for one person and return its public path.

        Args:
            photo_path: Reference of the photo the person was found in.
            description: Person description from the scanner.
            record_id: Owning record id (used for the pose and filename).
            person_index: 1-based position of the person in the roster.

        Returns:
            Public path such as ``/uploads/chibi-42-1.png``, or ``None`` if the
            photo is missing or unreadable, or no attempt produced a usable image.
        """
        full_path = resolve_media_path(self.media_root, photo_path)
        if not full_path.is_file():
            logger.warning("Source photo %s not found for person%d", photo_path, person_index)
            return None

        try:
            photo_data = full_path.read_bytes()
        except OSError as exc:
            logger.warning(
                "Source photo %s could not be read for person%d: %s", photo_path, person_index, exc
            )
            return None

        pose = select_pose(record_id, person_index)
        contents = build_contents(
            build_chibi_prompt(description, pose),
            photo_data,
            mime_type_for(full_path),
        )

        attempts = self.policy.synthesis_attempts
        for attempt in range(1, attempts + 1):
            logger.info("Generating chibi for person%d (attempt %d/%d)", person_index, attempt, attempts)
            try:
                response = self.invoker.invoke(contents, TEXT_AND_IMAGE)
            except AllModelsUnavailable as exc:
                logger.warning("Chibi generation for person%d failed: %s", person_index, str(exc)[:80])
                if exc.rate_limited:
                    self.policy.pause(self.policy.synthesis_rate_limit_delay)
            else:
                path = self._store_first_image(response, record_id, person_index)
                if path is not None:
                    return path

            if attempt < attempts:
                self.policy.pause(self.policy.synthesis_retry_delay)

        logger.warning("Giving up on person%d of record %s", person_index, record_id)
        return None

    def _store_first_image(self, response: Any, record_id: str, person_index: int) -> str | None:
        for data in iter_inline_images(response):
            if len(data) < self.min_image_bytes:
                logger.debug("Discarding %d byte image for person%d", len(data), person_index)
                continue

            result: SegmentationResult = self.segment(data)
            if not result.segmented:
                logger.warning(
                    "Storing person%d without background removal: %s", person_index, result.error
                )

            filename = chibi_filename(record_id, person_index)
            try:
                (self.uploads_dir / filename).write_bytes(result.data)
            except OSError as exc:
                logger.error("Failed to write %s: %s", filename, exc, exc_info=True)
                return None
            logger.info("Saved %s (%.1f KB)", filename, len(result.data) / 1024)
            return f"{self.public_prefix}/{filename}"

        logger.warning(
            "No usable image for person%d: %s", person_index, response_text(response)[:80]
        )
        return None
