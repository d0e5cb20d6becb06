"""End-to-end chibi generation for one record.

:class:`ChibiPipeline` runs the stages strictly in sequence::

    photos ──► PersonScanner.scan ──► roster (0..3 persons)
                                         │
                      for each person    ▼
                      ChibiSynthesizer.synthesize ──► remove_background ──► PNG on disk
                                         │
                                         ▼
                             ordered list of public paths

Partial success is the normal case: a person whose synthesis fails is left
out of the result, and an empty roster returns an empty list.  Nothing in a
pipeline instance is mutated by :meth:`ChibiPipeline.run`, so independent
records can be processed concurrently with one shared instance; output
files never collide because their names embed the record id.

Usage
-----
::

    from chibiforge.core.config import config
    from chibiforge.core.pipeline import ChibiPipeline

    pipeline = ChibiPipeline.from_config(config)
    paths = pipeline.run(["/uploads/beach.jpg", "/uploads/dinner.jpg"], "1718000000000")
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from chibiforge.core.invoker import ModelTiers, ResilientInvoker, create_genai_client
from chibiforge.core.policy import PacingPolicy
from chibiforge.core.scanner import PersonScanner
from chibiforge.core.segmenter import remove_background
from chibiforge.core.synthesizer import ChibiSynthesizer

if TYPE_CHECKING:
    from chibiforge.core.config import ChibiforgeConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChibiAsset:
    """A generated chibi PNG belonging to one record."""

    record_id: str
    person_index: int
    path: str


class ChibiPipeline:
    """Scanner → synthesizer (per person) → collected asset paths."""

    def __init__(
        self,
        scanner: PersonScanner,
        synthesizer: ChibiSynthesizer,
        policy: PacingPolicy | None = None,
    ) -> None:
        self.scanner = scanner
        self.synthesizer = synthesizer
        self.policy = policy or PacingPolicy()

    @classmethod
    def from_config(
        cls,
        config: ChibiforgeConfig,
        client: Any = None,
        policy: PacingPolicy | None = None,
    ) -> ChibiPipeline:
        """Wire a pipeline from configuration.

        Args:
            config: Application configuration.
            client: ``google.genai.Client``-compatible object; built from
                the configured API key when omitted.
            policy: Pacing override; derived from ``config`` when omitted.

        Raises:
            RuntimeError: If no client is given and no API key is configured.
        """
        client = client if client is not None else create_genai_client(config)
        policy = policy or PacingPolicy.from_config(config)

        scanner = PersonScanner(
            ResilientInvoker(client, ModelTiers(config.text_models), policy),
            media_root=config.media_root,
            policy=policy,
            max_persons=config.max_persons,
        )
        synthesizer = ChibiSynthesizer(
            ResilientInvoker(client, ModelTiers([config.image_model]), policy),
            media_root=config.media_root,
            uploads_dir=config.uploads_dir,
            public_prefix=config.public_prefix,
            policy=policy,
            min_image_bytes=config.min_image_bytes,
            segment=functools.partial(
                remove_background,
                threshold=config.white_threshold,
                edge_alpha=config.edge_alpha,
                trim_threshold=config.trim_threshold,
                height=config.output_height,
            ),
        )
        return cls(scanner, synthesizer, policy)

    def generate_assets(self, photo_locations: Sequence[str], record_id: str) -> list[ChibiAsset]:
        """Run every stage and return the assets that were produced."""
        record_id = str(record_id)
        logger.info("Processing record %s with %d photo(s)", record_id, len(photo_locations))

        roster = self.scanner.scan(photo_locations)
        if not roster:
            logger.info("No person detected in record %s", record_id)
            return []
        logger.info("Detected %d distinct person(s) in record %s", len(roster), record_id)

        assets: list[ChibiAsset] = []
        for person_index, person in enumerate(roster, start=1):
            logger.info(
                "Generating character %d/%d: %s...",
                person_index,
                len(roster),
                person.description[:60],
            )
            path = self.synthesizer.synthesize(
                person.source_photo_path,
                person.description,
                record_id,
                person_index,
            )
            if path is not None:
                assets.append(ChibiAsset(record_id, person_index, path))

            if person_index < len(roster):
                self.policy.pause(self.policy.person_pacing)

        logger.info("Record %s: %d/%d characters generated", record_id, len(assets), len(roster))
        return assets

    def run(self, photo_locations: Sequence[str], record_id: str) -> list[str]:
        """Return the ordered public paths of the chibis for one record."""
        return [asset.path for asset in self.generate_assets(photo_locations, record_id)]
