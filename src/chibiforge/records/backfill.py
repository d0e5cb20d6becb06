"""Chibi generation for stored records.

:func:`generate_for_record` is the background job run after a record is
saved; :func:`refresh_characters` walks the whole store and fills in records
that never got their characters.
"""

from __future__ import annotations

import logging

from chibiforge.core.pipeline import ChibiPipeline
from chibiforge.core.policy import PacingPolicy
from chibiforge.records.store import Record, RecordStore

logger = logging.getLogger(__name__)


def generate_for_record(pipeline: ChibiPipeline, store: RecordStore, record: Record) -> list[str]:
    """Generate chibis for one record and persist them if any were produced.

    Returns:
        The generated paths (possibly empty).
    """
    photos = record.photo_paths()
    if not photos:
        return []

    paths = pipeline.run(photos, record.id)
    if paths:
        store.save_chibi_paths(record.id, paths)
    return paths


def refresh_characters(
    pipeline: ChibiPipeline,
    store: RecordStore,
    policy: PacingPolicy | None = None,
) -> int:
    """Generate chibis for every stored record that still lacks them.

    Records without photos, records that already have chibis and records
    known to contain no people are skipped.  A failure on one record is
    logged and the batch moves on.

    Returns:
        Number of records that received chibis.
    """
    policy = policy or PacingPolicy()
    updated = 0

    pending = [
        record
        for record in store.load()
        if record.photo_paths() and not record.has_chibis() and not record.known_without_people()
    ]
    logger.info("Refreshing characters for %d record(s)", len(pending))

    for position, record in enumerate(pending):
        logger.info("Backfilling record %s", record.id)
        try:
            paths = generate_for_record(pipeline, store, record)
        except Exception as exc:
            logger.error("Backfill failed for record %s: %s", record.id, str(exc)[:80], exc_info=True)
        else:
            if paths:
                updated += 1
                logger.info("Record %s -> %d character(s)", record.id, len(paths))

        if position < len(pending) - 1:
            policy.pause(policy.record_pacing)

    return updated
