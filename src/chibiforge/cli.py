"""Command-line entry point for chibiforge.

Subcommands
-----------
``run``      Generate chibis for photo references and print the paths as JSON.
``record``   Generate chibis for one stored record and write them back.
``refresh``  Backfill every stored record that has no chibis yet.

Usage
-----
::

    chibiforge run --record-id 1718000000000 /uploads/a.jpg /uploads/b.jpg
    chibiforge record 1718000000000
    chibiforge refresh
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence

from chibiforge import __version__
from chibiforge.core.config import ChibiforgeConfig, config
from chibiforge.core.pipeline import ChibiPipeline
from chibiforge.records import RecordStore, generate_for_record, refresh_characters

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chibiforge",
        description="Turn photos of people into transparent chibi character portraits.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subcommands = parser.add_subparsers(dest="command", required=True)

    run_parser = subcommands.add_parser("run", help="generate chibis for photo references")
    run_parser.add_argument("--record-id", required=True, help="record id used in filenames")
    run_parser.add_argument("photos", nargs="+", help="photo references under the media root")

    record_parser = subcommands.add_parser("record", help="generate chibis for a stored record")
    record_parser.add_argument("record_id")

    subcommands.add_parser("refresh", help="backfill records without chibis")
    return parser


def main(argv: Sequence[str] | None = None, settings: ChibiforgeConfig | None = None) -> int:
    """Parse arguments, run the requested command and return the exit code."""
    settings = settings or config
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        pipeline = ChibiPipeline.from_config(settings)
    except RuntimeError as exc:
        logger.error("%s", exc)
        return 2

    if args.command == "run":
        print(json.dumps(pipeline.run(args.photos, args.record_id)))
        return 0

    store = RecordStore(settings.records_db)

    if args.command == "record":
        record = store.get(args.record_id)
        if record is None:
            logger.error("Record %s not found in %s", args.record_id, settings.records_db)
            return 1
        print(json.dumps(generate_for_record(pipeline, store, record)))
        return 0

    updated = refresh_characters(pipeline, store, pipeline.policy)
    print(json.dumps({"success": True, "updated": updated}))
    return 0


if __name__ == "__main__":
    sys.exit(main())
