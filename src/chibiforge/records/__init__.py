"""Record storage collaborator and backfill jobs."""

from chibiforge.records.backfill import generate_for_record, refresh_characters
from chibiforge.records.store import Record, RecordStore

__all__ = [
    "Record",
    "RecordStore",
    "generate_for_record",
    "refresh_characters",
]
