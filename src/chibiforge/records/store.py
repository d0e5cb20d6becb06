"""Flat-file record storage for chibi write-back.

Records live in a single JSON document::

    {"records": [{"id": "1718000000000", "imagePaths": [...], ...}, ...]}

Only the fields the chibi pipeline reads or writes are modelled; every other
field a record carries is preserved untouched on save.  Two fields receive
the pipeline output:

- ``chibiImagePaths``: the full ordered list of chibi PNG paths
- ``chibiImagePath``: the first entry, kept for older readers

The generation job runs long after the request that created the record, so
:meth:`RecordStore.save_chibi_paths` always re-reads the file right before
writing instead of reusing a copy loaded earlier.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class Record(BaseModel):
    """One record as seen by the chibi pipeline.

    Attributes:
        id: Record identifier (numeric strings in practice).
        image_paths: Ordered photo references.
        image_path: Legacy single photo reference.
        chibi_image_paths: Generated chibi references, ``None`` when never
            generated.
        chibi_image_path: Legacy mirror of the first chibi reference.
        character_styles: ``[]`` marks a record already known to contain no
            people; ``None`` means unknown.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    image_paths: list[str] | None = Field(default=None, alias="imagePaths")
    image_path: str | None = Field(default=None, alias="imagePath")
    chibi_image_paths: list[str] | None = Field(default=None, alias="chibiImagePaths")
    chibi_image_path: str | None = Field(default=None, alias="chibiImagePath")
    character_styles: list | None = Field(default=None, alias="characterStyles")

    def photo_paths(self) -> list[str]:
        """Photo references, falling back to the legacy single field."""
        if self.image_paths:
            return list(self.image_paths)
        if self.image_path:
            return [self.image_path]
        return []

    def has_chibis(self) -> bool:
        return bool(self.chibi_image_paths)

    def known_without_people(self) -> bool:
        return self.character_styles is not None and len(self.character_styles) == 0

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def _coerce_id(entry: dict) -> dict:
    if "id" in entry and not isinstance(entry["id"], str):
        entry = {**entry, "id": str(entry["id"])}
    return entry


class RecordStore:
    """JSON-file backed collection of records.

    Attributes:
        db_path: Path of the JSON document.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def _read_document(self) -> dict:
        """Load the raw document; a missing or invalid file is empty."""
        if not self.db_path.exists():
            return {"records": []}
        try:
            with open(self.db_path, encoding="utf-8") as handle:
                document = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Could not read %s: %s", self.db_path, exc)
            return {"records": []}
        if not isinstance(document, dict) or not isinstance(document.get("records"), list):
            return {"records": []}
        return document

    def _write_document(self, document: dict) -> None:
        with open(self.db_path, "w", encoding="utf-8") as handle:
            json.dump(document, handle, indent=2, ensure_ascii=False)

    def load(self) -> list[Record]:
        """Return every valid record; malformed entries are skipped."""
        records: list[Record] = []
        for entry in self._read_document()["records"]:
            if not isinstance(entry, dict):
                continue
            try:
                records.append(Record.model_validate(_coerce_id(entry)))
            except ValidationError as exc:
                logger.warning("Skipping malformed record: %s", exc.errors()[:1])
        return records

    def get(self, record_id: str) -> Record | None:
        record_id = str(record_id)
        return next((record for record in self.load() if record.id == record_id), None)

    def save_chibi_paths(self, record_id: str, paths: list[str]) -> bool:
        """Attach generated chibi paths to a record.

        Args:
            record_id: Record to update.
            paths: Ordered chibi references; must not be empty.

        Returns:
            True if the record was found and written, False otherwise.
        """
        if not paths:
            raise ValueError("paths must contain at least one chibi reference")

        record_id = str(record_id)
        document = self._read_document()
        for entry in document["records"]:
            if isinstance(entry, dict) and str(entry.get("id")) == record_id:
                entry["chibiImagePaths"] = list(paths)
                entry["chibiImagePath"] = paths[0]
                self._write_document(document)
                logger.info("Record %s updated with %d character(s)", record_id, len(paths))
                return True

        logger.warning("Record %s disappeared before chibi write-back", record_id)
        return False
