"""Tests for chibiforge.records.backfill: per-record and batch generation."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from chibiforge.records.backfill import generate_for_record, refresh_characters
from chibiforge.records.store import Record, RecordStore


@pytest.fixture
def store(test_config) -> RecordStore:
    document = {
        "records": [
            {"id": "1", "imagePaths": ["/uploads/1.jpg"]},
            {"id": "2", "imagePaths": ["/uploads/2.jpg"], "chibiImagePaths": ["/uploads/old.png"]},
            {"id": "3", "imagePath": "/uploads/3.jpg", "characterStyles": []},
            {"id": "4"},
            {"id": "5", "imagePath": "/uploads/5.jpg"},
            {"id": "6", "imagePaths": ["/uploads/6.jpg"]},
        ]
    }
    test_config.records_db.write_text(json.dumps(document), encoding="utf-8")
    return RecordStore(test_config.records_db)


def stored(test_config, record_id: str) -> dict:
    records = json.loads(test_config.records_db.read_text(encoding="utf-8"))["records"]
    return next(record for record in records if record["id"] == record_id)


class TestGenerateForRecord:
    def test_persists_generated_paths(self, store, test_config):
        pipeline = MagicMock()
        pipeline.run.return_value = ["/uploads/chibi-1-1.png"]

        paths = generate_for_record(pipeline, store, store.get("1"))

        assert paths == ["/uploads/chibi-1-1.png"]
        pipeline.run.assert_called_once_with(["/uploads/1.jpg"], "1")
        assert stored(test_config, "1")["chibiImagePath"] == "/uploads/chibi-1-1.png"

    def test_nothing_written_when_no_chibis(self, store, test_config):
        pipeline = MagicMock()
        pipeline.run.return_value = []

        assert generate_for_record(pipeline, store, store.get("1")) == []
        assert "chibiImagePaths" not in stored(test_config, "1")

    def test_record_without_photos(self, store):
        pipeline = MagicMock()

        assert generate_for_record(pipeline, store, Record(id="4")) == []
        pipeline.run.assert_not_called()


class TestRefreshCharacters:
    def test_only_pending_records_processed(self, store, policy, recorded_sleeps):
        pipeline = MagicMock()
        pipeline.run.side_effect = lambda photos, record_id: [f"/uploads/chibi-{record_id}-1.png"]

        updated = refresh_characters(pipeline, store, policy)

        assert updated == 3
        assert [c.args[1] for c in pipeline.run.call_args_list] == ["1", "5", "6"]
        assert recorded_sleeps == [5.0, 5.0]

    def test_failure_does_not_stop_batch(self, store, policy, test_config):
        def run(photos, record_id):
            if record_id == "1":
                raise RuntimeError("disk on fire")
            return [] if record_id == "5" else [f"/uploads/chibi-{record_id}-1.png"]

        pipeline = MagicMock()
        pipeline.run.side_effect = run

        assert refresh_characters(pipeline, store, policy) == 1
        assert stored(test_config, "6")["chibiImagePaths"] == ["/uploads/chibi-6-1.png"]
        assert "chibiImagePaths" not in stored(test_config, "1")
