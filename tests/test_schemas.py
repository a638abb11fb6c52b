"""Tests for record and payload schemas."""

import pytest
from pydantic import ValidationError

from notememo.schemas import Note, NoteCategory, SyncPushResponse, SyncStatusResponse


class TestNote:
    def test_accepts_camel_case_wire_document(self):
        note = Note.model_validate(
            {
                "id": "n1",
                "title": "Hello",
                "content": "# Hi",
                "category": "开发技巧",
                "tags": ["a"],
                "createdAt": "2024-01-01T00:00:00Z",
                "updatedAt": "2024-01-02T00:00:00Z",
            }
        )
        assert note.updated_at == "2024-01-02T00:00:00.000Z"
        assert note.deleted is False
        assert note.deleted_at is None

    def test_null_tags_and_deleted_are_defaulted(self):
        note = Note.model_validate(
            {"id": "n1", "createdAt": "2024-01-01T00:00:00Z", "updatedAt": "2024-01-01T00:00:00Z",
             "tags": None, "deleted": None}
        )
        assert note.tags == []
        assert note.deleted is False

    def test_to_wire_uses_camel_case_and_skips_nulls(self):
        note = Note(id="n1", created_at="2024-01-01T00:00:00Z", updated_at="2024-01-01T00:00:00Z")
        wire = note.to_wire()
        assert wire["updatedAt"] == "2024-01-01T00:00:00.000Z"
        assert "deletedAt" not in wire
        assert "updated_at" not in wire

    def test_tombstone_is_deleted(self):
        note = Note(
            id="n1",
            created_at="2024-01-01T00:00:00Z",
            updated_at="2024-01-03T00:00:00Z",
            deleted=True,
            deleted_at="2024-01-03T00:00:00Z",
        )
        assert note.is_deleted
        assert note.modified_at == "2024-01-03T00:00:00.000Z"

    def test_invalid_timestamp_rejected(self):
        with pytest.raises(ValidationError):
            Note(id="n1", created_at="yesterday", updated_at="2024-01-01T00:00:00Z")

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            Note(id="", created_at="2024-01-01T00:00:00Z", updated_at="2024-01-01T00:00:00Z")


class TestNoteCategory:
    def test_name_is_stripped(self):
        category = NoteCategory(id="c1", name="  Tools ")
        assert category.name == "Tools"
        assert category.name_key == "tools"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            NoteCategory(id="c1", name="   ")

    def test_updated_at_optional(self):
        category = NoteCategory.model_validate({"id": "c1", "name": "A"})
        assert category.updated_at is None
        assert category.is_deleted is False
        assert category.to_wire() == {"id": "c1", "name": "A"}


class TestPayloads:
    def test_push_response_reads_sync_time(self):
        response = SyncPushResponse.model_validate(
            {"success": True, "syncTime": "2024-01-01T00:00:00.000Z", "message": "ok"}
        )
        assert response.sync_time == "2024-01-01T00:00:00.000Z"

    def test_status_response_dumps_camel_case(self):
        response = SyncStatusResponse.model_validate(
            {"enabled": True, "userId": "u1", "syncInfo": [{"deviceId": "d1", "lastSyncTime": "t"}]}
        )
        assert response.sync_info[0].device_id == "d1"
        assert response.model_dump(by_alias=True)["userId"] == "u1"
