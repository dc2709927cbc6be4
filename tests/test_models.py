# tests/test_models.py
"""Tests for the value objects and enums used by notegraph."""
import datetime

import pytest
from pydantic import ValidationError

from notegraph.exceptions import (
    ErrorCode,
    NoteNotFoundError,
    SlugExhaustedError,
    StorageError,
)
from notegraph.models.schema import (
    Note,
    NoteLink,
    NoteType,
    QuickCapture,
    SearchResult,
    TaskStatus,
    ensure_timezone_aware,
    generate_id,
)


class TestNoteModel:
    """Tests for the Note model."""

    def test_note_creation(self):
        note = Note(id="1", title="Title", slug="title")
        assert note.note_type == NoteType.NOTE
        assert note.content is None
        assert note.is_deleted is False
        assert isinstance(note.created_at, datetime.datetime)

    def test_extra_fields_rejected(self):
        with pytest.raises(ValidationError):
            Note(id="1", title="T", slug="t", tags=["x"])

    def test_search_result_extends_note(self):
        result = SearchResult(id="1", title="T", slug="t", preview="...")
        assert isinstance(result, Note)
        assert result.preview == "..."

    def test_link_is_frozen(self):
        link = NoteLink(
            id=1, from_note_id="a", to_note_title="B",
            position_start=0, position_end=5,
        )
        with pytest.raises(ValidationError):
            link.is_broken = True


class TestEnums:
    """Tests for NoteType and TaskStatus helpers."""

    @pytest.mark.parametrize("raw", ["meeting", "Meeting", " MEETING "])
    def test_note_type_parse(self, raw):
        assert NoteType.parse(raw) == NoteType.MEETING

    @pytest.mark.parametrize("raw", ["recipe", "", None, 3])
    def test_note_type_parse_unknown(self, raw):
        assert NoteType.parse(raw) is None

    def test_task_markers(self):
        assert TaskStatus.from_marker(" ") == TaskStatus.PENDING
        assert TaskStatus.from_marker("x") == TaskStatus.DONE
        assert TaskStatus.from_marker(">") == TaskStatus.DEFERRED
        assert TaskStatus.from_marker("-") == TaskStatus.CANCELLED
        assert TaskStatus.from_marker("X") is None


class TestHelpers:
    """Tests for ID generation and timestamp handling."""

    def test_generate_id_unique(self):
        ids = [generate_id() for _ in range(500)]
        assert len(set(ids)) == 500

    def test_ensure_timezone_aware(self):
        naive = datetime.datetime(2026, 1, 1, 12, 0)
        aware = ensure_timezone_aware(naive)
        assert aware.tzinfo == datetime.timezone.utc
        assert ensure_timezone_aware(None) is None

    def test_quick_capture_rejects_blank(self):
        with pytest.raises(ValidationError):
            QuickCapture(id=1, content="   ")


class TestExceptions:
    """Tests for the structured error hierarchy."""

    def test_not_found_to_dict(self):
        err = NoteNotFoundError("abc")
        data = err.to_dict()
        assert data["error"] == "NoteNotFoundError"
        assert data["code"] == ErrorCode.NOTE_NOT_FOUND.value
        assert data["details"]["note_id"] == "abc"
        assert "NOTE_NOT_FOUND" in str(err)

    def test_slug_exhausted_details(self):
        err = SlugExhaustedError("test", 1000)
        assert err.details == {"slug": "test", "attempts": 1000}

    def test_storage_error_keeps_original(self):
        original = OSError("disk full")
        err = StorageError("write failed", operation="save", original_error=original)
        assert err.original_error is original
        assert err.details["operation"] == "save"
