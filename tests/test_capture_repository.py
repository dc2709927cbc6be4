"""Tests for the quick-capture log."""
from notegraph.storage.capture_repository import CaptureRepository


def test_save_and_history_newest_first(capture_repository):
    for text in ("first", "second", "third"):
        capture_repository.save_capture(text)
    assert capture_repository.get_capture_history() == ["third", "second", "first"]


def test_blank_input_ignored(capture_repository):
    assert capture_repository.save_capture("") is None
    assert capture_repository.save_capture("   \n") is None
    assert capture_repository.get_capture_history() == []


def test_saved_capture_value(capture_repository):
    capture = capture_repository.save_capture("idea")
    assert capture.id >= 1
    assert capture.content == "idea"
    assert capture.created_at.tzinfo is not None


def test_history_limit(database):
    repository = CaptureRepository(database, history_limit=2)
    for i in range(5):
        repository.save_capture(f"c{i}")
    assert repository.get_capture_history() == ["c4", "c3"]
    assert repository.get_capture_history(limit=4) == ["c4", "c3", "c2", "c1"]
