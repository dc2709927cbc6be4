"""Tests for the SearchService class."""
import pytest

from notegraph.models.schema import SearchResult
from notegraph.services.search_service import SearchService


def test_accent_and_case_insensitive(note_repository, search_service):
    note_id = note_repository.create_note("Réunion Équipe", content="Ordre du jour")
    results = search_service.search_notes("reunion")
    assert [r.id for r in results] == [note_id]
    assert search_service.search_notes("ÉQUIPE")[0].id == note_id


def test_title_match_ranks_first(note_repository, search_service):
    content_id = note_repository.create_note(
        "Notes", content="How to search efficiently"
    )
    title_id = note_repository.create_note("Search Tutorial", content="Basics")
    results = search_service.search_notes("search")
    assert [r.id for r in results] == [title_id, content_id]


def test_all_tokens_must_match_one_field(note_repository, search_service):
    note_repository.create_note("Alpha", content="beta")
    assert search_service.search_notes("alpha beta") == []
    both = note_repository.create_note("Alpha Beta", content="")
    assert [r.id for r in search_service.search_notes("beta alpha")] == [both]


def test_ties_keep_creation_order(note_repository, search_service):
    ids = [note_repository.create_note(f"Topic {i}") for i in range(3)]
    assert [r.id for r in search_service.search_notes("topic")] == ids


def test_empty_query_returns_all_notes(note_repository, search_service):
    ids = [note_repository.create_note(f"N{i}", content="text") for i in range(2)]
    for query in ("", "   ", None):
        results = search_service.search_notes(query)
        assert [r.id for r in results] == ids
        assert all(isinstance(r, SearchResult) and r.preview is None for r in results)


def test_deleted_notes_not_found(note_repository, search_service):
    note_id = note_repository.create_note("Hidden gem")
    note_repository.delete_note(note_id)
    assert search_service.search_notes("hidden") == []


class TestPreview:
    """Tests for preview snippet building."""

    def test_window_around_match(self, search_service):
        content = "a" * 80 + "needle" + "b" * 150
        preview = search_service.build_preview(content, "needle")
        assert preview == "..." + "a" * 50 + "needle" + "b" * 100 + "..."

    def test_match_near_start_has_no_leading_ellipsis(self, search_service):
        preview = search_service.build_preview("needle at start", "needle")
        assert preview == "needle at start"

    def test_accented_content_keeps_original_text(self, search_service):
        preview = search_service.build_preview("Compte rendu de la réunion", "reunion")
        assert preview == "Compte rendu de la réunion"

    def test_decomposed_content_window_uses_raw_offsets(self, search_service):
        content = "e\u0301" * 60 + "needle"
        preview = search_service.build_preview(content, "needle")
        assert preview == "..." + content[70:]
        assert preview.endswith("needle")

    def test_fallback_to_content_head(self, search_service):
        content = "x" * 200
        assert search_service.build_preview(content, "absent") == "x" * 150 + "..."
        assert search_service.build_preview("short", "absent") == "short"

    def test_no_content(self, search_service):
        assert search_service.build_preview(None, "x") is None
        assert search_service.build_preview("", "x") is None

    def test_preview_in_results(self, note_repository, search_service):
        note_repository.create_note("Title hit", content="Body without the word")
        note_repository.create_note("Other", content="Mentions a title here")
        results = search_service.search_notes("title")
        assert results[0].preview == "Body without the word"
        assert results[1].preview == "Mentions a title here"

    @pytest.mark.parametrize("before,after", [(0, 0), (5, 5)])
    def test_custom_window(self, note_repository, before, after):
        service = SearchService(note_repository, preview_before=before, preview_after=after)
        content = "0123456789" + "hit" + "0123456789"
        preview = service.build_preview(content, "hit")
        assert preview == "..." + content[10 - before:13 + after] + "..."
