"""Tests for Unicode edge cases in notegraph.

Tests that verify slug generation, accent folding and storage of emoji,
CJK, RTL and combining-character text.
"""
import unicodedata

import pytest

from notegraph.utils import (
    fold_with_offsets,
    generate_slug,
    normalize_for_search,
    strip_diacritics,
)


class TestSlugs:
    """Tests for slug generation from arbitrary titles."""

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Hello World!", "hello-world"),
            ("Réunion: Équipe (2026)", "reunion-equipe-2026"),
            ("  --Leading and trailing--  ", "leading-and-trailing"),
            ("Crème brûlée & café", "creme-brulee-cafe"),
            ("🚀 Rocket 🌟", "rocket"),
            ("中文标题", "untitled"),
            ("!!!", "untitled"),
            ("", "untitled"),
        ],
    )
    def test_generate_slug(self, title, expected):
        assert generate_slug(title) == expected


class TestNormalization:
    """Tests for accent and case folding."""

    def test_precomposed_and_decomposed_fold_equal(self):
        precomposed = "é"
        decomposed = unicodedata.normalize("NFD", "é")
        assert normalize_for_search(precomposed) == normalize_for_search(decomposed) == "e"

    def test_strip_diacritics_keeps_case(self):
        assert strip_diacritics("Ça Été") == "Ca Ete"

    def test_non_latin_untouched(self):
        assert normalize_for_search("日本語") == "日本語"

    def test_empty(self):
        assert normalize_for_search("") == ""

    def test_fold_offsets_point_at_source_characters(self):
        text = unicodedata.normalize("NFD", "Été x")
        folded, offsets = fold_with_offsets(text)
        assert folded == "ete x"
        assert [text[i] for i in offsets] == ["E", "t", "e", " ", "x"]
        assert fold_with_offsets("") == ("", [])


class TestUnicodeStorage:
    """Round trips of non-ASCII notes through the service."""

    def test_emoji_and_cjk_round_trip(self, note_service):
        note = note_service.create_note("🚀 中文标题", content="这是中文内容 #标签 #tag")
        stored = note_service.get_note(note.id)
        assert stored.title == "🚀 中文标题"
        assert stored.content == "这是中文内容 #标签 #tag"
        # Only ASCII tag characters are accepted
        assert [t.tag for t in note_service.get_tags_by_note(note.id)] == ["tag"]

    def test_rtl_title_gets_fallback_slug(self, note_service):
        first = note_service.create_note("مرحبا")
        second = note_service.create_note("שלום")
        assert (first.slug, second.slug) == ("untitled", "untitled-2")

    def test_wikilink_to_accented_title(self, note_service):
        target = note_service.create_note("Café")
        referrer = note_service.create_note("Menu", content="Go to [[Café|the café]]")
        link = note_service.get_outgoing_links(referrer.id)[0]
        assert link.to_note_id == target.id
        assert link.alias == "the café"

    def test_search_decomposed_content(self, note_service):
        content = unicodedata.normalize("NFD", "Une réunion importante")
        note = note_service.create_note("Agenda", content=content)
        results = note_service.search("REUNION")
        assert [r.id for r in results] == [note.id]
        assert results[0].preview == content
