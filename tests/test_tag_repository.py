"""Tests for the TagRepository class and tag tree building."""
from notegraph.models.schema import TagWithCount
from notegraph.storage.tag_repository import build_tag_tree


def test_tags_derived_on_create(note_repository, tag_repository):
    content = "---\ntags: [dev/frontend, infra]\n---\n#work #work #dev/frontend"
    note_id = note_repository.create_note("Tagged", content=content)
    tags = [t.tag for t in tag_repository.get_tags_by_note(note_id)]
    assert tags == ["dev/frontend", "infra", "work"]


def test_get_all_tags_counts_active_notes(note_repository, tag_repository):
    a = note_repository.create_note("A", content="#shared #only-a")
    note_repository.create_note("B", content="#shared")
    assert [(t.tag, t.count) for t in tag_repository.get_all_tags()] == [
        ("only-a", 1),
        ("shared", 2),
    ]
    note_repository.delete_note(a)
    assert [(t.tag, t.count) for t in tag_repository.get_all_tags()] == [("shared", 1)]


def test_get_notes_by_tag(note_repository, tag_repository):
    a = note_repository.create_note("A", content="#x")
    b = note_repository.create_note("B", content="#x #y")
    assert tag_repository.get_notes_by_tag("x") == [a, b]
    assert tag_repository.get_notes_by_tag("X") == []


def test_get_notes_by_tags_all_and_any(note_repository, tag_repository):
    a = note_repository.create_note("A", content="#x")
    b = note_repository.create_note("B", content="#x #y")
    c = note_repository.create_note("C", content="#y")
    assert tag_repository.get_notes_by_tags(["x", "y"]) == [b]
    assert tag_repository.get_notes_by_tags(["x", "y"], match_all=False) == [a, b, c]
    assert tag_repository.get_notes_by_tags([]) == []


def test_create_tags_skips_existing(note_repository, tag_repository):
    note_id = note_repository.create_note("N", content="#a")
    assert tag_repository.create_tags_for_note(note_id, ["a", "b", "b"]) == 1
    assert [t.tag for t in tag_repository.get_tags_by_note(note_id)] == ["a", "b"]


def test_replace_and_delete(note_repository, tag_repository):
    note_id = note_repository.create_note("N", content="#a")
    assert tag_repository.replace_tags_for_note(note_id, {"c", "d"}) == 2
    assert [t.tag for t in tag_repository.get_tags_by_note(note_id)] == ["c", "d"]
    assert tag_repository.delete_tags_by_note(note_id) == 2
    assert tag_repository.get_tags_by_note(note_id) == []


class TestTagTree:
    """Tests for nesting hierarchical tags."""

    def test_intermediate_nodes_have_zero_count(self):
        tree = build_tag_tree([TagWithCount(tag="dev/frontend/react", count=2)])
        assert len(tree) == 1
        dev = tree[0]
        assert (dev.name, dev.full_path, dev.count) == ("dev", "dev", 0)
        frontend = dev.children[0]
        assert (frontend.full_path, frontend.count) == ("dev/frontend", 0)
        assert frontend.children[0].full_path == "dev/frontend/react"
        assert frontend.children[0].count == 2

    def test_real_parent_tag_keeps_count(self):
        tree = build_tag_tree(
            [
                TagWithCount(tag="dev", count=1),
                TagWithCount(tag="dev/frontend", count=2),
                TagWithCount(tag="dev/backend", count=3),
                TagWithCount(tag="art", count=4),
            ]
        )
        assert [n.name for n in tree] == ["art", "dev"]
        dev = tree[1]
        assert dev.count == 1
        assert [(c.name, c.count) for c in dev.children] == [
            ("backend", 3),
            ("frontend", 2),
        ]

    def test_empty(self):
        assert build_tag_tree([]) == []
