"""Repository for tag storage and retrieval."""
import logging
from typing import Dict, Iterable, List

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from notegraph.models.db_models import DBNote, DBTag
from notegraph.models.schema import Tag, TagNode, TagWithCount, ensure_timezone_aware, utc_now
from notegraph.observability import traced
from notegraph.storage.database import Database

logger = logging.getLogger(__name__)


def _to_model(db_tag: DBTag) -> Tag:
    return Tag(
        id=db_tag.id,
        note_id=db_tag.note_id,
        tag=db_tag.tag,
        created_at=ensure_timezone_aware(db_tag.created_at),
    )


class TagRepository:
    """Repository for the tags derived from note content.

    Tags are owned by their note: every content save replaces the full
    set (delete-all, re-insert), and a tag string used by no active note
    simply disappears from the read queries.
    """

    def __init__(self, database: Database):
        """Initialize the tag repository.

        Args:
            database: Shared database handle.
        """
        self.database = database

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def replace_tags_in_session(
        self, session: Session, note_id: str, tags: Iterable[str]
    ) -> int:
        """Delete then insert the tags of one note inside ``session``.

        The caller commits. Duplicate and empty strings are dropped.
        """
        session.execute(delete(DBTag).where(DBTag.note_id == note_id))
        now = utc_now()
        unique = sorted({t for t in tags if t})
        for tag in unique:
            session.add(DBTag(note_id=note_id, tag=tag, created_at=now))
        return len(unique)

    def create_tags_for_note(self, note_id: str, tags: Iterable[str]) -> int:
        """Insert tags for a note, skipping ones it already has.

        Returns:
            Number of tags inserted.
        """
        with self.database.session() as session:
            existing = set(
                session.scalars(select(DBTag.tag).where(DBTag.note_id == note_id)).all()
            )
            now = utc_now()
            added = 0
            for tag in sorted({t for t in tags if t} - existing):
                session.add(DBTag(note_id=note_id, tag=tag, created_at=now))
                added += 1
            session.commit()
            return added

    def delete_tags_by_note(self, note_id: str) -> int:
        """Delete all tags of a note. Returns the number removed."""
        with self.database.session() as session:
            result = session.execute(delete(DBTag).where(DBTag.note_id == note_id))
            session.commit()
            return result.rowcount or 0

    @traced("replace_tags")
    def replace_tags_for_note(self, note_id: str, tags: Iterable[str]) -> int:
        """Replace the full tag set of a note. Returns the new tag count."""
        with self.database.session() as session:
            count = self.replace_tags_in_session(session, note_id, tags)
            session.commit()
            return count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all_tags(self) -> List[TagWithCount]:
        """Distinct tags over active notes with their note counts, A-Z."""
        with self.database.session() as session:
            rows = session.execute(
                select(DBTag.tag, func.count(DBTag.id))
                .join(DBNote, DBNote.id == DBTag.note_id)
                .where(DBNote.deleted_at.is_(None))
                .group_by(DBTag.tag)
                .order_by(DBTag.tag)
            ).all()
            return [TagWithCount(tag=tag, count=count) for tag, count in rows]

    def get_tags_by_note(self, note_id: str) -> List[Tag]:
        """All tags of one note, alphabetically."""
        with self.database.session() as session:
            db_tags = session.scalars(
                select(DBTag).where(DBTag.note_id == note_id).order_by(DBTag.tag)
            ).all()
            return [_to_model(t) for t in db_tags]

    def get_notes_by_tag(self, tag: str) -> List[str]:
        """IDs of active notes carrying exactly ``tag``, oldest note first."""
        with self.database.session() as session:
            return list(
                session.scalars(
                    select(DBTag.note_id)
                    .join(DBNote, DBNote.id == DBTag.note_id)
                    .where(DBTag.tag == tag, DBNote.deleted_at.is_(None))
                    .order_by(DBNote.created_at, DBNote.id)
                ).all()
            )

    def get_notes_by_tags(self, tags: List[str], match_all: bool = True) -> List[str]:
        """Find active note IDs that have all (or any) of the given tags.

        Args:
            tags: Tag strings to match exactly.
            match_all: If True, only notes that have ALL tags.
                       If False, notes that have ANY of the tags.
        """
        wanted = {t for t in tags if t}
        if not wanted:
            return []
        with self.database.session() as session:
            query = (
                select(DBTag.note_id)
                .join(DBNote, DBNote.id == DBTag.note_id)
                .where(DBTag.tag.in_(wanted), DBNote.deleted_at.is_(None))
                .group_by(DBTag.note_id, DBNote.created_at)
                .order_by(DBNote.created_at, DBTag.note_id)
            )
            if match_all:
                query = query.having(func.count(func.distinct(DBTag.tag)) == len(wanted))
            return list(session.scalars(query).all())


def build_tag_tree(tags: Iterable[TagWithCount]) -> List[TagNode]:
    """Nest ``a/b/c`` tags into a tree.

    Intermediate paths that are not tags themselves are synthesized with
    count 0; a path that is also a real tag keeps its own count. Nodes are
    sorted by name at every level.

    Example:
        ``dev/frontend`` (2) and ``dev`` (1) give
        ``dev`` (1) -> ``frontend`` (2).
    """
    counts: Dict[str, int] = {}
    for item in tags:
        parts = [p for p in item.tag.split("/") if p]
        for i in range(len(parts)):
            path = "/".join(parts[: i + 1])
            if i == len(parts) - 1:
                counts[path] = item.count
            else:
                counts.setdefault(path, 0)

    roots: Dict[str, TagNode] = {}
    nodes: Dict[str, TagNode] = {}
    for path in sorted(counts):
        parts = path.split("/")
        node = TagNode(name=parts[-1], full_path=path, count=counts[path])
        nodes[path] = node
        parent = "/".join(parts[:-1])
        if parent:
            nodes[parent].children.append(node)
        else:
            roots[path] = node

    def _sort(level: List[TagNode]) -> List[TagNode]:
        level.sort(key=lambda n: n.name)
        for n in level:
            _sort(n.children)
        return level

    return _sort(list(roots.values()))
