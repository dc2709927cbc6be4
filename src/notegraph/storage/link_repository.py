"""Repository for wikilink storage and retrieval."""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.orm import Session

from notegraph.models.db_models import DBLink, DBNote
from notegraph.models.schema import NoteLink, ensure_timezone_aware, utc_now
from notegraph.observability import traced
from notegraph.storage.content_extractor import parse_wikilinks, rewrite_wikilink_titles
from notegraph.storage.database import Database
from notegraph.utils import escape_like_pattern

logger = logging.getLogger(__name__)


def _to_model(db_link: DBLink, from_note_title: Optional[str] = None) -> NoteLink:
    return NoteLink(
        id=db_link.id,
        from_note_id=db_link.from_note_id,
        from_note_title=from_note_title,
        to_note_id=db_link.to_note_id,
        to_note_title=db_link.to_note_title,
        alias=db_link.alias,
        position_start=db_link.position_start,
        position_end=db_link.position_end,
        is_broken=bool(db_link.is_broken),
        created_at=ensure_timezone_aware(db_link.created_at),
    )


class LinkRepository:
    """Repository for the wikilink graph between notes.

    A link row is one ``[[...]]`` occurrence in the content of its source
    note. The target is kept both by title (always) and by ID (once the
    title resolves to a note), so links written before their target exists
    and links to renamed targets are both found by ``get_backlinks``.
    """

    def __init__(self, database: Database):
        """Initialize the link repository.

        Args:
            database: Shared database handle.
        """
        self.database = database

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _insert_or_ignore(
        session: Session,
        from_note_id: str,
        to_note_id: Optional[str],
        to_note_title: str,
        alias: Optional[str],
        position_start: int,
        position_end: int,
    ) -> None:
        stmt = (
            insert(DBLink)
            .values(
                from_note_id=from_note_id,
                to_note_id=to_note_id,
                to_note_title=to_note_title,
                alias=alias,
                position_start=position_start,
                position_end=position_end,
                is_broken=False,
                created_at=utc_now(),
            )
            .on_conflict_do_nothing(
                index_elements=[
                    "from_note_id", "to_note_title", "position_start", "position_end"
                ]
            )
        )
        session.execute(stmt)

    def create_link(
        self,
        from_note_id: str,
        to_note_id: Optional[str],
        to_note_title: str,
        alias: Optional[str],
        position_start: int,
        position_end: int,
    ) -> NoteLink:
        """Insert a link, or return the existing one for the same occurrence.

        Links are unique per (source, target title, start, end); inserting
        the same occurrence again is a silent no-op.
        """
        with self.database.session() as session:
            self._insert_or_ignore(
                session, from_note_id, to_note_id, to_note_title,
                alias, position_start, position_end,
            )
            session.commit()
            row = session.execute(
                select(DBLink, DBNote.title)
                .join(DBNote, DBNote.id == DBLink.from_note_id)
                .where(
                    DBLink.from_note_id == from_note_id,
                    DBLink.to_note_title == to_note_title,
                    DBLink.position_start == position_start,
                    DBLink.position_end == position_end,
                )
            ).one()
            return _to_model(row[0], row[1])

    def _resolve_titles(self, session: Session, titles: Iterable[str]) -> Dict[str, str]:
        """Map each title to the ID of the oldest active note carrying it."""
        wanted = set(titles)
        if not wanted:
            return {}
        rows = session.execute(
            select(DBNote.title, DBNote.id)
            .where(DBNote.title.in_(wanted), DBNote.deleted_at.is_(None))
            .order_by(DBNote.created_at, DBNote.id)
        ).all()
        resolved: Dict[str, str] = {}
        for title, note_id in rows:
            resolved.setdefault(title, note_id)
        return resolved

    def replace_links_in_session(
        self, session: Session, note_id: str, content: Optional[str]
    ) -> int:
        """Re-derive the outgoing links of one note inside ``session``."""
        session.execute(delete(DBLink).where(DBLink.from_note_id == note_id))
        parsed = parse_wikilinks(content)
        targets = self._resolve_titles(session, (link.title for link in parsed))
        for link in parsed:
            self._insert_or_ignore(
                session, note_id, targets.get(link.title), link.title,
                link.alias, link.start, link.end,
            )
        return len(parsed)

    @traced("replace_links")
    def replace_links_for_note(self, note_id: str, content: Optional[str]) -> int:
        """Replace all outgoing links of a note from its content.

        Targets resolve by exact title to the oldest active note; an
        unknown title is stored with ``to_note_id=None``.

        Returns:
            Number of wikilink occurrences found.
        """
        with self.database.session() as session:
            count = self.replace_links_in_session(session, note_id, content)
            session.commit()
            return count

    def delete_links_by_note(self, note_id: str) -> int:
        """Delete all links owned by a note. Returns the number removed."""
        with self.database.session() as session:
            result = session.execute(delete(DBLink).where(DBLink.from_note_id == note_id))
            session.commit()
            return result.rowcount or 0

    def mark_links_broken(self, to_title: str) -> int:
        """Flag every link that targets ``to_title`` as broken."""
        with self.database.session() as session:
            result = session.execute(
                update(DBLink)
                .where(DBLink.to_note_title == to_title)
                .values(is_broken=True)
            )
            session.commit()
        count = result.rowcount or 0
        logger.debug(f"Marked {count} links to '{to_title}' as broken")
        return count

    def resolve_dangling_links(self, title: str, note_id: str) -> int:
        """Point unresolved or broken links to ``title`` at ``note_id``."""
        with self.database.session() as session:
            result = session.execute(
                update(DBLink)
                .where(
                    DBLink.to_note_title == title,
                    or_(DBLink.to_note_id.is_(None), DBLink.is_broken.is_(True)),
                )
                .values(to_note_id=note_id, is_broken=False)
            )
            session.commit()
        count = result.rowcount or 0
        if count:
            logger.debug(f"Resolved {count} dangling links to '{title}'")
        return count

    @traced("update_links_on_rename")
    def update_links_on_rename(self, old_title: str, new_title: str) -> List[str]:
        """Retarget links from ``old_title`` to ``new_title``.

        In one transaction: renames the target title on every link row, then
        rewrites ``[[old_title]]`` and ``[[old_title|alias]]`` in the content
        of every active note that contains them (alias text is kept). Either
        everything commits or nothing does; running it again is a no-op.

        Link positions in rewritten notes are stale afterwards when the
        titles differ in length, so callers should re-derive the links of the
        returned notes.

        Returns:
            IDs of the notes whose content was rewritten.
        """
        if old_title == new_title:
            return []
        escaped = escape_like_pattern(old_title)
        rewritten: List[str] = []
        with self.database.session() as session:
            session.execute(
                update(DBLink)
                .where(DBLink.to_note_title == old_title)
                .values(to_note_title=new_title)
            )
            candidates = session.scalars(
                select(DBNote).where(
                    DBNote.deleted_at.is_(None),
                    or_(
                        DBNote.content.like(f"%[[{escaped}]]%", escape="\\"),
                        DBNote.content.like(f"%[[{escaped}|%", escape="\\"),
                    ),
                )
            ).all()
            now = utc_now()
            for db_note in candidates:
                content, count = rewrite_wikilink_titles(
                    db_note.content, old_title, new_title
                )
                if count:
                    db_note.content = content
                    db_note.updated_at = now
                    rewritten.append(db_note.id)
            session.commit()
        logger.info(
            f"Renamed link target '{old_title}' -> '{new_title}', "
            f"rewrote {len(rewritten)} notes"
        )
        return rewritten

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_outgoing_links(self, note_id: str) -> List[NoteLink]:
        """Links owned by a note, in content order."""
        with self.database.session() as session:
            rows = session.execute(
                select(DBLink, DBNote.title)
                .join(DBNote, DBNote.id == DBLink.from_note_id)
                .where(DBLink.from_note_id == note_id)
                .order_by(DBLink.position_start, DBLink.id)
            ).all()
            return [_to_model(link, title) for link, title in rows]

    def get_backlinks(self, note_id: str) -> List[NoteLink]:
        """Links pointing at a note by ID or by its current title.

        Returns an empty list for an unknown note.
        """
        with self.database.session() as session:
            target = session.get(DBNote, note_id)
            if target is None:
                return []
            rows = session.execute(
                select(DBLink, DBNote.title)
                .join(DBNote, DBNote.id == DBLink.from_note_id)
                .where(
                    DBNote.deleted_at.is_(None),
                    or_(
                        DBLink.to_note_id == note_id,
                        DBLink.to_note_title == target.title,
                    ),
                )
                .order_by(DBNote.created_at, DBLink.from_note_id, DBLink.position_start)
            ).all()
            return [_to_model(link, title) for link, title in rows]

    def count_links(self) -> int:
        """Number of links owned by active notes."""
        with self.database.session() as session:
            return session.scalar(
                select(func.count(DBLink.id))
                .join(DBNote, DBNote.id == DBLink.from_note_id)
                .where(DBNote.deleted_at.is_(None))
            ) or 0
