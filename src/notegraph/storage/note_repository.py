"""Repository for note storage and retrieval."""

import logging
from typing import Callable, List, Optional, Union

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notegraph.config import config
from notegraph.exceptions import (
    ErrorCode,
    NoteNotFoundError,
    SlugExhaustedError,
    ValidationError,
)
from notegraph.models.db_models import DBLink, DBNote, DBTag, DBTask
from notegraph.models.schema import (
    Note,
    NoteType,
    ensure_timezone_aware,
    generate_id,
    utc_now,
)
from notegraph.observability import traced
from notegraph.storage.content_extractor import ContentExtractor
from notegraph.storage.database import Database
from notegraph.storage.tag_repository import TagRepository
from notegraph.storage.task_repository import TaskRepository
from notegraph.utils import generate_slug

logger = logging.getLogger(__name__)


def _is_slug_conflict(error: IntegrityError) -> bool:
    """True when the violated constraint is the unique note slug."""
    return "notes.slug" in str(error.orig)


def _slug_candidate(base_slug: str, attempt: int) -> str:
    """``base`` on the first attempt, then ``base-2``, ``base-3``, ..."""
    return base_slug if attempt == 1 else f"{base_slug}-{attempt}"


class NoteRepository:
    """Repository for notes and their lifecycle.

    The note row is the owner of all derived data: on create/update the
    tags and tasks of the note are re-derived from its content inside the
    same transaction, and on delete the note is soft-deleted while the
    links, tags and tasks it owns are removed.

    Links pointing *to* a deleted note are left for the caller to mark
    broken (see ``LinkRepository.mark_links_broken``).
    """

    def __init__(
        self,
        database: Database,
        tag_repository: Optional[TagRepository] = None,
        task_repository: Optional[TaskRepository] = None,
        extractor: Optional[ContentExtractor] = None,
        slug_max_attempts: Optional[int] = None,
    ):
        """Initialize the repository.

        Args:
            database: Shared database handle.
            tag_repository: Tag index to refresh on save. Created on the
                same database if None.
            task_repository: Task index to refresh on save. Created on the
                same database if None.
            extractor: Content extractor. Defaults to one built from config.
            slug_max_attempts: Cap for the slug collision loop. Defaults to
                ``config.slug_max_attempts``.
        """
        self.database = database
        self.tags = tag_repository or TagRepository(database)
        self.tasks = task_repository or TaskRepository(database)
        self.extractor = extractor or ContentExtractor(config.task_max_length)
        self.slug_max_attempts = slug_max_attempts or config.slug_max_attempts

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _db_note_to_model(db_note: DBNote) -> Note:
        """Convert a database row to a Note value object."""
        return Note(
            id=db_note.id,
            title=db_note.title,
            slug=db_note.slug,
            content=db_note.content,
            note_type=NoteType(db_note.note_type),
            created_at=ensure_timezone_aware(db_note.created_at),
            updated_at=ensure_timezone_aware(db_note.updated_at),
            deleted_at=ensure_timezone_aware(db_note.deleted_at),
        )

    @staticmethod
    def _get_active(session: Session, note_id: str) -> DBNote:
        db_note = session.get(DBNote, note_id)
        if db_note is None or db_note.deleted_at is not None:
            raise NoteNotFoundError(note_id)
        return db_note

    def _sync_derived(self, session: Session, note_id: str, content: Optional[str]) -> None:
        """Replace tags and tasks of a note from its content (caller commits)."""
        if content:
            tags = self.extractor.parse_tags(content)
            tasks = self.extractor.parse_tasks(content)
        else:
            tags, tasks = set(), []
        self.tags.replace_tags_in_session(session, note_id, tags)
        self.tasks.replace_tasks_in_session(session, note_id, tasks)
        logger.debug(
            f"Derived {len(tags)} tags and {len(tasks)} tasks for note {note_id}"
        )

    def _write_with_unique_slug(
        self,
        base_slug: str,
        write: Callable[[Session, str], DBNote],
    ) -> DBNote:
        """Run ``write`` until its slug no longer collides.

        ``write`` stages the note with the candidate slug in a fresh session;
        a unique-slug violation rolls back and retries with the next suffix.
        Any other error propagates. On success the derived tags/tasks are
        replaced and everything commits together.
        """
        for attempt in range(1, self.slug_max_attempts + 1):
            candidate = _slug_candidate(base_slug, attempt)
            with self.database.session() as session:
                db_note = write(session, candidate)
                try:
                    session.flush()
                except IntegrityError as e:
                    session.rollback()
                    if not _is_slug_conflict(e):
                        raise
                    logger.debug(f"Slug '{candidate}' taken, trying next suffix")
                    continue
                self._sync_derived(session, db_note.id, db_note.content)
                session.commit()
                return db_note
        raise SlugExhaustedError(base_slug, self.slug_max_attempts)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @traced("create_note")
    def create_note(
        self, title: str, slug: Optional[str] = None, content: Optional[str] = None
    ) -> str:
        """Create a note and derive its type, tags and tasks.

        Args:
            title: Note title.
            slug: Preferred slug. Derived from the title when empty. A
                taken slug gets a ``-2``, ``-3``, ... suffix.
            content: Markdown content (may be None).

        Returns:
            The new note ID.

        Raises:
            SlugExhaustedError: If no free slug suffix was found.
        """
        note_id = generate_id()
        note_type = self.extractor.parse_type(content)
        now = utc_now()

        def write(session: Session, candidate: str) -> DBNote:
            db_note = DBNote(
                id=note_id,
                title=title,
                slug=candidate,
                content=content,
                note_type=note_type.value,
                created_at=now,
                updated_at=now,
            )
            session.add(db_note)
            return db_note

        db_note = self._write_with_unique_slug(slug or generate_slug(title), write)
        logger.info(f"Created note {note_id} ('{title}', slug={db_note.slug})")
        return note_id

    @traced("update_note")
    def update_note(
        self,
        note_id: str,
        title: str,
        slug: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Note:
        """Update title, slug and content of an active note.

        Tags and tasks are fully replaced from the new content (cleared when
        the content is empty). A frontmatter ``type:`` in the new content is
        adopted; without one the stored type is kept. Saving a note with its
        own current slug never renumbers it.

        Raises:
            NoteNotFoundError: If the note is missing or soft-deleted.
            SlugExhaustedError: If no free slug suffix was found.
        """
        declared = self.extractor.declared_type(content)

        def write(session: Session, candidate: str) -> DBNote:
            db_note = self._get_active(session, note_id)
            db_note.title = title
            db_note.slug = candidate
            db_note.content = content
            if declared is not None:
                db_note.note_type = declared.value
            db_note.updated_at = utc_now()
            return db_note

        db_note = self._write_with_unique_slug(slug or generate_slug(title), write)
        return self._db_note_to_model(db_note)

    @traced("delete_note")
    def delete_note(self, note_id: str) -> None:
        """Soft-delete a note and drop the links, tags and tasks it owns.

        Raises:
            NoteNotFoundError: If the note is missing or already deleted.
        """
        with self.database.session() as session:
            db_note = self._get_active(session, note_id)
            db_note.deleted_at = utc_now()
            session.execute(delete(DBLink).where(DBLink.from_note_id == note_id))
            session.execute(delete(DBTag).where(DBTag.note_id == note_id))
            session.execute(delete(DBTask).where(DBTask.note_id == note_id))
            session.commit()
        logger.info(f"Soft-deleted note {note_id}")

    @traced("update_note_type")
    def update_note_type(self, note_id: str, note_type: Union[str, NoteType]) -> None:
        """Set the type of an active note.

        Raises:
            ValidationError: If ``note_type`` is not a known type.
            NoteNotFoundError: If the note is missing or soft-deleted.
        """
        parsed = NoteType.parse(note_type)
        if parsed is None:
            raise ValidationError(
                f"Unknown note type '{note_type}'",
                field="note_type",
                value=note_type,
                code=ErrorCode.INVALID_NOTE_TYPE,
            )
        with self.database.session() as session:
            db_note = self._get_active(session, note_id)
            db_note.note_type = parsed.value
            session.commit()

    @traced("reindex_note")
    def reindex_note(self, note_id: str) -> None:
        """Re-derive tags and tasks of one active note from stored content."""
        with self.database.session() as session:
            db_note = self._get_active(session, note_id)
            self._sync_derived(session, note_id, db_note.content)
            session.commit()

    @traced("reindex_all")
    def reindex_all(self) -> int:
        """Re-derive tags and tasks of every active note.

        Returns:
            Number of notes reindexed.
        """
        count = 0
        with self.database.session() as session:
            for db_note in session.scalars(
                select(DBNote).where(DBNote.deleted_at.is_(None))
            ).all():
                self._sync_derived(session, db_note.id, db_note.content)
                count += 1
            session.commit()
        logger.info(f"Reindexed {count} notes")
        return count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_note(self, note_id: str) -> Optional[Note]:
        """Get a note by ID, including soft-deleted ones (``deleted_at`` set)."""
        with self.database.session() as session:
            db_note = session.get(DBNote, note_id)
            return self._db_note_to_model(db_note) if db_note else None

    def get_all_notes(self) -> List[Note]:
        """All active notes, oldest first."""
        with self.database.session() as session:
            db_notes = session.scalars(
                select(DBNote)
                .where(DBNote.deleted_at.is_(None))
                .order_by(DBNote.created_at, DBNote.id)
            ).all()
            return [self._db_note_to_model(n) for n in db_notes]

    def get_note_by_title(self, title: str) -> Optional[Note]:
        """The oldest active note with exactly this title."""
        with self.database.session() as session:
            db_note = session.scalars(
                select(DBNote)
                .where(DBNote.title == title, DBNote.deleted_at.is_(None))
                .order_by(DBNote.created_at, DBNote.id)
                .limit(1)
            ).first()
            return self._db_note_to_model(db_note) if db_note else None

    def get_note_by_slug(self, slug: str) -> Optional[Note]:
        """The active note with this slug."""
        with self.database.session() as session:
            db_note = session.scalars(
                select(DBNote).where(DBNote.slug == slug, DBNote.deleted_at.is_(None))
            ).first()
            return self._db_note_to_model(db_note) if db_note else None

    def count_notes(self) -> int:
        """Number of active notes."""
        with self.database.session() as session:
            return session.scalar(
                select(func.count(DBNote.id)).where(DBNote.deleted_at.is_(None))
            ) or 0
