"""Service layer orchestrating the note graph stores."""
import logging
from typing import Dict, List, Optional, Union

from notegraph.exceptions import NoteNotFoundError
from notegraph.models.schema import (
    Note,
    NoteLink,
    NoteType,
    SearchResult,
    Tag,
    TagNode,
    TagWithCount,
    Task,
    TaskStatus,
    TaskWithNote,
)
from notegraph.observability import traced
from notegraph.services.search_service import SearchService
from notegraph.storage.capture_repository import CaptureRepository
from notegraph.storage.content_extractor import rewrite_wikilink_titles
from notegraph.storage.database import Database
from notegraph.storage.link_repository import LinkRepository
from notegraph.storage.note_repository import NoteRepository
from notegraph.storage.tag_repository import TagRepository, build_tag_tree
from notegraph.storage.task_repository import TaskRepository

logger = logging.getLogger(__name__)


class NoteGraphService:
    """Service for managing notes together with their links, tags and tasks.

    The repositories each keep one table consistent; this service runs the
    flows that span several of them (link sync after a save, the rename
    cascade, marking links broken before a delete).
    """

    def __init__(self, database: Optional[Database] = None, db_url: Optional[str] = None):
        """Initialize the service.

        Args:
            database: Shared database handle. Created from ``db_url`` (or
                config) if None. It is not opened here; call ``initialize()``.
            db_url: SQLAlchemy URL used when ``database`` is None.
        """
        self.database = database or Database(db_url)
        self.tags = TagRepository(self.database)
        self.tasks = TaskRepository(self.database)
        self.notes = NoteRepository(
            self.database, tag_repository=self.tags, task_repository=self.tasks
        )
        self.links = LinkRepository(self.database)
        self.captures = CaptureRepository(self.database)
        self.search_service = SearchService(self.notes)

    def initialize(self) -> "NoteGraphService":
        """Open the database and create the schema."""
        self.database.initialize()
        return self

    def close(self) -> None:
        self.database.close()

    def __enter__(self) -> "NoteGraphService":
        return self.initialize()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _require_active(self, note_id: str) -> Note:
        note = self.notes.get_note(note_id)
        if note is None or note.is_deleted:
            raise NoteNotFoundError(note_id)
        return note

    def _resync_note(self, note_id: str) -> None:
        """Re-derive tags, tasks and link positions of one note."""
        note = self._require_active(note_id)
        self.notes.reindex_note(note_id)
        self.links.replace_links_for_note(note_id, note.content)

    # =========================================================================
    # Note lifecycle
    # =========================================================================

    @traced("service.create_note")
    def create_note(
        self, title: str, content: Optional[str] = None, slug: Optional[str] = None
    ) -> Note:
        """Create a note, index its links, and adopt links waiting for its title."""
        note_id = self.notes.create_note(title, slug=slug, content=content)
        self.links.replace_links_for_note(note_id, content)
        self.links.resolve_dangling_links(title, note_id)
        return self._require_active(note_id)

    @traced("service.save_note")
    def save_note(
        self,
        note_id: str,
        title: str,
        content: Optional[str],
        slug: Optional[str] = None,
    ) -> Note:
        """Save an edited note.

        A changed title goes through ``rename_note`` first so that links and
        wikilinks elsewhere follow it. The current slug is kept unless a new
        one is given. Self-references in the incoming content are retitled
        the same way the cascade retitles them in the stored copy.

        Raises:
            NoteNotFoundError: If the note is missing or soft-deleted.
        """
        current = self._require_active(note_id)
        if current.title != title:
            old_title = current.title
            current = self.rename_note(note_id, title)
            if content:
                content, _ = rewrite_wikilink_titles(content, old_title, title)
        note = self.notes.update_note(
            note_id, title, slug=slug or current.slug, content=content
        )
        self.links.replace_links_for_note(note_id, content)
        return note

    @traced("service.rename_note")
    def rename_note(self, note_id: str, new_title: str) -> Note:
        """Rename a note and cascade the new title through the graph.

        The slug is re-derived from the new title. Link rows and wikilink
        text in other notes are retargeted in one transaction; every note
        whose content changed is then re-indexed.

        Raises:
            NoteNotFoundError: If the note is missing or soft-deleted.
        """
        current = self._require_active(note_id)
        if current.title == new_title:
            return current
        old_title = current.title
        self.notes.update_note(note_id, new_title, content=current.content)
        rewritten = self.links.update_links_on_rename(old_title, new_title)
        for rewritten_id in rewritten:
            self._resync_note(rewritten_id)
        self.links.resolve_dangling_links(new_title, note_id)
        logger.info(
            f"Renamed note {note_id} '{old_title}' -> '{new_title}' "
            f"({len(rewritten)} notes rewritten)"
        )
        return self._require_active(note_id)

    @traced("service.delete_note")
    def delete_note(self, note_id: str) -> None:
        """Mark links to the note broken, then soft-delete it.

        Raises:
            NoteNotFoundError: If the note is missing or already deleted.
        """
        note = self._require_active(note_id)
        self.links.mark_links_broken(note.title)
        self.notes.delete_note(note_id)

    def update_note_type(self, note_id: str, note_type: Union[str, NoteType]) -> Note:
        """Change the type of a note and return it."""
        self.notes.update_note_type(note_id, note_type)
        return self._require_active(note_id)

    @traced("service.reindex_all")
    def reindex_all(self) -> int:
        """Re-derive tags, tasks and links of every active note."""
        count = self.notes.reindex_all()
        for note in self.notes.get_all_notes():
            self.links.replace_links_for_note(note.id, note.content)
            self.links.resolve_dangling_links(note.title, note.id)
        return count

    # =========================================================================
    # Readers
    # =========================================================================

    def get_note(self, note_id: str) -> Optional[Note]:
        """Retrieve a note by ID, soft-deleted ones included."""
        return self.notes.get_note(note_id)

    def get_note_by_title(self, title: str) -> Optional[Note]:
        return self.notes.get_note_by_title(title)

    def get_note_by_slug(self, slug: str) -> Optional[Note]:
        return self.notes.get_note_by_slug(slug)

    def get_all_notes(self) -> List[Note]:
        return self.notes.get_all_notes()

    def count_notes(self) -> int:
        return self.notes.count_notes()

    def search(self, query: str) -> List[SearchResult]:
        """Accent- and case-insensitive search over active notes."""
        return self.search_service.search_notes(query)

    def get_outgoing_links(self, note_id: str) -> List[NoteLink]:
        return self.links.get_outgoing_links(note_id)

    def get_backlinks(self, note_id: str) -> List[NoteLink]:
        return self.links.get_backlinks(note_id)

    def get_all_tags(self) -> List[TagWithCount]:
        return self.tags.get_all_tags()

    def get_tags_by_note(self, note_id: str) -> List[Tag]:
        return self.tags.get_tags_by_note(note_id)

    def get_notes_by_tag(self, tag: str) -> List[Note]:
        """Active notes carrying exactly ``tag``, oldest first."""
        notes = (self.notes.get_note(i) for i in self.tags.get_notes_by_tag(tag))
        return [n for n in notes if n is not None]

    def get_tag_tree(self) -> List[TagNode]:
        """All tags of active notes nested by ``/``."""
        return build_tag_tree(self.tags.get_all_tags())

    def get_tasks_by_note(self, note_id: str) -> List[Task]:
        return self.tasks.get_tasks_by_note(note_id)

    def get_all_tasks(self) -> List[TaskWithNote]:
        return self.tasks.get_all_tasks()

    def get_tasks_by_status(self, status: Union[str, TaskStatus]) -> List[TaskWithNote]:
        return self.tasks.get_tasks_by_status(status)

    def count_tasks_by_status(self) -> Dict[TaskStatus, int]:
        return self.tasks.count_tasks_by_status()

    # =========================================================================
    # Quick capture
    # =========================================================================

    def save_quick_capture(self, content: str) -> None:
        """Append text to the quick-capture log (blank input is ignored)."""
        self.captures.save_capture(content)

    def get_quick_capture_history(self, limit: Optional[int] = None) -> List[str]:
        return self.captures.get_capture_history(limit)
