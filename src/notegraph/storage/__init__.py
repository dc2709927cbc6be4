"""Storage layer for the note graph."""

from notegraph.storage.capture_repository import CaptureRepository
from notegraph.storage.content_extractor import ContentExtractor
from notegraph.storage.database import Database
from notegraph.storage.link_repository import LinkRepository
from notegraph.storage.note_repository import NoteRepository
from notegraph.storage.tag_repository import TagRepository, build_tag_tree
from notegraph.storage.task_repository import TaskRepository

__all__ = [
    "CaptureRepository",
    "ContentExtractor",
    "Database",
    "LinkRepository",
    "NoteRepository",
    "TagRepository",
    "TaskRepository",
    "build_tag_tree",
]
