"""Data models for notegraph.

These are the plain value objects handed to callers. The persisted
rows live in ``db_models``; repositories convert between the two.
"""

import datetime
import os
import threading
from dataclasses import dataclass, field
from datetime import timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(
    dt_value: Optional[datetime.datetime],
) -> Optional[datetime.datetime]:
    """Treat naive datetimes read back from SQLite as UTC.

    SQLite has no timezone type, so values come back naive even when
    they were written as aware UTC datetimes.
    """
    if dt_value is None:
        return None
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


# Thread-safe counter for uniqueness (seeded from PID for cross-process safety)
_id_lock = threading.Lock()
_last_timestamp = 0
_counter = (os.getpid() * 7) % 1_000_000


def generate_id() -> str:
    """Generate a timestamp-based note ID with guaranteed uniqueness.

    Returns:
        A string in format "YYYYMMDDTHHMMSSsssssscccccc" where:
        - YYYYMMDD is the date
        - T is the ISO 8601 date/time separator
        - HHMMSS is the time (hours, minutes, seconds)
        - ssssss is the 6-digit microsecond component
        - cccccc is a 6-digit counter for same-microsecond uniqueness

    IDs generated by one process sort in creation order, which makes
    them a stable tie-breaker for notes sharing a ``created_at``.
    """
    global _last_timestamp, _counter

    with _id_lock:
        now = utc_now()
        current_timestamp = int(now.timestamp() * 1_000_000)

        if current_timestamp <= _last_timestamp:
            # Same microsecond (or clock stepped back): keep counting
            _counter += 1
            now = datetime.datetime.fromtimestamp(
                _last_timestamp / 1_000_000, tz=timezone.utc
            )
        else:
            _last_timestamp = current_timestamp
            _counter = (os.getpid() * 7) % 1_000_000

        _counter %= 1_000_000

        date_time = now.strftime("%Y%m%dT%H%M%S")
        return f"{date_time}{now.microsecond:06d}{_counter:06d}"


class NoteType(str, Enum):
    """Kinds of notes, declared through a frontmatter ``type:`` line."""

    NOTE = "note"
    PROJECT = "project"
    PERSON = "person"
    MEETING = "meeting"
    DAILY = "daily"

    @classmethod
    def parse(cls, value: object) -> Optional["NoteType"]:
        """Return the matching member, or None for anything unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class TaskStatus(str, Enum):
    """Checklist task states and their checkbox markers."""

    PENDING = "pending"  # [ ]
    DONE = "done"  # [x]
    DEFERRED = "deferred"  # [>]
    CANCELLED = "cancelled"  # [-]

    @classmethod
    def from_marker(cls, marker: str) -> Optional["TaskStatus"]:
        """Map a checkbox character to a status; None if unrecognized."""
        return _TASK_MARKERS.get(marker)


_TASK_MARKERS = {
    " ": TaskStatus.PENDING,
    "x": TaskStatus.DONE,
    ">": TaskStatus.DEFERRED,
    "-": TaskStatus.CANCELLED,
}


class Note(BaseModel):
    """A note as stored by the note repository."""

    id: str = Field(..., description="Unique ID of the note")
    title: str = Field(..., description="Title of the note")
    slug: str = Field(..., description="URL-safe, globally unique slug")
    content: Optional[str] = Field(default=None, description="Markdown content")
    note_type: NoteType = Field(default=NoteType.NOTE, description="Type of note")
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime.datetime] = Field(
        default=None, description="Soft-delete timestamp; None while active"
    )

    model_config = {"extra": "forbid"}

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class NoteLink(BaseModel):
    """A wikilink from one note to another (possibly missing) note."""

    id: int
    from_note_id: str
    from_note_title: Optional[str] = None
    to_note_id: Optional[str] = Field(
        default=None, description="None when the title did not resolve to a note"
    )
    to_note_title: str
    alias: Optional[str] = None
    position_start: int
    position_end: int
    is_broken: bool = False
    created_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class Tag(BaseModel):
    """A tag attached to one note."""

    id: int
    note_id: str
    tag: str
    created_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return self.tag


class TagWithCount(BaseModel):
    """A distinct tag string with the number of active notes using it."""

    tag: str
    count: int

    model_config = {"frozen": True}


class TagNode(BaseModel):
    """A node of the hierarchical tag tree built from ``a/b/c`` tags."""

    name: str
    full_path: str
    count: int = 0
    children: List["TagNode"] = Field(default_factory=list)


TagNode.model_rebuild()


class Task(BaseModel):
    """A checklist item extracted from a note's content."""

    id: int
    note_id: str
    content: str
    status: TaskStatus
    line_number: int
    created_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class TaskWithNote(Task):
    """A task joined with the title of the note it belongs to."""

    note_title: str


class SearchResult(Note):
    """A note returned by search, with an optional content preview."""

    preview: Optional[str] = None


class QuickCapture(BaseModel):
    """An entry of the quick-capture log."""

    id: int
    content: str
    created_at: datetime.datetime = Field(default_factory=utc_now)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Capture content cannot be empty")
        return v


@dataclass(frozen=True)
class ParsedTask:
    """A task as extracted from text, before it is persisted."""

    content: str
    status: TaskStatus
    line_number: int


@dataclass(frozen=True)
class ParsedWikilink:
    """A ``[[title]]`` or ``[[title|alias]]`` occurrence in text.

    ``start``/``end`` span the whole match including brackets; the
    title and alias spans cover the raw (untrimmed) inner text.
    """

    title: str
    alias: Optional[str]
    start: int
    end: int
    title_span: Tuple[int, int] = field(default=(0, 0))
    alias_span: Optional[Tuple[int, int]] = None
