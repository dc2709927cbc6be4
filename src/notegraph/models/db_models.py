"""SQLAlchemy database models for notegraph."""
import logging
from typing import Optional

from sqlalchemy import (Boolean, CheckConstraint, Column, DateTime, ForeignKey,
                        Index, Integer, String, Text, UniqueConstraint,
                        create_engine, event)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from notegraph.config import config
from notegraph.models.schema import NoteType, TaskStatus, utc_now

logger = logging.getLogger(__name__)

# Create base class for SQLAlchemy models
Base = declarative_base()

_NOTE_TYPES = ", ".join(f"'{t.value}'" for t in NoteType)
_TASK_STATUSES = ", ".join(f"'{s.value}'" for s in TaskStatus)


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(String(255), primary_key=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), nullable=False, unique=True)
    content = Column(Text, nullable=True)
    note_type = Column(String(50), default=NoteType.NOTE.value, nullable=False, index=True)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime, default=utc_now, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)

    # Relationships
    outgoing_links = relationship(
        "DBLink",
        foreign_keys="DBLink.from_note_id",
        back_populates="source",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    tags = relationship(
        "DBTag", back_populates="note", cascade="all, delete-orphan", passive_deletes=True
    )
    tasks = relationship(
        "DBTask", back_populates="note", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(f"note_type IN ({_NOTE_TYPES})", name="ck_note_type"),
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id='{self.id}', title='{self.title}', slug='{self.slug}')>"


class DBLink(Base):
    """Database model for a wikilink between notes."""
    __tablename__ = "note_links"
    id = Column(Integer, primary_key=True, autoincrement=True)
    from_note_id = Column(
        String(255), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    to_note_id = Column(
        String(255), ForeignKey("notes.id", ondelete="SET NULL"), nullable=True, index=True
    )
    to_note_title = Column(String(255), nullable=False, index=True)
    alias = Column(String(255), nullable=True)
    position_start = Column(Integer, nullable=False)
    position_end = Column(Integer, nullable=False)
    is_broken = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    # Relationships
    source = relationship(
        "DBNote", foreign_keys=[from_note_id], back_populates="outgoing_links"
    )

    # One link per occurrence: re-inserting the same span is a no-op
    __table_args__ = (
        UniqueConstraint(
            "from_note_id", "to_note_title", "position_start", "position_end",
            name="uq_note_link_position",
        ),
    )

    def __repr__(self) -> str:
        """Return string representation of link."""
        return (
            f"<Link(id={self.id}, from='{self.from_note_id}', "
            f"to='{self.to_note_id}', title='{self.to_note_title}')>"
        )


class DBTag(Base):
    """Database model for a tag attached to a note."""
    __tablename__ = "tags"
    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(
        String(255), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tag = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    note = relationship("DBNote", back_populates="tags")

    __table_args__ = (
        UniqueConstraint("note_id", "tag", name="uq_note_tag"),
    )

    def __repr__(self) -> str:
        """Return string representation of tag."""
        return f"<Tag(id={self.id}, note='{self.note_id}', tag='{self.tag}')>"


class DBTask(Base):
    """Database model for a checklist task extracted from a note."""
    __tablename__ = "tasks"
    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(
        String(255), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)
    status = Column(String(20), default=TaskStatus.PENDING.value, nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)

    note = relationship("DBNote", back_populates="tasks")

    __table_args__ = (
        CheckConstraint(f"status IN ({_TASK_STATUSES})", name="ck_task_status"),
        Index("ix_tasks_note_line", "note_id", "line_number"),
    )

    def __repr__(self) -> str:
        """Return string representation of task."""
        return (
            f"<Task(id={self.id}, note='{self.note_id}', "
            f"status='{self.status}', line={self.line_number})>"
        )


class DBQuickCapture(Base):
    """Database model for the quick-capture log."""
    __tablename__ = "quick_captures"
    id = Column(Integer, primary_key=True, autoincrement=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)


def init_db(db_url: Optional[str] = None) -> Engine:
    """Create an engine and the schema, with hardened SQLite settings.

    Applies SQLite settings on every connection:
    - foreign_keys=ON so cascade/set-null constraints are enforced
    - WAL (Write-Ahead Logging) mode for atomic writes on file databases
    - NORMAL synchronous mode (good balance of safety vs speed)

    In-memory databases share a single connection (StaticPool) so every
    session sees the same data.
    """
    url = db_url or config.get_db_url()
    in_memory = ":memory:" in url

    if in_memory:
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        # SQLite is single-writer, so a small pool is ideal
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_pre_ping=True,
        )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    Base.metadata.create_all(engine)
    logger.info(f"Database schema ready at {'memory' if in_memory else url}")
    return engine


def get_session_factory(engine: Engine):
    """Get a session factory for the database."""
    return sessionmaker(bind=engine, expire_on_commit=False)
