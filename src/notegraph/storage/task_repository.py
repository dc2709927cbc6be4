"""Repository for checklist task storage and retrieval."""
import logging
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from notegraph.exceptions import ErrorCode, ValidationError
from notegraph.models.db_models import DBNote, DBTask
from notegraph.models.schema import (
    ParsedTask,
    Task,
    TaskStatus,
    TaskWithNote,
    ensure_timezone_aware,
    utc_now,
)
from notegraph.observability import traced
from notegraph.storage.database import Database

logger = logging.getLogger(__name__)


def _coerce_status(status: Union[str, TaskStatus]) -> TaskStatus:
    try:
        return TaskStatus(status)
    except ValueError as e:
        raise ValidationError(
            f"Unknown task status '{status}'",
            field="status",
            value=status,
            code=ErrorCode.INVALID_TASK_STATUS,
        ) from e


class TaskRepository:
    """Repository for tasks derived from note content.

    Task rows are regenerated on every content save, so task IDs are only
    valid until the owning note is saved again.
    """

    def __init__(self, database: Database):
        self.database = database

    def replace_tasks_in_session(
        self, session: Session, note_id: str, tasks: Iterable[ParsedTask]
    ) -> int:
        """Delete then insert the tasks of one note inside ``session``."""
        session.execute(delete(DBTask).where(DBTask.note_id == note_id))
        return self._insert(session, note_id, tasks)

    @staticmethod
    def _insert(session: Session, note_id: str, tasks: Iterable[ParsedTask]) -> int:
        now = utc_now()
        count = 0
        for task in tasks:
            session.add(
                DBTask(
                    note_id=note_id,
                    content=task.content,
                    status=task.status.value,
                    line_number=task.line_number,
                    created_at=now,
                )
            )
            count += 1
        return count

    def create_tasks_for_note(self, note_id: str, tasks: Iterable[ParsedTask]) -> int:
        """Insert tasks for a note. Returns the number inserted."""
        with self.database.session() as session:
            count = self._insert(session, note_id, tasks)
            session.commit()
            return count

    def delete_tasks_by_note(self, note_id: str) -> int:
        """Delete all tasks of a note. Returns the number removed."""
        with self.database.session() as session:
            result = session.execute(delete(DBTask).where(DBTask.note_id == note_id))
            session.commit()
            return result.rowcount or 0

    @traced("replace_tasks")
    def replace_tasks_for_note(self, note_id: str, tasks: Iterable[ParsedTask]) -> int:
        """Replace all tasks of a note. Returns the new task count."""
        with self.database.session() as session:
            count = self.replace_tasks_in_session(session, note_id, tasks)
            session.commit()
            return count

    def get_tasks_by_note(self, note_id: str) -> List[Task]:
        """Tasks of one note in source line order."""
        with self.database.session() as session:
            db_tasks = session.scalars(
                select(DBTask)
                .where(DBTask.note_id == note_id)
                .order_by(DBTask.line_number, DBTask.id)
            ).all()
            return [
                Task(
                    id=t.id,
                    note_id=t.note_id,
                    content=t.content,
                    status=TaskStatus(t.status),
                    line_number=t.line_number,
                    created_at=ensure_timezone_aware(t.created_at),
                )
                for t in db_tasks
            ]

    def get_all_tasks(self) -> List[TaskWithNote]:
        """Tasks of all active notes, newest first."""
        return self._query_with_notes()

    def get_tasks_by_status(self, status: Union[str, TaskStatus]) -> List[TaskWithNote]:
        """Tasks of active notes with the given status, newest first.

        Raises:
            ValidationError: If ``status`` is not a known task status.
        """
        return self._query_with_notes(_coerce_status(status))

    def count_tasks_by_status(self) -> Dict[TaskStatus, int]:
        """Task counts per status over active notes (zero-filled)."""
        counts = {status: 0 for status in TaskStatus}
        with self.database.session() as session:
            rows = session.execute(
                select(DBTask.status, func.count(DBTask.id))
                .join(DBNote, DBNote.id == DBTask.note_id)
                .where(DBNote.deleted_at.is_(None))
                .group_by(DBTask.status)
            ).all()
        for status, count in rows:
            counts[TaskStatus(status)] = count
        return counts

    def _query_with_notes(self, status: Optional[TaskStatus] = None) -> List[TaskWithNote]:
        with self.database.session() as session:
            query = (
                select(DBTask, DBNote.title)
                .join(DBNote, DBNote.id == DBTask.note_id)
                .where(DBNote.deleted_at.is_(None))
            )
            if status is not None:
                query = query.where(DBTask.status == status.value)
            query = query.order_by(
                DBTask.created_at.desc(), DBTask.note_id, DBTask.line_number
            )
            return [
                TaskWithNote(
                    id=t.id,
                    note_id=t.note_id,
                    content=t.content,
                    status=TaskStatus(t.status),
                    line_number=t.line_number,
                    created_at=ensure_timezone_aware(t.created_at),
                    note_title=title,
                )
                for t, title in session.execute(query).all()
            ]
