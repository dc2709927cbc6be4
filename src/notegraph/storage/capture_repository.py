"""Repository for the quick-capture log."""
import logging
from typing import List, Optional

from sqlalchemy import select

from notegraph.config import config
from notegraph.models.db_models import DBQuickCapture
from notegraph.models.schema import QuickCapture, ensure_timezone_aware, utc_now
from notegraph.storage.database import Database

logger = logging.getLogger(__name__)


class CaptureRepository:
    """Append-only log of short text snippets captured outside any note."""

    def __init__(self, database: Database, history_limit: Optional[int] = None):
        self.database = database
        self.history_limit = history_limit or config.capture_history_limit

    def save_capture(self, content: str) -> Optional[QuickCapture]:
        """Append a capture. Blank input is ignored and returns None."""
        if not content or not content.strip():
            logger.debug("Ignoring blank quick capture")
            return None
        with self.database.session() as session:
            db_capture = DBQuickCapture(content=content, created_at=utc_now())
            session.add(db_capture)
            session.commit()
            return QuickCapture(
                id=db_capture.id,
                content=db_capture.content,
                created_at=ensure_timezone_aware(db_capture.created_at),
            )

    def get_capture_history(self, limit: Optional[int] = None) -> List[str]:
        """Most recent capture texts, newest first."""
        with self.database.session() as session:
            return list(
                session.scalars(
                    select(DBQuickCapture.content)
                    .order_by(DBQuickCapture.created_at.desc(), DBQuickCapture.id.desc())
                    .limit(limit or self.history_limit)
                ).all()
            )
