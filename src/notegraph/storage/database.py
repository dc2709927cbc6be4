"""Database handle shared by all repositories."""
import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from notegraph.exceptions import NotInitializedError
from notegraph.models.db_models import Base, get_session_factory, init_db

logger = logging.getLogger(__name__)


class Database:
    """Owns the engine and session factory for one store.

    Repositories hold a reference to the same ``Database`` and ask it for
    sessions; any call made before ``initialize()`` (or after ``close()``)
    raises ``NotInitializedError``.
    """

    def __init__(self, db_url: Optional[str] = None, engine: Optional[Engine] = None):
        """Initialize the handle without opening anything.

        Args:
            db_url: SQLAlchemy URL. Defaults to ``config.get_db_url()``.
            engine: Pre-configured engine. When provided, ``initialize()``
                only creates the schema on it.
        """
        self._db_url = db_url
        self._engine: Optional[Engine] = engine
        self._owns_engine = engine is None
        self._session_factory = None

    @property
    def is_initialized(self) -> bool:
        return self._session_factory is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None or not self.is_initialized:
            raise NotInitializedError()
        return self._engine

    def initialize(self) -> "Database":
        """Open the engine and create the schema. Safe to call twice."""
        if self.is_initialized:
            return self
        if self._engine is None:
            self._engine = init_db(self._db_url)
        else:
            Base.metadata.create_all(self._engine)
        self._session_factory = get_session_factory(self._engine)
        logger.debug("Database initialized")
        return self

    def session(self) -> Session:
        """Return a new session; use it as a context manager."""
        if self._session_factory is None:
            raise NotInitializedError()
        return self._session_factory()

    def close(self) -> None:
        """Dispose of the engine. The handle can be re-initialized later."""
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None
        self._session_factory = None
        logger.debug("Database closed")

    def __enter__(self) -> "Database":
        return self.initialize()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
