"""Common test fixtures for notegraph."""

import tempfile
from pathlib import Path

import pytest

from notegraph.config import config
from notegraph.services.note_service import NoteGraphService
from notegraph.services.search_service import SearchService
from notegraph.storage.capture_repository import CaptureRepository
from notegraph.storage.database import Database
from notegraph.storage.link_repository import LinkRepository
from notegraph.storage.note_repository import NoteRepository
from notegraph.storage.tag_repository import TagRepository
from notegraph.storage.task_repository import TaskRepository


@pytest.fixture
def temp_dirs():
    """Create temporary directories for the database and logs."""
    with tempfile.TemporaryDirectory() as db_dir:
        with tempfile.TemporaryDirectory() as log_dir:
            yield Path(db_dir), Path(log_dir)


@pytest.fixture
def test_config(temp_dirs, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    db_dir, _ = temp_dirs
    monkeypatch.setattr(config, "database_path", db_dir / "test_notegraph.db")
    monkeypatch.setattr(config, "in_memory_db", False)
    yield config


@pytest.fixture
def database(test_config):
    """An opened file database with the schema created."""
    db = Database().initialize()
    yield db
    db.close()


@pytest.fixture
def tag_repository(database):
    return TagRepository(database)


@pytest.fixture
def task_repository(database):
    return TaskRepository(database)


@pytest.fixture
def note_repository(database, tag_repository, task_repository):
    """Create a test note repository sharing the tag and task indexes."""
    return NoteRepository(
        database, tag_repository=tag_repository, task_repository=task_repository
    )


@pytest.fixture
def link_repository(database):
    return LinkRepository(database)


@pytest.fixture
def capture_repository(database):
    return CaptureRepository(database)


@pytest.fixture
def search_service(note_repository):
    return SearchService(note_repository)


@pytest.fixture
def note_service(database):
    """Create a test NoteGraphService on the shared database."""
    service = NoteGraphService(database=database).initialize()
    yield service
