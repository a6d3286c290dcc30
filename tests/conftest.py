"""
Shared fixtures: a temporary SQLite store and a service on top of it.
"""
import os
import shutil
import tempfile

import pytest

from taskgraph.services.dependency_service import TaskDependencyService
from taskgraph.storage.sqlite_storage import SQLiteStore


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    temp_dir = tempfile.mkdtemp()
    db_path = os.path.join(temp_dir, "test.db")
    store = SQLiteStore(db_path)
    yield store, db_path
    shutil.rmtree(temp_dir)


@pytest.fixture
def store(temp_db):
    store, _ = temp_db
    return store


@pytest.fixture
def service(store):
    """TaskDependencyService over the temporary store."""
    return TaskDependencyService(store)
