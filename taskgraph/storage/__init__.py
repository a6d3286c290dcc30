"""Storage layer: store interfaces, the SQLite reference store and project locks."""
from taskgraph.storage.interface import EdgeStore, TaskStore
from taskgraph.storage.locks import ProjectLockManager
from taskgraph.storage.sqlite_storage import SQLiteStore

__all__ = ["EdgeStore", "TaskStore", "ProjectLockManager", "SQLiteStore"]
