"""
Service container for dependency injection.
Centralizes store and service initialization for the HTTP layer.
"""
import logging
from typing import Optional

from taskgraph import config
from taskgraph.services.dependency_service import TaskDependencyService
from taskgraph.storage.locks import ProjectLockManager
from taskgraph.storage.sqlite_storage import SQLiteStore

logger = logging.getLogger(__name__)

# Global service instance
_service_instance: Optional['ServiceContainer'] = None


class ServiceContainer:
    """Container for all application services."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or config.DB_PATH
        self.store = SQLiteStore(self.db_path)
        # One lock registry per process; every mutating service must share it
        self.locks = ProjectLockManager()
        self.dependency_service = TaskDependencyService(self.store, self.store, locks=self.locks)
        logger.info(f"Services initialized with database {self.db_path}")


def get_services() -> ServiceContainer:
    """Get the global service container instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = ServiceContainer()
    return _service_instance


def set_services(container: Optional[ServiceContainer]) -> None:
    """Replace the global container (None resets it)."""
    global _service_instance
    _service_instance = container


def get_dependency_service() -> TaskDependencyService:
    """Get the dependency service from the service container."""
    return get_services().dependency_service
