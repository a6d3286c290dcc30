"""
Storage interface - defines the contract the graph engine needs from its stores.

Task and dependency CRUD live outside the engine; these are the only calls it
makes against them.
"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from taskgraph.models.task_models import TaskRecord
from taskgraph.models.dependency_models import DependencyEdge, DependencyType, EdgeDirection


class TaskStore(ABC):
    """Abstract interface for task reads and parent re-assignment."""

    @abstractmethod
    def fetch_task(self, task_id: int) -> Optional[TaskRecord]:
        """Get a task by ID, or None."""
        pass

    @abstractmethod
    def fetch_tasks(self, task_ids: Iterable[int]) -> Dict[int, TaskRecord]:
        """Get several tasks keyed by ID; missing IDs are omitted."""
        pass

    @abstractmethod
    def list_children(self, parent_id: int) -> List[TaskRecord]:
        """Direct children of a task, ordered by (position, id)."""
        pass

    @abstractmethod
    def update_task_parent(
        self,
        task_id: int,
        parent_id: Optional[int],
        position: Optional[int] = None,
        actor_id: Optional[str] = None
    ) -> bool:
        """
        Set a task's parent (None for root) and append a parent_changed entry
        to its change history. Both writes commit together or not at all.

        Returns False if the task is gone.
        """
        pass


class EdgeStore(ABC):
    """Abstract interface for dependency edge storage."""

    @abstractmethod
    def list_edges_for_project(self, project_id: int) -> List[DependencyEdge]:
        """Edges whose both endpoints belong to the project."""
        pass

    @abstractmethod
    def list_edges_for_task(self, task_id: int, direction: EdgeDirection = EdgeDirection.BOTH) -> List[DependencyEdge]:
        """Edges touching a task: incoming (task is dependent), outgoing (task blocks), or both."""
        pass

    @abstractmethod
    def list_edges(
        self,
        task_id: Optional[int] = None,
        project_id: Optional[int] = None,
        dependency_type: Optional[DependencyType] = None
    ) -> List[DependencyEdge]:
        """Filtered edge listing; project_id matches either endpoint."""
        pass

    @abstractmethod
    def find_edge(self, dependent_task_id: int, blocking_task_id: int, dependency_type: DependencyType) -> Optional[DependencyEdge]:
        pass

    @abstractmethod
    def get_edge(self, edge_id: int) -> Optional[DependencyEdge]:
        pass

    @abstractmethod
    def insert_edge(self, edge: DependencyEdge, actor_id: Optional[str] = None) -> DependencyEdge:
        """
        Persist an edge and return it with id and created_at set.

        A dependency_added history entry for the dependent task is written in
        the same transaction.
        """
        pass

    @abstractmethod
    def delete_edge(self, edge_id: int, actor_id: Optional[str] = None) -> bool:
        """Delete an edge with its dependency_removed history entry. Returns False if it did not exist."""
        pass
