"""
Task dependency service - the engine's public entry points.

Single dependency mutations and hierarchy moves run their read-validate-write
sequence under the owning project's lock. Read-only views are recomputed from
the stores on every call.
This layer contains no HTTP framework dependencies.
"""
import logging
from contextlib import contextmanager
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from taskgraph.exceptions import (
    CircularDependencyError,
    DatabaseError,
    DependencyNotFoundError,
    DuplicateDependencyError,
    NotFoundError,
    SelfDependencyError,
    ServiceError,
    TaskNotFoundError,
    ValidationError,
)
from taskgraph.graph import cycle_path
from taskgraph.models.analysis_models import (
    BlockingInfo,
    DependencyGraph,
    DependencyImpactAnalysis,
    SubtaskSummary,
    TaskTreeNode,
)
from taskgraph.models.dependency_models import (
    BulkDependencyOperation,
    BulkDependencyResult,
    DependencyEdge,
    DependencyFilter,
    DependencyStatusFilter,
    DependencyType,
)
from taskgraph.models.task_models import TaskRecord
from taskgraph.monitoring import cycle_rejections_total, record_operation
from taskgraph.services.blocking_analyzer import BlockingAnalyzer
from taskgraph.services.bulk_operations import BulkOperationCoordinator
from taskgraph.services.dependency_graph_builder import DependencyGraphBuilder
from taskgraph.services.hierarchy_manager import HierarchyManager
from taskgraph.storage.interface import EdgeStore, TaskStore
from taskgraph.storage.locks import ProjectLockManager

logger = logging.getLogger(__name__)


def parse_dependency_type(value: Union[str, DependencyType]) -> DependencyType:
    """Parse a dependency type (case-insensitive) or raise ValidationError."""
    if isinstance(value, DependencyType):
        return value
    try:
        return DependencyType(str(value).strip().upper())
    except ValueError:
        valid_types = ", ".join(t.value for t in DependencyType)
        raise ValidationError(
            f"Invalid dependency type '{value}'. Must be one of: {valid_types}",
            field="type",
            value=value
        ) from None


class TaskDependencyService:
    """Service for task dependency and hierarchy business logic."""

    def __init__(
        self,
        task_store: TaskStore,
        edge_store: Optional[EdgeStore] = None,
        locks: Optional[ProjectLockManager] = None,
        terminal_statuses: Optional[Iterable[str]] = None,
        max_hierarchy_depth: Optional[int] = None
    ):
        """
        Initialize the service with its stores.

        Args:
            task_store: Task reads and parent updates
            edge_store: Dependency edges; defaults to task_store when one
                object implements both interfaces (SQLiteStore does)
            locks: Project lock registry shared by every service instance
                that mutates the same stores
            terminal_statuses: Statuses that resolve a block
            max_hierarchy_depth: Deepest allowed nesting below a root task
        """
        self.task_store = task_store
        self.edge_store = edge_store if edge_store is not None else task_store
        self.locks = locks or ProjectLockManager()
        self.blocking = BlockingAnalyzer(self.task_store, self.edge_store, terminal_statuses)
        self.hierarchy = HierarchyManager(self.task_store, self.locks, max_hierarchy_depth)
        self.graph_builder = DependencyGraphBuilder(self.task_store, self.edge_store, terminal_statuses)
        self.bulk = BulkOperationCoordinator(self)

    @contextmanager
    def _track(self, operation: str):
        """Count the outcome of an operation and log rejections."""
        try:
            yield
        except DatabaseError:
            record_operation(operation, "error")
            raise
        except ServiceError as e:
            record_operation(operation, "rejected")
            logger.warning(
                f"{operation} rejected: {e.message}",
                extra={"operation": operation, "error_type": type(e).__name__}
            )
            raise
        record_operation(operation, "success")

    def _require_task(self, task_id: int) -> TaskRecord:
        task = self.task_store.fetch_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    # ------------------------------------------------------------------
    # Dependency edges
    # ------------------------------------------------------------------

    def create_dependency(
        self,
        dependent_task_id: int,
        blocking_task_id: int,
        dependency_type: Union[str, DependencyType] = DependencyType.BLOCKS,
        actor_id: Optional[str] = None
    ) -> DependencyEdge:
        """
        Create a dependency: blocking_task_id must resolve before dependent_task_id.

        IS_BLOCKED_BY is the same relation as BLOCKS and is stored as BLOCKS.

        Returns:
            The persisted canonical edge

        Raises:
            SelfDependencyError: If both ids are the same task
            TaskNotFoundError: If either task does not exist
            NotFoundError: If the tasks are in different projects
            DuplicateDependencyError: If the edge already exists
            CircularDependencyError: If the edge would close a blocking loop
        """
        with self._track("create_dependency"):
            requested_type = parse_dependency_type(dependency_type)
            canonical_type = requested_type.canonical()

            if dependent_task_id == blocking_task_id:
                raise SelfDependencyError(dependent_task_id)

            dependent = self._require_task(dependent_task_id)
            blocker = self._require_task(blocking_task_id)
            if dependent.project_id != blocker.project_id:
                raise NotFoundError(
                    "Task",
                    blocking_task_id,
                    message=f"Task {blocking_task_id} not found in project {dependent.project_id}"
                )

            with self.locks.hold(dependent.project_id):
                if self._find_existing(dependent_task_id, blocking_task_id, canonical_type) is not None:
                    raise DuplicateDependencyError(dependent_task_id, blocking_task_id, canonical_type.value)

                path = cycle_path(
                    self.edge_store.list_edges_for_project(dependent.project_id),
                    (dependent_task_id, blocking_task_id),
                    canonical_type
                )
                if path is not None:
                    cycle_rejections_total.labels(source="single").inc()
                    raise CircularDependencyError(
                        "Circular dependency detected: " + " -> ".join(str(n) for n in path),
                        cycle_path=path,
                        field="blocking_task_id",
                        value=blocking_task_id
                    )

                edge = self.edge_store.insert_edge(DependencyEdge(
                    dependent_task_id=dependent_task_id,
                    blocking_task_id=blocking_task_id,
                    type=canonical_type,
                ), actor_id)

        logger.info(
            f"Created dependency {edge.id}: task {blocking_task_id} {edge.type} task {dependent_task_id}",
            extra={"dependency_id": edge.id, "actor_id": actor_id, "requested_type": requested_type.value}
        )
        return edge

    def _find_existing(
        self,
        dependent_task_id: int,
        blocking_task_id: int,
        canonical_type: DependencyType
    ) -> Optional[DependencyEdge]:
        edge = self.edge_store.find_edge(dependent_task_id, blocking_task_id, canonical_type)
        if edge is None and not canonical_type.is_blocking:
            # RELATES_TO is undirected for duplicate purposes
            edge = self.edge_store.find_edge(blocking_task_id, dependent_task_id, canonical_type)
        return edge

    def find_dependency(
        self,
        dependent_task_id: int,
        blocking_task_id: int,
        dependency_type: Union[str, DependencyType] = DependencyType.BLOCKS
    ) -> Optional[DependencyEdge]:
        """Look up the stored edge for a relation, or None."""
        canonical_type = parse_dependency_type(dependency_type).canonical()
        return self._find_existing(dependent_task_id, blocking_task_id, canonical_type)

    def delete_dependency(self, dependency_id: int, actor_id: Optional[str] = None) -> DependencyEdge:
        """
        Delete a dependency.

        Returns:
            The deleted edge

        Raises:
            DependencyNotFoundError: If no such dependency exists
        """
        with self._track("delete_dependency"):
            edge = self.edge_store.get_edge(dependency_id)
            if edge is None:
                raise DependencyNotFoundError(dependency_id)

            dependent = self.task_store.fetch_task(edge.dependent_task_id)
            project_id = dependent.project_id if dependent else None
            with self.locks.hold(project_id):
                if not self.edge_store.delete_edge(dependency_id, actor_id):
                    raise DependencyNotFoundError(dependency_id)

        logger.info(
            f"Deleted dependency {dependency_id}",
            extra={"dependency_id": dependency_id, "actor_id": actor_id}
        )
        return edge

    def list_dependencies(self, filters: Optional[DependencyFilter] = None, **kwargs) -> List[DependencyEdge]:
        """
        List dependencies.

        Args:
            filters: DependencyFilter, or pass task_id / project_id / type /
                status as keyword arguments

        Returns:
            Edges ordered by id. status ACTIVE keeps edges whose blocking task
            is unresolved, RESOLVED those whose blocking task is terminal.
        """
        if filters is None:
            try:
                filters = DependencyFilter(**kwargs)
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e, "dependency filter") from e

        dependency_type = parse_dependency_type(filters.type).canonical() if filters.type else None
        edges = self.edge_store.list_edges(
            task_id=filters.task_id,
            project_id=filters.project_id,
            dependency_type=dependency_type
        )

        status = DependencyStatusFilter(filters.status)
        if status == DependencyStatusFilter.ALL or not edges:
            return edges

        blockers = self.task_store.fetch_tasks(e.blocking_task_id for e in edges)
        want_resolved = status == DependencyStatusFilter.RESOLVED
        return [
            e for e in edges
            if e.blocking_task_id in blockers
            and self.blocking.is_resolved(blockers[e.blocking_task_id]) == want_resolved
        ]

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def get_task_blocking_info(self, task_id: int) -> BlockingInfo:
        return self.blocking.get_task_blocking_info(task_id)

    def generate_dependency_graph(self, project_id: int) -> DependencyGraph:
        return self.graph_builder.generate_dependency_graph(project_id)

    def analyze_impact(self, task_id: int) -> DependencyImpactAnalysis:
        return self.graph_builder.analyze_impact(task_id)

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def get_subtask_summary(self, parent_task_id: int) -> SubtaskSummary:
        return self.hierarchy.get_subtask_summary(parent_task_id)

    def get_task_tree(self, task_id: int, max_depth: Optional[int] = None) -> TaskTreeNode:
        return self.hierarchy.get_task_tree(task_id, max_depth)

    def get_task_ancestors(self, task_id: int) -> List[int]:
        return self.hierarchy.get_ancestors(task_id)

    def move_task(
        self,
        task_id: int,
        new_parent_id: Optional[int],
        position: Optional[int] = None,
        actor_id: Optional[str] = None
    ) -> TaskRecord:
        with self._track("move_task"):
            return self.hierarchy.move_task(task_id, new_parent_id, position, actor_id)

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    def bulk_dependency_operation(
        self,
        request: Union[BulkDependencyOperation, dict],
        actor_id: Optional[str] = None
    ) -> BulkDependencyResult:
        return self.bulk.bulk_dependency_operation(request, actor_id)
