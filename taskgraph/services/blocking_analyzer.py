"""
Blocking analyzer - derives whether a task can start from its incoming
blocking dependencies.
"""
import logging
from typing import FrozenSet, Iterable, Optional

from taskgraph import config
from taskgraph.exceptions import TaskNotFoundError
from taskgraph.models.analysis_models import BlockingInfo, BlockingTaskRef
from taskgraph.models.dependency_models import DependencyType, EdgeDirection
from taskgraph.models.task_models import TaskRecord
from taskgraph.storage.interface import EdgeStore, TaskStore

logger = logging.getLogger(__name__)


class BlockingAnalyzer:
    """Computes blocking status from unresolved incoming BLOCKS edges."""

    def __init__(
        self,
        task_store: TaskStore,
        edge_store: EdgeStore,
        terminal_statuses: Optional[Iterable[str]] = None
    ):
        self.task_store = task_store
        self.edge_store = edge_store
        self.terminal_statuses: FrozenSet[str] = frozenset(
            s.lower() for s in (terminal_statuses if terminal_statuses is not None else config.TERMINAL_STATUSES)
        )

    def is_resolved(self, task: TaskRecord) -> bool:
        """A blocker stops blocking once it reaches a terminal status."""
        return str(task.status).lower() in self.terminal_statuses

    def get_task_blocking_info(self, task_id: int) -> BlockingInfo:
        """
        Get the blocking status of a task.

        Args:
            task_id: Task to analyze

        Returns:
            BlockingInfo with unresolved blockers in blocked_by and the tasks
            this task blocks in blocking.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        task = self.task_store.fetch_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        edges = [e for e in self.edge_store.list_edges_for_task(task_id, EdgeDirection.BOTH) if e.is_blocking]
        incoming = [e for e in edges if e.dependent_task_id == task_id]
        outgoing = [e for e in edges if e.blocking_task_id == task_id]

        related = self.task_store.fetch_tasks(
            [e.blocking_task_id for e in incoming] + [e.dependent_task_id for e in outgoing]
        )

        blocked_by = []
        for edge in incoming:
            blocker = related.get(edge.blocking_task_id)
            if blocker is None:
                logger.warning(f"Dependency {edge.id} references missing task {edge.blocking_task_id}")
                continue
            if self.is_resolved(blocker):
                continue
            blocked_by.append(self._ref(blocker, DependencyType.IS_BLOCKED_BY, edge.id))

        blocking = [
            self._ref(related[edge.dependent_task_id], DependencyType.BLOCKS, edge.id)
            for edge in outgoing
            if edge.dependent_task_id in related
        ]

        is_blocked = bool(blocked_by)
        blocked_reason = None
        if is_blocked:
            blocked_reason = "Blocked by: " + ", ".join(ref.task_key for ref in blocked_by)

        return BlockingInfo(
            task_id=task_id,
            is_blocked=is_blocked,
            blocked_by=blocked_by,
            blocking=blocking,
            can_start=not is_blocked,
            blocked_reason=blocked_reason,
        )

    @staticmethod
    def _ref(task: TaskRecord, label: DependencyType, dependency_id: Optional[int]) -> BlockingTaskRef:
        return BlockingTaskRef(
            task_id=task.id,
            task_key=task.display_key,
            title=task.title,
            status=task.status,
            type=label.value,
            dependency_id=dependency_id,
        )
