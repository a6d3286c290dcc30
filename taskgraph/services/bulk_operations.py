"""
Bulk operation coordinator - applies batches of dependency creates/deletes.

Items are processed best-effort through the single-operation path. The
optional whole-batch cycle check is all-or-nothing and runs before any item
is committed. Every project touched by the batch stays locked for the whole
call.
"""
import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Union

from pydantic import ValidationError as PydanticValidationError

from taskgraph.exceptions import (
    CircularDependencyError,
    DependencyNotFoundError,
    ServiceError,
    ValidationError,
)
from taskgraph.graph import blocking_adjacency, find_cycles
from taskgraph.models.dependency_models import (
    BulkDependencyItem,
    BulkDependencyOperation,
    BulkDependencyResult,
    BulkFailure,
    BulkOperationType,
    DependencyEdge,
    DependencyType,
)
from taskgraph.models.task_models import TaskRecord
from taskgraph.monitoring import cycle_rejections_total, record_operation

if TYPE_CHECKING:
    from taskgraph.services.dependency_service import TaskDependencyService

logger = logging.getLogger(__name__)


def _parse_request(request: Union[BulkDependencyOperation, dict]) -> BulkDependencyOperation:
    if isinstance(request, BulkDependencyOperation):
        return request
    try:
        return BulkDependencyOperation.model_validate(request)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, "bulk operation") from e


class BulkOperationCoordinator:
    """Coordinates batch dependency edits on top of TaskDependencyService."""

    def __init__(self, service: "TaskDependencyService"):
        self.service = service

    def bulk_dependency_operation(
        self,
        request: Union[BulkDependencyOperation, dict],
        actor_id: Optional[str] = None
    ) -> BulkDependencyResult:
        """
        Apply a batch of dependency creates or deletes.

        Args:
            request: {operation: CREATE|DELETE, dependencies: [...], validate_circular}
            actor_id: Who made the change

        Returns:
            BulkDependencyResult with per-item successes and failures

        Raises:
            ValidationError: If the batch itself is malformed
            CircularDependencyError: If validate_circular is set and the batch
                as a whole would introduce a cycle
        """
        operation = _parse_request(request)
        items = operation.dependencies
        op_type = BulkOperationType(operation.operation)

        task_ids = {i.dependent_task_id for i in items} | {i.blocking_task_id for i in items}
        tasks = self.service.task_store.fetch_tasks(task_ids)
        project_ids = {t.project_id for t in tasks.values()}

        result = BulkDependencyResult(operation=op_type)
        with self.service.locks.hold_all(project_ids):
            if op_type == BulkOperationType.CREATE and operation.validate_circular:
                self._validate_batch(items, tasks, project_ids)

            for item in items:
                try:
                    if op_type == BulkOperationType.CREATE:
                        edge = self.service.create_dependency(
                            item.dependent_task_id, item.blocking_task_id, item.type, actor_id
                        )
                        warning = self._resolved_blocker_warning(item, tasks.get(item.blocking_task_id))
                        if warning:
                            result.warnings.append(warning)
                    else:
                        edge = self._delete_item(item, actor_id)
                    result.successful.append(edge)
                except ServiceError as e:
                    result.failed.append(BulkFailure(item=item, error=e.message, error_type=type(e).__name__))

        outcome = "success" if not result.failed else ("rejected" if not result.successful else "partial")
        record_operation(f"bulk_{op_type.value.lower()}", outcome)
        logger.info(
            f"Bulk {op_type.value}: {len(result.successful)} succeeded, {len(result.failed)} failed",
            extra={"actor_id": actor_id, "projects": sorted(project_ids)}
        )
        return result

    def _validate_batch(
        self,
        items: List[BulkDependencyItem],
        tasks: Dict[int, TaskRecord],
        project_ids: Set[int]
    ) -> None:
        """Reject the batch if a cycle in existing plus candidate edges runs through a candidate."""
        existing: List[DependencyEdge] = []
        for project_id in sorted(project_ids):
            existing.extend(self.service.edge_store.list_edges_for_project(project_id))

        candidates = []
        for item in items:
            dependent = tasks.get(item.dependent_task_id)
            blocker = tasks.get(item.blocking_task_id)
            # Items that will fail on their own are left out of the hypothetical graph
            if dependent is None or blocker is None or dependent.project_id != blocker.project_id:
                continue
            if item.dependent_task_id == item.blocking_task_id:
                continue
            candidates.append(DependencyEdge(
                dependent_task_id=item.dependent_task_id,
                blocking_task_id=item.blocking_task_id,
                type=DependencyType(item.type).canonical(),
            ))

        cycles = [
            cycle for cycle in find_cycles(blocking_adjacency(existing + candidates))
            if any(
                c.is_blocking and c.dependent_task_id in cycle and c.blocking_task_id in cycle
                for c in candidates
            )
        ]
        if cycles:
            cycle_rejections_total.labels(source="bulk").inc()
            record_operation("bulk_create", "rejected")
            logger.warning(f"Rejected bulk create: batch would introduce cycles {cycles}")
            raise CircularDependencyError(
                f"Circular dependency detected in batch: {len(cycles)} cycle(s) would be introduced",
                cycles=cycles
            )

    def _delete_item(self, item: BulkDependencyItem, actor_id: Optional[str]) -> DependencyEdge:
        edge = self.service.find_dependency(item.dependent_task_id, item.blocking_task_id, item.type)
        if edge is None:
            raise DependencyNotFoundError(
                f"{item.blocking_task_id}->{item.dependent_task_id}",
                message=(
                    f"No {DependencyType(item.type).canonical().value} dependency of task "
                    f"{item.dependent_task_id} on task {item.blocking_task_id}"
                )
            )
        return self.service.delete_dependency(edge.id, actor_id)

    def _resolved_blocker_warning(self, item: BulkDependencyItem, blocker: Optional[TaskRecord]) -> Optional[str]:
        if blocker is None or not DependencyType(item.type).is_blocking:
            return None
        if self.service.blocking.is_resolved(blocker):
            return (
                f"Task {item.blocking_task_id} is already {blocker.status}; "
                f"dependency of task {item.dependent_task_id} on it is already resolved"
            )
        return None
