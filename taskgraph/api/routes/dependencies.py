"""
Task dependency and hierarchy API routes.
Thin HTTP layer that delegates to the service layer.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Path, Query

from taskgraph.app.services import get_dependency_service
from taskgraph.exceptions import ServiceError, ValidationError, to_http_exception
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
    DependencyCreate,
    DependencyEdge,
    DependencyFilter,
    DependencyStatusFilter,
)
from taskgraph.models.task_models import MoveTaskRequest, TaskRecord
from taskgraph.monitoring import get_request_id
from taskgraph.services.dependency_service import TaskDependencyService, parse_dependency_type

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/task-dependencies", tags=["task-dependencies"])


def _http_error(exc: ServiceError):
    if not exc.request_id:
        exc.request_id = get_request_id() or None
    return to_http_exception(exc)


@router.post("", response_model=DependencyEdge, status_code=201)
def create_dependency(
    dependency: DependencyCreate,
    actor_id: Optional[str] = Header(None, alias="X-Actor-Id"),
    service: TaskDependencyService = Depends(get_dependency_service)
):
    """Create a dependency between two tasks."""
    try:
        return service.create_dependency(
            dependency.dependent_task_id,
            dependency.blocking_task_id,
            dependency.type,
            actor_id
        )
    except ServiceError as e:
        raise _http_error(e)


@router.get("")
def list_dependencies(
    task_id: Optional[int] = Query(None, description="Edges touching this task", gt=0),
    project_id: Optional[int] = Query(None, description="Edges with either endpoint in this project", gt=0),
    dependency_type: Optional[str] = Query(None, alias="type", description="BLOCKS, IS_BLOCKED_BY or RELATES_TO"),
    status: str = Query("ALL", description="ACTIVE, RESOLVED or ALL"),
    service: TaskDependencyService = Depends(get_dependency_service)
) -> Dict[str, Any]:
    """List dependencies with optional filters."""
    try:
        try:
            status_filter = DependencyStatusFilter(status.strip().upper())
        except ValueError:
            raise ValidationError(
                f"Invalid status '{status}'. Must be one of: {', '.join(s.value for s in DependencyStatusFilter)}",
                field="status",
                value=status
            ) from None
        filters = DependencyFilter(
            task_id=task_id,
            project_id=project_id,
            type=parse_dependency_type(dependency_type) if dependency_type else None,
            status=status_filter,
        )
        edges = service.list_dependencies(filters)
    except ServiceError as e:
        raise _http_error(e)
    return {
        "success": True,
        "data": [edge.model_dump(mode="json") for edge in edges],
        "count": len(edges),
    }


@router.delete("/{dependency_id}")
def delete_dependency(
    dependency_id: int = Path(..., gt=0),
    actor_id: Optional[str] = Header(None, alias="X-Actor-Id"),
    service: TaskDependencyService = Depends(get_dependency_service)
) -> Dict[str, Any]:
    """Delete a dependency."""
    try:
        edge = service.delete_dependency(dependency_id, actor_id)
    except ServiceError as e:
        raise _http_error(e)
    return {"success": True, "data": edge.model_dump(mode="json")}


@router.get("/tasks/{task_id}/blocking-info", response_model=BlockingInfo)
def get_blocking_info(
    task_id: int = Path(..., gt=0),
    service: TaskDependencyService = Depends(get_dependency_service)
):
    """Get whether a task is blocked and by what."""
    try:
        return service.get_task_blocking_info(task_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/tasks/{task_id}/subtask-summary", response_model=SubtaskSummary)
def get_subtask_summary(
    task_id: int = Path(..., gt=0),
    service: TaskDependencyService = Depends(get_dependency_service)
):
    """Roll up the direct children of a task."""
    try:
        return service.get_subtask_summary(task_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/tasks/{task_id}/tree", response_model=TaskTreeNode)
def get_task_tree(
    task_id: int = Path(..., gt=0),
    max_depth: Optional[int] = Query(None, description="Levels to return, root included"),
    service: TaskDependencyService = Depends(get_dependency_service)
):
    """Get the subtree rooted at a task."""
    try:
        return service.get_task_tree(task_id, max_depth)
    except ServiceError as e:
        raise _http_error(e)


@router.put("/tasks/{task_id}/move", response_model=TaskRecord)
def move_task(
    move: MoveTaskRequest,
    task_id: int = Path(..., gt=0),
    actor_id: Optional[str] = Header(None, alias="X-Actor-Id"),
    service: TaskDependencyService = Depends(get_dependency_service)
):
    """Move a task under a new parent, or to root level."""
    try:
        return service.move_task(task_id, move.new_parent_id, move.position, actor_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/tasks/{task_id}/impact", response_model=DependencyImpactAnalysis)
def get_impact(
    task_id: int = Path(..., gt=0),
    service: TaskDependencyService = Depends(get_dependency_service)
):
    """List the tasks downstream of a task."""
    try:
        return service.analyze_impact(task_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/projects/{project_id}/dependency-graph", response_model=DependencyGraph)
def get_dependency_graph(
    project_id: int = Path(..., gt=0),
    service: TaskDependencyService = Depends(get_dependency_service)
):
    """Get the dependency graph of a project."""
    try:
        return service.generate_dependency_graph(project_id)
    except ServiceError as e:
        raise _http_error(e)


@router.post("/bulk", response_model=BulkDependencyResult)
def bulk_dependency_operation(
    operation: BulkDependencyOperation,
    actor_id: Optional[str] = Header(None, alias="X-Actor-Id"),
    service: TaskDependencyService = Depends(get_dependency_service)
):
    """Create or delete many dependencies at once."""
    try:
        result = service.bulk_dependency_operation(operation, actor_id)
    except ServiceError as e:
        raise _http_error(e)
    if result.failed:
        logger.info(f"Bulk operation finished with {len(result.failed)} failed item(s)")
    return result
