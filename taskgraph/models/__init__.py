"""
Pydantic models for request/response validation.
"""
from .task_models import TaskStatus, TaskRecord, TaskSummary, MoveTaskRequest, normalize_task_status
from .dependency_models import (
    DependencyType,
    EdgeDirection,
    DependencyStatusFilter,
    BulkOperationType,
    DependencyCreate,
    DependencyEdge,
    DependencyFilter,
    BulkDependencyItem,
    BulkDependencyOperation,
    BulkFailure,
    BulkDependencyResult,
)
from .analysis_models import (
    BlockingTaskRef,
    BlockingInfo,
    SubtaskSummary,
    TaskTreeNode,
    GraphNode,
    GraphEdge,
    DependencyGraph,
    ImpactedTask,
    DependencyImpactAnalysis,
)

__all__ = [
    "TaskStatus",
    "TaskRecord",
    "TaskSummary",
    "MoveTaskRequest",
    "normalize_task_status",
    "DependencyType",
    "EdgeDirection",
    "DependencyStatusFilter",
    "BulkOperationType",
    "DependencyCreate",
    "DependencyEdge",
    "DependencyFilter",
    "BulkDependencyItem",
    "BulkDependencyOperation",
    "BulkFailure",
    "BulkDependencyResult",
    "BlockingTaskRef",
    "BlockingInfo",
    "SubtaskSummary",
    "TaskTreeNode",
    "GraphNode",
    "GraphEdge",
    "DependencyGraph",
    "ImpactedTask",
    "DependencyImpactAnalysis",
]
