"""
Derived (never persisted) views: blocking info, rollups, trees and graphs.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from taskgraph.models.task_models import TaskSummary


class BlockingTaskRef(BaseModel):
    """A task on the other end of a blocking edge."""
    task_id: int
    task_key: str
    title: str
    status: str
    type: str
    dependency_id: Optional[int] = None


class BlockingInfo(BaseModel):
    task_id: int
    is_blocked: bool
    blocked_by: List[BlockingTaskRef] = Field(default_factory=list)
    blocking: List[BlockingTaskRef] = Field(default_factory=list)
    can_start: bool
    blocked_reason: Optional[str] = None


class SubtaskSummary(BaseModel):
    """Rollup over the direct children of a task."""
    parent_task_id: int
    total_subtasks: int
    completed_subtasks: int = 0
    in_progress_subtasks: int = 0
    todo_subtasks: int = 0
    completion_percentage: int = 0
    estimated_hours: float = 0.0
    logged_hours: float = 0.0
    remaining_hours: float = 0.0


class TaskTreeNode(BaseModel):
    task: TaskSummary
    children: List["TaskTreeNode"] = Field(default_factory=list)
    has_children: bool = False
    depth: int = 0


TaskTreeNode.model_rebuild()


class GraphNode(BaseModel):
    task_id: int
    task_key: str
    title: str = ""
    status: Optional[str] = None
    level: Optional[int] = None
    is_blocked: bool = False
    blocked_by: List[int] = Field(default_factory=list)
    blocking: List[int] = Field(default_factory=list)


class GraphEdge(BaseModel):
    id: Optional[int] = None
    from_task_id: int
    to_task_id: int
    type: str
    weight: float = 1.0


class DependencyGraph(BaseModel):
    project_id: int
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    cycles: List[List[int]] = Field(default_factory=list)

    @property
    def node_ids(self) -> List[int]:
        return [node.task_id for node in self.nodes]


class ImpactedTask(BaseModel):
    task_id: int
    task_key: str
    title: str = ""
    impact_type: str  # DIRECT or INDIRECT
    impact_level: int
    estimated_delay: Optional[float] = None


class DependencyImpactAnalysis(BaseModel):
    task_id: int
    impacted_tasks: List[ImpactedTask] = Field(default_factory=list)
    critical_path: List[int] = Field(default_factory=list)
    total_impacted_tasks: int = 0
    max_impact_level: int = 0
