"""
Pydantic models for task records as seen by the graph engine.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskStatus(str, Enum):
    """Task status enumeration."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    CANCELLED = "cancelled"


_STATUS_ALIASES = {
    "TODO": TaskStatus.TODO,
    "TO_DO": TaskStatus.TODO,
    "BACKLOG": TaskStatus.TODO,
    "DRAFT": TaskStatus.TODO,
    "ASSIGNED": TaskStatus.TODO,
    "AVAILABLE": TaskStatus.TODO,
    "IN_PROGRESS": TaskStatus.IN_PROGRESS,
    "PAUSED": TaskStatus.IN_PROGRESS,
    "REVIEW": TaskStatus.REVIEW,
    "IN_REVIEW": TaskStatus.REVIEW,
    "TESTING": TaskStatus.REVIEW,
    "QA": TaskStatus.REVIEW,
    "DONE": TaskStatus.DONE,
    "COMPLETE": TaskStatus.DONE,
    "COMPLETED": TaskStatus.DONE,
    "CLOSED": TaskStatus.DONE,
    "CANCELLED": TaskStatus.CANCELLED,
    "CANCELED": TaskStatus.CANCELLED,
    "REJECTED": TaskStatus.CANCELLED,
}


def normalize_task_status(value: object) -> Optional[TaskStatus]:
    """
    Map a raw status string (any case, common aliases) onto TaskStatus.

    Returns None for non-strings, blanks, and unknown values.
    """
    if isinstance(value, TaskStatus):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().upper().replace("-", "_").replace(" ", "_")
    if not key:
        return None
    return _STATUS_ALIASES.get(key)


class TaskRecord(BaseModel):
    """A task as stored by the TaskStore."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: int
    project_id: int
    parent_id: Optional[int] = None
    status: TaskStatus = TaskStatus.TODO
    key: Optional[str] = None
    title: str = ""
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    story_points: Optional[int] = None
    position: int = 0

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v):
        """Accept status aliases (COMPLETED, CLOSED, ...)."""
        normalized = normalize_task_status(v)
        if normalized is None:
            raise ValueError(f"Invalid status '{v}'. Must be one of: {', '.join(s.value for s in TaskStatus)}")
        return normalized

    @property
    def display_key(self) -> str:
        """Human readable handle: key, then title, then id."""
        return self.key or self.title or str(self.id)


class TaskSummary(BaseModel):
    """Compact task view embedded in trees and graphs."""
    id: int
    key: Optional[str] = None
    title: str = ""
    status: str
    estimated_hours: Optional[float] = None
    story_points: Optional[int] = None
    position: int = 0

    @classmethod
    def from_record(cls, task: TaskRecord) -> "TaskSummary":
        return cls(
            id=task.id,
            key=task.key,
            title=task.title,
            status=task.status,
            estimated_hours=task.estimated_hours,
            story_points=task.story_points,
            position=task.position,
        )


class MoveTaskRequest(BaseModel):
    """Request model for moving a task in the hierarchy."""
    new_parent_id: Optional[int] = Field(None, description="New parent task ID, or null for root level", gt=0)
    position: Optional[int] = Field(None, description="Advisory sibling position", ge=0)
