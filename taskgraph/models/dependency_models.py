"""
Pydantic models for task dependency requests and responses.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DependencyType(str, Enum):
    """Dependency type enumeration."""
    BLOCKS = "BLOCKS"
    IS_BLOCKED_BY = "IS_BLOCKED_BY"
    RELATES_TO = "RELATES_TO"

    @property
    def is_blocking(self) -> bool:
        return self is not DependencyType.RELATES_TO

    def canonical(self) -> "DependencyType":
        """BLOCKS and IS_BLOCKED_BY are one relation; both are stored as BLOCKS."""
        return DependencyType.BLOCKS if self.is_blocking else self


class EdgeDirection(str, Enum):
    """Which side of an edge a task is on."""
    INCOMING = "incoming"  # task is the dependent
    OUTGOING = "outgoing"  # task is the blocker
    BOTH = "both"


class DependencyStatusFilter(str, Enum):
    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    ALL = "ALL"


class BulkOperationType(str, Enum):
    CREATE = "CREATE"
    DELETE = "DELETE"


class DependencyCreate(BaseModel):
    """Request model for creating a task dependency."""
    dependent_task_id: int = Field(..., description="Task that waits", gt=0)
    blocking_task_id: int = Field(..., description="Task that must resolve first", gt=0)
    type: DependencyType = Field(DependencyType.BLOCKS, description="BLOCKS, IS_BLOCKED_BY or RELATES_TO")

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, v):
        """Validate dependency type enum (case-insensitive)."""
        if isinstance(v, str):
            upper = v.strip().upper()
            valid_types = [t.value for t in DependencyType]
            if upper not in valid_types:
                raise ValueError(f"Invalid dependency type '{v}'. Must be one of: {', '.join(valid_types)}")
            return upper
        return v


class DependencyEdge(BaseModel):
    """A stored (canonical) dependency edge."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: Optional[int] = None
    dependent_task_id: int
    blocking_task_id: int
    type: DependencyType = DependencyType.BLOCKS
    created_at: Optional[datetime] = None

    @property
    def is_blocking(self) -> bool:
        return self.type != DependencyType.RELATES_TO.value


class DependencyFilter(BaseModel):
    """Filters for listing dependencies."""
    task_id: Optional[int] = Field(None, gt=0)
    project_id: Optional[int] = Field(None, gt=0)
    type: Optional[DependencyType] = None
    status: DependencyStatusFilter = DependencyStatusFilter.ALL


class BulkDependencyItem(DependencyCreate):
    """One entry of a bulk dependency operation."""


class BulkDependencyOperation(BaseModel):
    """Request model for bulk create/delete of dependencies."""
    operation: BulkOperationType
    dependencies: List[BulkDependencyItem] = Field(..., min_length=1)
    validate_circular: bool = False

    @field_validator("operation", mode="before")
    @classmethod
    def validate_operation(cls, v):
        """Validate operation enum (case-insensitive)."""
        if isinstance(v, str):
            upper = v.strip().upper()
            valid_operations = [o.value for o in BulkOperationType]
            if upper not in valid_operations:
                raise ValueError(f"Invalid operation '{v}'. Must be one of: {', '.join(valid_operations)}")
            return upper
        return v


class BulkFailure(BaseModel):
    item: BulkDependencyItem
    error: str
    error_type: str


class BulkDependencyResult(BaseModel):
    """Per-item outcome of a bulk dependency operation."""
    operation: BulkOperationType
    successful: List[DependencyEdge] = Field(default_factory=list)
    failed: List[BulkFailure] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
