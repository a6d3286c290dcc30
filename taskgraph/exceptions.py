"""
Standard exceptions for the task graph service.

All service-level failures derive from ServiceError so the transport layer can
map them to status codes in one place (see to_http_exception).
"""
from typing import Any, Dict, List, Optional

from fastapi import HTTPException


class ServiceError(Exception):
    """Base class for all service errors."""

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.context = dict(context) if context else {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for logging and API responses."""
        result: Dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
        }
        if self.request_id:
            result["request_id"] = self.request_id
        if self.context:
            result["context"] = self.context
        if self.original_error is not None:
            result["original_error"] = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error),
            }
        return result


class NotFoundError(ServiceError):
    """A referenced resource does not exist."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        message: Optional[str] = None,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.resource_type = resource_type
        self.resource_id = str(resource_id)
        ctx = dict(context) if context else {}
        ctx.update({"resource_type": resource_type, "resource_id": self.resource_id})
        super().__init__(
            message or f"{resource_type} with ID '{self.resource_id}' not found",
            request_id=request_id,
            context=ctx
        )


class ValidationError(ServiceError):
    """Input or invariant validation failed."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.field = field
        self.value = value
        ctx = dict(context) if context else {}
        if field is not None:
            ctx["field"] = field
        if value is not None:
            ctx["value"] = str(value)
        super().__init__(message, request_id=request_id, context=ctx)

    @classmethod
    def from_pydantic(cls, error, subject: str) -> "ValidationError":
        """Wrap the first error of a pydantic ValidationError."""
        first = error.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        return cls(f"Invalid {subject}: {location}: {first.get('msg')}", field=location or None)


class ConflictError(ServiceError):
    """The resource already exists in the requested form."""

    def __init__(
        self,
        resource_type: str,
        field: str,
        value: Any,
        message: Optional[str] = None,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.resource_type = resource_type
        self.field = field
        self.value = value
        ctx = dict(context) if context else {}
        ctx.update({"resource_type": resource_type, "field": field, "value": str(value)})
        super().__init__(
            message or f"{resource_type} with {field} '{value}' already exists",
            request_id=request_id,
            context=ctx
        )


class DatabaseError(ServiceError):
    """A storage operation failed."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.operation = operation
        ctx = dict(context) if context else {}
        if operation is not None:
            ctx["operation"] = operation
        super().__init__(message, request_id=request_id, context=ctx, original_error=original_error)


# ============================================================================
# Domain-specific exceptions
# ============================================================================

class TaskNotFoundError(NotFoundError):
    def __init__(self, task_id: Any, **kwargs):
        self.task_id = task_id
        super().__init__("Task", task_id, **kwargs)


class DependencyNotFoundError(NotFoundError):
    def __init__(self, dependency_id: Any, **kwargs):
        self.dependency_id = dependency_id
        super().__init__("Dependency", dependency_id, **kwargs)


class SelfDependencyError(ValidationError):
    def __init__(self, task_id: Any, **kwargs):
        self.task_id = task_id
        super().__init__(
            f"Task {task_id} cannot depend on itself",
            field="blocking_task_id",
            value=task_id,
            **kwargs
        )


class CircularDependencyError(ValidationError):
    """Adding the dependency (or batch) would close a loop in the blocking graph."""

    def __init__(
        self,
        message: str,
        cycle_path: Optional[List[Any]] = None,
        cycles: Optional[List[List[Any]]] = None,
        **kwargs
    ):
        self.cycle_path = list(cycle_path) if cycle_path else []
        self.cycles = [list(c) for c in cycles] if cycles else []
        context = dict(kwargs.pop("context", None) or {})
        if self.cycle_path:
            context["cycle_path"] = self.cycle_path
        if self.cycles:
            context["circular_dependencies"] = self.cycles
        super().__init__(message, context=context, **kwargs)


class CircularHierarchyError(ValidationError):
    def __init__(self, task_id: Any, new_parent_id: Any, **kwargs):
        self.task_id = task_id
        self.new_parent_id = new_parent_id
        super().__init__(
            f"Cannot move task {task_id} under {new_parent_id}: circular reference in task hierarchy",
            field="new_parent_id",
            value=new_parent_id,
            **kwargs
        )


class DuplicateDependencyError(ConflictError):
    def __init__(self, dependent_task_id: Any, blocking_task_id: Any, dependency_type: str, **kwargs):
        self.dependent_task_id = dependent_task_id
        self.blocking_task_id = blocking_task_id
        self.dependency_type = dependency_type
        super().__init__(
            "Dependency",
            "pair",
            f"{blocking_task_id}->{dependent_task_id}",
            message=(
                f"Dependency already exists: task {dependent_task_id} "
                f"{dependency_type} task {blocking_task_id}"
            ),
            **kwargs
        )


# ============================================================================
# Conversion helpers
# ============================================================================

_STATUS_CODES = (
    (NotFoundError, 404),
    (ValidationError, 422),
    (ConflictError, 409),
    (DatabaseError, 500),
)


def to_http_exception(
    exc: ServiceError,
    include_context: bool = True,
    default_status_code: int = 500
) -> HTTPException:
    """Convert a ServiceError into a FastAPI HTTPException."""
    status_code = default_status_code
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            status_code = code
            break

    detail: Dict[str, Any] = {
        "error": type(exc).__name__,
        "message": exc.message,
    }
    if exc.request_id:
        detail["request_id"] = exc.request_id
    if include_context and exc.context:
        detail["context"] = exc.context
    return HTTPException(status_code=status_code, detail=detail)
