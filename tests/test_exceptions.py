"""
Tests for the taskgraph exception hierarchy.

Tests verify that exceptions carry their context, format their messages, and
convert to the right HTTPException status codes.
"""
import pytest
from fastapi import HTTPException

from taskgraph.exceptions import (
    ServiceError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DatabaseError,
    TaskNotFoundError,
    DependencyNotFoundError,
    SelfDependencyError,
    CircularDependencyError,
    CircularHierarchyError,
    DuplicateDependencyError,
    to_http_exception,
)


# ============================================================================
# Test Exception Initialization
# ============================================================================

class TestServiceErrorInitialization:
    """Test ServiceError base class initialization."""

    def test_basic_initialization(self):
        """Test basic ServiceError initialization."""
        exc = ServiceError("Test error message")
        assert exc.message == "Test error message"
        assert exc.request_id is None
        assert exc.context == {}
        assert exc.original_error is None
        assert str(exc) == "Test error message"

    def test_context_is_copied(self):
        """Mutating the caller's dict does not leak into the exception."""
        context = {"task_id": 1}
        exc = ServiceError("Test error", context=context)
        context["task_id"] = 2
        assert exc.context == {"task_id": 1}

    def test_to_dict(self):
        """Test ServiceError.to_dict() method."""
        original = ValueError("Original")
        exc = ServiceError(
            "Test error",
            request_id="req-123",
            context={"key": "value"},
            original_error=original
        )
        result = exc.to_dict()
        assert result["error_type"] == "ServiceError"
        assert result["message"] == "Test error"
        assert result["request_id"] == "req-123"
        assert result["context"] == {"key": "value"}
        assert result["original_error"] == {"type": "ValueError", "message": "Original"}

    def test_to_dict_minimal(self):
        """Optional keys are omitted when unset."""
        result = ServiceError("Test error").to_dict()
        assert result == {"error_type": "ServiceError", "message": "Test error"}


class TestBaseSubclasses:
    """Test the generic error categories."""

    def test_not_found_error(self):
        exc = NotFoundError("Task", 123)
        assert exc.message == "Task with ID '123' not found"
        assert exc.resource_id == "123"
        assert exc.context["resource_type"] == "Task"

    def test_not_found_custom_message(self):
        exc = NotFoundError("Task", 5, message="Task 5 not found in project 2")
        assert exc.message == "Task 5 not found in project 2"

    def test_validation_error_with_field_and_value(self):
        exc = ValidationError("Bad value", field="max_depth", value=0)
        assert exc.field == "max_depth"
        assert exc.context == {"field": "max_depth", "value": "0"}

    def test_conflict_error(self):
        exc = ConflictError("Dependency", "pair", "1->2")
        assert exc.message == "Dependency with pair '1->2' already exists"
        assert exc.context["field"] == "pair"

    def test_database_error(self):
        original = RuntimeError("disk I/O error")
        exc = DatabaseError("Database error", operation="insert", original_error=original)
        assert exc.operation == "insert"
        assert exc.context["operation"] == "insert"
        assert exc.original_error is original


class TestDomainExceptions:
    """Test engine-specific exceptions."""

    def test_task_not_found(self):
        exc = TaskNotFoundError(7)
        assert isinstance(exc, NotFoundError)
        assert exc.task_id == 7
        assert "Task with ID '7' not found" in exc.message

    def test_dependency_not_found(self):
        exc = DependencyNotFoundError(3)
        assert isinstance(exc, NotFoundError)
        assert exc.context["resource_type"] == "Dependency"

    def test_self_dependency(self):
        exc = SelfDependencyError(4)
        assert isinstance(exc, ValidationError)
        assert exc.message == "Task 4 cannot depend on itself"
        assert exc.field == "blocking_task_id"

    def test_circular_dependency_carries_path_and_cycles(self):
        exc = CircularDependencyError(
            "Circular dependency detected: 1 -> 2 -> 1",
            cycle_path=[1, 2, 1],
            cycles=[[1, 2]],
            field="blocking_task_id",
            value=1
        )
        assert isinstance(exc, ValidationError)
        assert exc.cycle_path == [1, 2, 1]
        assert exc.context["cycle_path"] == [1, 2, 1]
        assert exc.context["circular_dependencies"] == [[1, 2]]
        assert exc.context["field"] == "blocking_task_id"

    def test_circular_hierarchy(self):
        exc = CircularHierarchyError(1, 3)
        assert isinstance(exc, ValidationError)
        assert "circular reference" in exc.message

    def test_duplicate_dependency(self):
        exc = DuplicateDependencyError(2, 1, "BLOCKS")
        assert isinstance(exc, ConflictError)
        assert exc.message == "Dependency already exists: task 2 BLOCKS task 1"


# ============================================================================
# Test HTTP conversion
# ============================================================================

class TestToHTTPException:
    """Test to_http_exception conversion."""

    @pytest.mark.parametrize("exc,status_code", [
        (TaskNotFoundError(1), 404),
        (DependencyNotFoundError(1), 404),
        (SelfDependencyError(1), 422),
        (CircularDependencyError("Circular dependency detected"), 422),
        (CircularHierarchyError(1, 2), 422),
        (DuplicateDependencyError(2, 1, "BLOCKS"), 409),
        (DatabaseError("boom"), 500),
    ])
    def test_status_codes(self, exc, status_code):
        http_exc = to_http_exception(exc)
        assert isinstance(http_exc, HTTPException)
        assert http_exc.status_code == status_code
        assert http_exc.detail["error"] == type(exc).__name__

    def test_http_exception_with_request_id(self):
        exc = ValidationError("Bad", request_id="req-9")
        assert to_http_exception(exc).detail["request_id"] == "req-9"

    def test_http_exception_without_context(self):
        exc = ValidationError("Bad", field="x")
        detail = to_http_exception(exc, include_context=False).detail
        assert "context" not in detail

    def test_http_exception_default_status_code(self):
        class CustomError(ServiceError):
            pass

        assert to_http_exception(CustomError("x")).status_code == 500
        assert to_http_exception(CustomError("x"), default_status_code=418).status_code == 418
