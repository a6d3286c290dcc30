"""
Mock-based unit tests for the task dependency route handlers.
Tests the HTTP layer in isolation with a mocked service.
"""
import pytest
from unittest.mock import Mock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from taskgraph.api.routes import dependencies
from taskgraph.app.services import get_dependency_service
from taskgraph.exceptions import (
    CircularDependencyError,
    DependencyNotFoundError,
    DuplicateDependencyError,
    TaskNotFoundError,
)
from taskgraph.models.analysis_models import BlockingInfo, BlockingTaskRef, TaskTreeNode
from taskgraph.models.dependency_models import BulkDependencyResult, DependencyEdge
from taskgraph.models.task_models import TaskRecord, TaskSummary
from taskgraph.services.dependency_service import TaskDependencyService


@pytest.fixture
def mock_service():
    """Create a mock dependency service."""
    return Mock(spec=TaskDependencyService)


@pytest.fixture
def app(mock_service):
    """Create a FastAPI app with the dependencies router."""
    app = FastAPI()
    app.include_router(dependencies.router)
    app.dependency_overrides[get_dependency_service] = lambda: mock_service
    return app


@pytest.fixture
def client(app):
    """Create a test client."""
    return TestClient(app)


def edge(edge_id=1, dependent=2, blocking=1, edge_type="BLOCKS"):
    return DependencyEdge(id=edge_id, dependent_task_id=dependent, blocking_task_id=blocking, type=edge_type)


class TestCreateDependency:
    """Test POST /task-dependencies."""

    def test_create_success(self, client, mock_service):
        mock_service.create_dependency.return_value = edge()

        response = client.post(
            "/task-dependencies",
            json={"dependent_task_id": 2, "blocking_task_id": 1, "type": "blocks"},
            headers={"X-Actor-Id": "agent-1"}
        )

        assert response.status_code == 201
        assert response.json()["id"] == 1
        mock_service.create_dependency.assert_called_once_with(2, 1, "BLOCKS", "agent-1")

    def test_invalid_body(self, client, mock_service):
        response = client.post("/task-dependencies", json={"dependent_task_id": 0, "blocking_task_id": 1})
        assert response.status_code == 422
        mock_service.create_dependency.assert_not_called()

    @pytest.mark.parametrize("error,status_code", [
        (TaskNotFoundError(9), 404),
        (CircularDependencyError("Circular dependency detected: 1 -> 2 -> 1", cycle_path=[1, 2, 1]), 422),
        (DuplicateDependencyError(2, 1, "BLOCKS"), 409),
    ])
    def test_service_errors_mapped(self, client, mock_service, error, status_code):
        mock_service.create_dependency.side_effect = error

        response = client.post("/task-dependencies", json={"dependent_task_id": 2, "blocking_task_id": 1})

        assert response.status_code == status_code
        assert response.json()["detail"]["error"] == type(error).__name__

    def test_cycle_path_in_context(self, client, mock_service):
        mock_service.create_dependency.side_effect = CircularDependencyError(
            "Circular dependency detected: 1 -> 2 -> 1", cycle_path=[1, 2, 1]
        )
        response = client.post("/task-dependencies", json={"dependent_task_id": 2, "blocking_task_id": 1})
        assert response.json()["detail"]["context"]["cycle_path"] == [1, 2, 1]


class TestListAndDelete:
    """Test GET and DELETE /task-dependencies."""

    def test_list_envelope(self, client, mock_service):
        mock_service.list_dependencies.return_value = [edge(1), edge(2, dependent=3)]

        response = client.get("/task-dependencies", params={"project_id": 1, "type": "is_blocked_by", "status": "active"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["count"] == 2
        filters = mock_service.list_dependencies.call_args[0][0]
        assert filters.project_id == 1
        assert filters.type.value == "IS_BLOCKED_BY"
        assert filters.status.value == "ACTIVE"

    def test_list_invalid_status(self, client, mock_service):
        response = client.get("/task-dependencies", params={"status": "someday"})
        assert response.status_code == 422
        mock_service.list_dependencies.assert_not_called()

    def test_list_invalid_type(self, client, mock_service):
        response = client.get("/task-dependencies", params={"type": "depends_on"})
        assert response.status_code == 422

    def test_delete(self, client, mock_service):
        mock_service.delete_dependency.return_value = edge(5)
        response = client.delete("/task-dependencies/5", headers={"X-Actor-Id": "agent-2"})
        assert response.status_code == 200
        assert response.json()["data"]["id"] == 5
        mock_service.delete_dependency.assert_called_once_with(5, "agent-2")

    def test_delete_missing(self, client, mock_service):
        mock_service.delete_dependency.side_effect = DependencyNotFoundError(5)
        assert client.delete("/task-dependencies/5").status_code == 404


class TestTaskViews:
    """Test the per-task read endpoints."""

    def test_blocking_info(self, client, mock_service):
        mock_service.get_task_blocking_info.return_value = BlockingInfo(
            task_id=2,
            is_blocked=True,
            blocked_by=[BlockingTaskRef(task_id=1, task_key="PRJ-1", title="", status="todo", type="IS_BLOCKED_BY")],
            can_start=False,
            blocked_reason="Blocked by: PRJ-1",
        )
        response = client.get("/task-dependencies/tasks/2/blocking-info")
        assert response.status_code == 200
        assert response.json()["blocked_reason"] == "Blocked by: PRJ-1"

    def test_tree_passes_max_depth(self, client, mock_service):
        mock_service.get_task_tree.return_value = TaskTreeNode(
            task=TaskSummary(id=1, status="todo"), has_children=True
        )
        response = client.get("/task-dependencies/tasks/1/tree", params={"max_depth": 1})
        assert response.status_code == 200
        assert response.json()["children"] == []
        mock_service.get_task_tree.assert_called_once_with(1, 1)

    def test_move(self, client, mock_service):
        mock_service.move_task.return_value = TaskRecord(id=3, project_id=1, parent_id=None)
        response = client.put("/task-dependencies/tasks/3/move", json={"new_parent_id": None})
        assert response.status_code == 200
        assert response.json()["parent_id"] is None
        mock_service.move_task.assert_called_once_with(3, None, None, None)

    def test_bulk(self, client, mock_service):
        mock_service.bulk_dependency_operation.return_value = BulkDependencyResult(
            operation="CREATE", successful=[edge()]
        )
        response = client.post("/task-dependencies/bulk", json={
            "operation": "CREATE",
            "dependencies": [{"dependent_task_id": 2, "blocking_task_id": 1}],
        })
        assert response.status_code == 200
        assert len(response.json()["successful"]) == 1

    def test_bulk_empty_rejected(self, client, mock_service):
        response = client.post("/task-dependencies/bulk", json={"operation": "CREATE", "dependencies": []})
        assert response.status_code == 422
        mock_service.bulk_dependency_operation.assert_not_called()
