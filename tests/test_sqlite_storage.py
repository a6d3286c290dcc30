"""
Tests for the SQLite reference store.
"""
import sqlite3

import pytest

from taskgraph.exceptions import DuplicateDependencyError, ValidationError
from taskgraph.models.dependency_models import DependencyEdge, DependencyType, EdgeDirection


def add_edge(store, dependent, blocking, edge_type="BLOCKS"):
    return store.insert_edge(DependencyEdge(
        dependent_task_id=dependent, blocking_task_id=blocking, type=edge_type
    ))


class TestSchema:
    """Tests for schema creation."""

    def test_tables_created(self, temp_db):
        _, db_path = temp_db
        conn = sqlite3.connect(db_path)
        try:
            names = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        finally:
            conn.close()
        assert {"tasks", "task_dependencies", "change_history"} <= names

    def test_reopen_existing_database(self, temp_db):
        store, db_path = temp_db
        task_id = store.create_task(project_id=1, title="Persisted")
        reopened = type(store)(db_path)
        assert reopened.fetch_task(task_id).title == "Persisted"


class TestTasks:
    """Tests for task reads and writes."""

    def test_create_and_fetch(self, store):
        task_id = store.create_task(
            project_id=1, title="Write docs", key="PRJ-1", estimated_hours=3.5, story_points=2
        )
        task = store.fetch_task(task_id)
        assert task.id == task_id
        assert task.project_id == 1
        assert task.key == "PRJ-1"
        assert task.status == "todo"
        assert task.estimated_hours == 3.5
        assert task.story_points == 2
        assert task.parent_id is None

    def test_fetch_missing(self, store):
        assert store.fetch_task(999) is None

    def test_status_aliases_normalized(self, store):
        task_id = store.create_task(project_id=1, status="COMPLETED")
        assert store.fetch_task(task_id).status == "done"
        assert store.update_task_status(task_id, "in-progress") is True
        assert store.fetch_task(task_id).status == "in_progress"

    def test_invalid_status_rejected(self, store):
        with pytest.raises(ValidationError):
            store.create_task(project_id=1, status="someday")

    def test_fetch_tasks_omits_missing(self, store):
        a = store.create_task(project_id=1)
        b = store.create_task(project_id=1)
        tasks = store.fetch_tasks([a, b, 999])
        assert set(tasks) == {a, b}
        assert store.fetch_tasks([]) == {}

    def test_list_children_ordered_by_position_then_id(self, store):
        parent = store.create_task(project_id=1)
        c1 = store.create_task(project_id=1, parent_id=parent, position=2)
        c2 = store.create_task(project_id=1, parent_id=parent, position=1)
        c3 = store.create_task(project_id=1, parent_id=parent, position=1)
        assert [c.id for c in store.list_children(parent)] == [c2, c3, c1]

    def test_update_task_parent(self, store):
        parent = store.create_task(project_id=1)
        child = store.create_task(project_id=1, position=4)
        assert store.update_task_parent(child, parent) is True
        moved = store.fetch_task(child)
        assert moved.parent_id == parent
        assert moved.position == 4
        assert store.update_task_parent(child, None, position=0) is True
        assert store.fetch_task(child).parent_id is None
        assert store.fetch_task(child).position == 0
        assert store.update_task_parent(999, None) is False

    def test_parent_change_recorded(self, store):
        parent = store.create_task(project_id=1)
        task_id = store.create_task(project_id=1)
        store.update_task_parent(task_id, parent, actor_id="agent-1")
        history = store.get_change_history(task_id)
        assert len(history) == 1
        assert history[0]["change_type"] == "parent_changed"
        assert history[0]["actor_id"] == "agent-1"
        assert history[0]["old_value"] is None
        assert history[0]["new_value"] == str(parent)

    def test_missing_task_records_nothing(self, store):
        assert store.update_task_parent(999, None) is False
        assert store.get_change_history(999) == []


class TestEdges:
    """Tests for dependency edge storage."""

    @pytest.fixture
    def tasks(self, store):
        return [store.create_task(project_id=1, title=f"T{i}") for i in range(4)]

    def test_insert_sets_id_and_created_at(self, store, tasks):
        edge = add_edge(store, tasks[1], tasks[0])
        assert edge.id is not None
        assert edge.created_at is not None
        assert edge.type == "BLOCKS"
        assert store.get_edge(edge.id) == edge

    def test_is_blocked_by_stored_as_blocks(self, store, tasks):
        edge = add_edge(store, tasks[1], tasks[0], "IS_BLOCKED_BY")
        assert edge.type == "BLOCKS"
        assert store.find_edge(tasks[1], tasks[0], DependencyType.BLOCKS) is not None

    def test_unique_constraint_maps_to_duplicate_error(self, store, tasks):
        add_edge(store, tasks[1], tasks[0])
        with pytest.raises(DuplicateDependencyError):
            add_edge(store, tasks[1], tasks[0])

    def test_list_edges_for_task_directions(self, store, tasks):
        incoming = add_edge(store, tasks[1], tasks[0])
        outgoing = add_edge(store, tasks[2], tasks[1])
        assert store.list_edges_for_task(tasks[1], EdgeDirection.INCOMING) == [incoming]
        assert store.list_edges_for_task(tasks[1], EdgeDirection.OUTGOING) == [outgoing]
        assert store.list_edges_for_task(tasks[1]) == [incoming, outgoing]

    def test_list_edges_for_project_requires_both_endpoints(self, store, tasks):
        other = store.create_task(project_id=2)
        inside = add_edge(store, tasks[1], tasks[0])
        add_edge(store, other, tasks[0])
        assert store.list_edges_for_project(1) == [inside]

    def test_list_edges_filters(self, store, tasks):
        other = store.create_task(project_id=2)
        blocks = add_edge(store, tasks[1], tasks[0])
        relates = add_edge(store, tasks[2], tasks[0], "RELATES_TO")
        cross = add_edge(store, other, tasks[3])
        assert store.list_edges(task_id=tasks[0]) == [blocks, relates]
        assert store.list_edges(project_id=2) == [cross]
        assert store.list_edges(project_id=1) == [blocks, relates, cross]
        assert store.list_edges(dependency_type=DependencyType.IS_BLOCKED_BY) == [blocks, cross]
        assert store.list_edges(dependency_type=DependencyType.RELATES_TO) == [relates]

    def test_delete_edge(self, store, tasks):
        edge = add_edge(store, tasks[1], tasks[0])
        assert store.delete_edge(edge.id) is True
        assert store.get_edge(edge.id) is None
        assert store.delete_edge(edge.id) is False

    def test_edge_history(self, store, tasks):
        edge = store.insert_edge(
            DependencyEdge(dependent_task_id=tasks[1], blocking_task_id=tasks[0]), actor_id="agent-2"
        )
        store.delete_edge(edge.id, actor_id="agent-3")
        history = store.get_change_history(tasks[1])
        assert [(h["change_type"], h["actor_id"]) for h in history] == [
            ("dependency_added", "agent-2"),
            ("dependency_removed", "agent-3"),
        ]
        assert history[0]["new_value"] == f"BLOCKS:{tasks[0]}"
        assert history[1]["old_value"] == f"BLOCKS:{tasks[0]}"

    def test_duplicate_insert_records_nothing(self, store, tasks):
        add_edge(store, tasks[1], tasks[0])
        with pytest.raises(DuplicateDependencyError):
            add_edge(store, tasks[1], tasks[0])
        assert len(store.get_change_history(tasks[1])) == 1
