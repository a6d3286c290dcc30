"""
Tests for dependency graph generation and impact analysis.
"""
import logging

import pytest

from taskgraph.exceptions import TaskNotFoundError
from taskgraph.models.dependency_models import DependencyEdge


@pytest.fixture
def chain(store, service):
    """t1 -> t2 -> t3 blocking chain, t4 RELATES_TO t1, t5 isolated."""
    ids = [store.create_task(project_id=1, key=f"PRJ-{i}", estimated_hours=2.0) for i in range(1, 6)]
    service.create_dependency(ids[1], ids[0])
    service.create_dependency(ids[2], ids[1])
    service.create_dependency(ids[3], ids[0], "RELATES_TO")
    return ids


class TestGenerateDependencyGraph:
    """Tests for generate_dependency_graph."""

    def test_nodes_are_edge_endpoints(self, service, chain):
        graph = service.generate_dependency_graph(1)
        assert graph.project_id == 1
        assert graph.node_ids == sorted(chain[:4])
        assert chain[4] not in graph.node_ids

    def test_edges_include_relates_to_with_zero_weight(self, service, chain):
        graph = service.generate_dependency_graph(1)
        by_type = {(e.from_task_id, e.to_task_id): (e.type, e.weight) for e in graph.edges}
        assert by_type[(chain[0], chain[1])] == ("BLOCKS", 1.0)
        assert by_type[(chain[0], chain[3])] == ("RELATES_TO", 0.0)

    def test_no_cycles_through_engine(self, service, chain):
        assert service.generate_dependency_graph(1).cycles == []

    def test_node_details(self, service, store, chain):
        store.update_task_status(chain[0], "done")
        graph = service.generate_dependency_graph(1)
        nodes = {n.task_id: n for n in graph.nodes}

        assert nodes[chain[0]].level == 0
        assert nodes[chain[1]].level == 1
        assert nodes[chain[2]].level == 2
        assert nodes[chain[3]].level == 0
        assert nodes[chain[0]].task_key == "PRJ-1"
        assert nodes[chain[1]].blocked_by == [chain[0]]
        assert nodes[chain[1]].is_blocked is False
        assert nodes[chain[2]].is_blocked is True
        assert nodes[chain[0]].blocking == [chain[1]]

    def test_other_project_edges_excluded(self, service, store, chain):
        a = store.create_task(project_id=2)
        b = store.create_task(project_id=2)
        service.create_dependency(b, a)
        assert service.generate_dependency_graph(1).node_ids == sorted(chain[:4])
        assert service.generate_dependency_graph(2).node_ids == [a, b]

    def test_empty_project(self, service):
        graph = service.generate_dependency_graph(42)
        assert graph.nodes == []
        assert graph.edges == []
        assert graph.cycles == []

    def test_corrupt_data_reports_cycle(self, service, store, chain, caplog):
        # Written directly to the store, bypassing cycle checks
        store.insert_edge(DependencyEdge(dependent_task_id=chain[0], blocking_task_id=chain[2]))

        with caplog.at_level(logging.WARNING):
            graph = service.generate_dependency_graph(1)

        assert graph.cycles == [sorted(chain[:3])]
        assert any("cycle" in record.message for record in caplog.records)
        nodes = {n.task_id: n for n in graph.nodes}
        assert nodes[chain[0]].level is None
        # Diagnostics only: the data is left as it was
        assert len(service.list_dependencies(project_id=1)) == 4


class TestAnalyzeImpact:
    """Tests for analyze_impact."""

    def test_levels_and_critical_path(self, service, store, chain):
        side = store.create_task(project_id=1)
        service.create_dependency(side, chain[0])

        analysis = service.analyze_impact(chain[0])

        levels = {t.task_id: (t.impact_type, t.impact_level) for t in analysis.impacted_tasks}
        assert levels == {
            chain[1]: ("DIRECT", 1),
            side: ("DIRECT", 1),
            chain[2]: ("INDIRECT", 2),
        }
        assert analysis.total_impacted_tasks == 3
        assert analysis.max_impact_level == 2
        assert analysis.critical_path == [chain[0], chain[1], chain[2]]
        assert all(t.estimated_delay == 2.0 for t in analysis.impacted_tasks)

    def test_relates_to_has_no_impact(self, service, chain):
        analysis = service.analyze_impact(chain[3])
        assert analysis.impacted_tasks == []
        assert analysis.critical_path == [chain[3]]

    def test_missing_task(self, service):
        with pytest.raises(TaskNotFoundError):
            service.analyze_impact(999)
