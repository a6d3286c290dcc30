"""
Dependency graph builder - projects a project's edges into a node/edge/cycle
report and answers downstream impact questions.
"""
import time
import logging
from collections import deque
from typing import Dict, FrozenSet, Iterable, List, Optional

from taskgraph import config
from taskgraph.exceptions import TaskNotFoundError
from taskgraph.graph import blocking_adjacency, compute_levels, find_cycles, longest_path_from
from taskgraph.models.analysis_models import (
    DependencyGraph,
    DependencyImpactAnalysis,
    GraphEdge,
    GraphNode,
    ImpactedTask,
)
from taskgraph.models.dependency_models import DependencyType
from taskgraph.models.task_models import TaskRecord
from taskgraph.monitoring import graph_build_seconds
from taskgraph.storage.interface import EdgeStore, TaskStore
from taskgraph.tracing import add_span_attribute, trace_span

logger = logging.getLogger(__name__)

EDGE_WEIGHTS = {
    DependencyType.BLOCKS.value: 1.0,
    DependencyType.IS_BLOCKED_BY.value: 1.0,
    DependencyType.RELATES_TO.value: 0.0,
}


class DependencyGraphBuilder:
    """Builds whole-project dependency graphs for display and auditing."""

    def __init__(
        self,
        task_store: TaskStore,
        edge_store: EdgeStore,
        terminal_statuses: Optional[Iterable[str]] = None
    ):
        self.task_store = task_store
        self.edge_store = edge_store
        self.terminal_statuses: FrozenSet[str] = frozenset(
            s.lower() for s in (terminal_statuses if terminal_statuses is not None else config.TERMINAL_STATUSES)
        )

    def generate_dependency_graph(self, project_id: int) -> DependencyGraph:
        """
        Generate the dependency graph of a project.

        Nodes are the tasks touched by any edge whose both endpoints are in
        the project. Cycles are reported, never repaired.

        Args:
            project_id: Project ID

        Returns:
            DependencyGraph with nodes sorted by task id and edges by edge id
        """
        start_time = time.time()
        with trace_span("graph.generate", attributes={"project_id": project_id}):
            edges = self.edge_store.list_edges_for_project(project_id)
            adjacency = blocking_adjacency(edges)

            node_ids = sorted({e.dependent_task_id for e in edges} | {e.blocking_task_id for e in edges})
            tasks = self.task_store.fetch_tasks(node_ids)
            cycles = find_cycles(adjacency)
            levels = compute_levels(adjacency, node_ids)

            blocked_by: Dict[int, List[int]] = {node_id: [] for node_id in node_ids}
            blocking: Dict[int, List[int]] = {node_id: [] for node_id in node_ids}
            for edge in edges:
                if edge.is_blocking:
                    blocked_by[edge.dependent_task_id].append(edge.blocking_task_id)
                    blocking[edge.blocking_task_id].append(edge.dependent_task_id)

            nodes = []
            for node_id in node_ids:
                task = tasks.get(node_id)
                unresolved = [b for b in blocked_by[node_id] if not self._is_resolved(tasks.get(b))]
                nodes.append(GraphNode(
                    task_id=node_id,
                    task_key=task.display_key if task else str(node_id),
                    title=task.title if task else "",
                    status=task.status if task else None,
                    level=levels.get(node_id),
                    is_blocked=bool(unresolved),
                    blocked_by=sorted(blocked_by[node_id]),
                    blocking=sorted(blocking[node_id]),
                ))

            graph_edges = [
                GraphEdge(
                    id=edge.id,
                    from_task_id=edge.blocking_task_id,
                    to_task_id=edge.dependent_task_id,
                    type=edge.type,
                    weight=EDGE_WEIGHTS.get(edge.type, 1.0),
                )
                for edge in sorted(edges, key=lambda e: (e.id or 0))
            ]

            add_span_attribute("graph.nodes", len(nodes))
            add_span_attribute("graph.edges", len(graph_edges))

        graph_build_seconds.observe(time.time() - start_time)

        if cycles:
            logger.warning(
                f"Dependency graph of project {project_id} contains {len(cycles)} cycle(s): {cycles}",
                extra={"project_id": project_id, "cycles": cycles}
            )

        return DependencyGraph(project_id=project_id, nodes=nodes, edges=graph_edges, cycles=cycles)

    def analyze_impact(self, task_id: int) -> DependencyImpactAnalysis:
        """
        Find every task downstream of a task through blocking edges.

        Direct dependents are impact level 1; each further hop adds one.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        task = self.task_store.fetch_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        adjacency = blocking_adjacency(self.edge_store.list_edges_for_project(task.project_id))

        distance: Dict[int, int] = {task_id: 0}
        queue = deque([task_id])
        while queue:
            current = queue.popleft()
            for successor in adjacency.get(current, ()):
                if successor not in distance:
                    distance[successor] = distance[current] + 1
                    queue.append(successor)

        impacted_ids = sorted((i for i in distance if i != task_id), key=lambda i: (distance[i], i))
        impacted_records = self.task_store.fetch_tasks(impacted_ids)
        delay = self._remaining_hours(task)

        impacted = []
        for impacted_id in impacted_ids:
            record = impacted_records.get(impacted_id)
            level = distance[impacted_id]
            impacted.append(ImpactedTask(
                task_id=impacted_id,
                task_key=record.display_key if record else str(impacted_id),
                title=record.title if record else "",
                impact_type="DIRECT" if level == 1 else "INDIRECT",
                impact_level=level,
                estimated_delay=delay,
            ))

        return DependencyImpactAnalysis(
            task_id=task_id,
            impacted_tasks=impacted,
            critical_path=longest_path_from(adjacency, task_id),
            total_impacted_tasks=len(impacted),
            max_impact_level=max((t.impact_level for t in impacted), default=0),
        )

    def _is_resolved(self, task: Optional[TaskRecord]) -> bool:
        return task is not None and str(task.status).lower() in self.terminal_statuses

    def _remaining_hours(self, task: TaskRecord) -> Optional[float]:
        if task.estimated_hours is None:
            return None
        if self._is_resolved(task):
            return 0.0
        return max(0.0, task.estimated_hours - (task.actual_hours or 0.0))
