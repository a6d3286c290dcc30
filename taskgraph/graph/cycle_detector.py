"""
Reachability checks over the blocking subgraph.

Edges are read in canonical form, ``blocking -> dependent``. Only blocking
edges (BLOCKS, IS_BLOCKED_BY) take part; RELATES_TO is ignored.
"""
from collections import deque
from typing import Dict, Iterable, List, Optional, Set, Tuple

from taskgraph.models.dependency_models import DependencyEdge, DependencyType

Adjacency = Dict[int, List[int]]


def _is_blocking(edge_type) -> bool:
    return DependencyType(edge_type).is_blocking


def blocking_adjacency(edges: Iterable[DependencyEdge]) -> Adjacency:
    """Forward adjacency ``blocking -> [dependents]`` of the blocking edges."""
    adjacency: Adjacency = {}
    for edge in edges:
        if not _is_blocking(edge.type):
            continue
        adjacency.setdefault(edge.blocking_task_id, []).append(edge.dependent_task_id)
        adjacency.setdefault(edge.dependent_task_id, [])
    return adjacency


def find_path(adjacency: Adjacency, start: int, goal: int) -> Optional[List[int]]:
    """
    Shortest forward path from start to goal, or None.

    Breadth-first with a visited set, so corrupt (already cyclic) data still
    terminates.
    """
    if start == goal:
        return [start]
    parents: Dict[int, int] = {}
    visited: Set[int] = {start}
    queue = deque([start])
    while queue:
        node = queue.popleft()
        for successor in adjacency.get(node, ()):
            if successor in visited:
                continue
            visited.add(successor)
            parents[successor] = node
            if successor == goal:
                path = [goal]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                path.reverse()
                return path
            queue.append(successor)
    return None


def would_create_cycle(
    edges: Iterable[DependencyEdge],
    candidate: Tuple[int, int],
    candidate_type: DependencyType = DependencyType.BLOCKS
) -> bool:
    """
    Check whether adding a dependency closes a loop.

    Args:
        edges: Existing edges (any type; non-blocking ones are skipped)
        candidate: ``(dependent_task_id, blocking_task_id)`` of the new edge
        candidate_type: Type of the new edge

    Returns:
        True when blocking is already reachable from dependent.
    """
    return cycle_path(edges, candidate, candidate_type) is not None


def cycle_path(
    edges: Iterable[DependencyEdge],
    candidate: Tuple[int, int],
    candidate_type: DependencyType = DependencyType.BLOCKS
) -> Optional[List[int]]:
    """
    The loop a candidate edge would close, as task ids starting and ending
    with the blocking task, or None when the edge is safe.
    """
    if not _is_blocking(candidate_type):
        return None
    dependent_task_id, blocking_task_id = candidate
    if dependent_task_id == blocking_task_id:
        return [blocking_task_id, dependent_task_id]
    path = find_path(blocking_adjacency(edges), dependent_task_id, blocking_task_id)
    if path is None:
        return None
    return [blocking_task_id] + path
