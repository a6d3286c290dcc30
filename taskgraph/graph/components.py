"""
Whole-graph algorithms: strongly connected components and topological levels.

All traversals are iterative; graphs built from legacy data may already
contain cycles and must not blow the interpreter stack.
"""
from collections import deque
from typing import Dict, Iterable, List, Optional

from taskgraph.graph.cycle_detector import Adjacency


def find_strongly_connected_components(adjacency: Adjacency) -> List[List[int]]:
    """
    Tarjan's algorithm without recursion.

    Returns:
        Every SCC (including singletons) as a sorted list of node ids.
    """
    index_of: Dict[int, int] = {}
    lowlink: Dict[int, int] = {}
    on_stack = set()
    stack: List[int] = []
    components: List[List[int]] = []
    counter = 0

    for root in sorted(adjacency):
        if root in index_of:
            continue
        # Each frame is (node, iterator over successors)
        work = [(root, iter(adjacency.get(root, ())))]
        index_of[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)

        while work:
            node, successors = work[-1]
            advanced = False
            for successor in successors:
                if successor not in index_of:
                    index_of[successor] = lowlink[successor] = counter
                    counter += 1
                    stack.append(successor)
                    on_stack.add(successor)
                    work.append((successor, iter(adjacency.get(successor, ()))))
                    advanced = True
                    break
                if successor in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[successor])
            if advanced:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

            if lowlink[node] == index_of[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(sorted(component))

    return components


def find_cycles(adjacency: Adjacency) -> List[List[int]]:
    """SCCs of size > 1, sorted for deterministic output."""
    cycles = [c for c in find_strongly_connected_components(adjacency) if len(c) > 1]
    return sorted(cycles)


def compute_levels(adjacency: Adjacency, nodes: Iterable[int] = ()) -> Dict[int, Optional[int]]:
    """
    Length of the longest blocking chain leading to each node (Kahn order).

    Nodes that never reach in-degree zero (on a cycle or downstream of one)
    get None.
    """
    all_nodes = set(adjacency) | set(nodes)
    for successors in adjacency.values():
        all_nodes.update(successors)

    in_degree = {node: 0 for node in all_nodes}
    for successors in adjacency.values():
        for successor in successors:
            in_degree[successor] += 1

    levels: Dict[int, Optional[int]] = {node: None for node in all_nodes}
    queue = deque(sorted(node for node, degree in in_degree.items() if degree == 0))
    for node in queue:
        levels[node] = 0

    while queue:
        node = queue.popleft()
        for successor in adjacency.get(node, ()):
            candidate = levels[node] + 1
            if levels[successor] is None or candidate > levels[successor]:
                levels[successor] = candidate
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                queue.append(successor)

    # Nodes only partially relaxed before hitting a cycle keep no level
    for node, degree in in_degree.items():
        if degree > 0:
            levels[node] = None
    return levels


def longest_path_from(adjacency: Adjacency, start: int) -> List[int]:
    """
    Longest forward chain beginning at start.

    Computed by an iterative post-order over the nodes reachable from start;
    back edges (corrupt cyclic data) are skipped.
    """
    best_next: Dict[int, Optional[int]] = {}
    length: Dict[int, int] = {}
    visiting = set()
    work = [(start, False)]

    while work:
        node, expanded = work.pop()
        if expanded:
            visiting.discard(node)
            best, best_length = None, 0
            for successor in adjacency.get(node, ()):
                if successor in length and length[successor] + 1 > best_length:
                    best, best_length = successor, length[successor] + 1
            best_next[node] = best
            length[node] = best_length
            continue
        if node in length or node in visiting:
            continue
        visiting.add(node)
        work.append((node, True))
        for successor in adjacency.get(node, ()):
            if successor not in length and successor not in visiting:
                work.append((successor, False))

    path = [start]
    seen = {start}
    while best_next.get(path[-1]) is not None and best_next[path[-1]] not in seen:
        path.append(best_next[path[-1]])
        seen.add(path[-1])
    return path
