"""Pure graph algorithms over dependency edges."""
from taskgraph.graph.cycle_detector import blocking_adjacency, cycle_path, find_path, would_create_cycle
from taskgraph.graph.components import (
    compute_levels,
    find_cycles,
    find_strongly_connected_components,
    longest_path_from,
)

__all__ = [
    "blocking_adjacency",
    "cycle_path",
    "find_path",
    "would_create_cycle",
    "compute_levels",
    "find_cycles",
    "find_strongly_connected_components",
    "longest_path_from",
]
