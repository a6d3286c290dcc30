"""
Service layer - business logic of the dependency and hierarchy engine.
Services take their stores in __init__ and raise taskgraph.exceptions errors.
"""
from taskgraph.services.blocking_analyzer import BlockingAnalyzer
from taskgraph.services.bulk_operations import BulkOperationCoordinator
from taskgraph.services.dependency_graph_builder import DependencyGraphBuilder
from taskgraph.services.dependency_service import TaskDependencyService
from taskgraph.services.hierarchy_manager import HierarchyManager

__all__ = [
    "BlockingAnalyzer",
    "BulkOperationCoordinator",
    "DependencyGraphBuilder",
    "HierarchyManager",
    "TaskDependencyService",
]
