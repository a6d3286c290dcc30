"""
Hierarchy manager - parent/child tree operations.

The tree is encoded as a nullable parent_id on each task. Every walk uses an
explicit stack or queue and a visited set so legacy data that already contains
a loop cannot hang a request.
"""
import math
import logging
from typing import List, Optional, Set

from taskgraph import config
from taskgraph.exceptions import (
    CircularHierarchyError,
    TaskNotFoundError,
    ValidationError,
)
from taskgraph.models.analysis_models import SubtaskSummary, TaskTreeNode
from taskgraph.models.task_models import TaskRecord, TaskStatus, TaskSummary
from taskgraph.monitoring import cycle_rejections_total
from taskgraph.storage.interface import TaskStore
from taskgraph.storage.locks import ProjectLockManager

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class HierarchyManager:
    """Service for re-parenting tasks and reading subtrees."""

    def __init__(
        self,
        task_store: TaskStore,
        locks: Optional[ProjectLockManager] = None,
        max_hierarchy_depth: Optional[int] = None
    ):
        self.task_store = task_store
        self.locks = locks or ProjectLockManager()
        self.max_hierarchy_depth = max_hierarchy_depth if max_hierarchy_depth is not None else config.MAX_HIERARCHY_DEPTH

    def _require_task(self, task_id: int) -> TaskRecord:
        task = self.task_store.fetch_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def descendant_ids(self, task_id: int) -> Set[int]:
        """All ids below a task (not including the task itself)."""
        descendants: Set[int] = set()
        stack = [task_id]
        visited = {task_id}
        while stack:
            current = stack.pop()
            for child in self.task_store.list_children(current):
                if child.id in visited:
                    continue
                visited.add(child.id)
                descendants.add(child.id)
                stack.append(child.id)
        return descendants

    def subtree_height(self, task_id: int) -> int:
        """Number of levels below a task; 0 for a leaf."""
        height = 0
        stack = [(task_id, 0)]
        visited = {task_id}
        while stack:
            current, depth = stack.pop()
            height = max(height, depth)
            for child in self.task_store.list_children(current):
                if child.id not in visited:
                    visited.add(child.id)
                    stack.append((child.id, depth + 1))
        return height

    def get_ancestors(self, task_id: int) -> List[int]:
        """
        Ancestor ids ordered from the root down to the direct parent.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        task = self._require_task(task_id)
        chain: List[int] = []
        visited = {task.id}
        parent_id = task.parent_id
        while parent_id is not None and parent_id not in visited:
            parent = self.task_store.fetch_task(parent_id)
            if parent is None:
                logger.warning(f"Task {task_id} has dangling ancestor reference {parent_id}")
                break
            visited.add(parent.id)
            chain.append(parent.id)
            parent_id = parent.parent_id
        if parent_id is not None and parent_id in visited:
            logger.warning(f"Parent loop detected above task {task_id} at {parent_id}")
        chain.reverse()
        return chain

    def move_task(
        self,
        task_id: int,
        new_parent_id: Optional[int],
        position: Optional[int] = None,
        actor_id: Optional[str] = None
    ) -> TaskRecord:
        """
        Re-parent a task, or detach it to root level when new_parent_id is None.

        Args:
            task_id: Task to move
            new_parent_id: New parent task ID, or None
            position: Advisory sibling rank
            actor_id: Who made the change (recorded in change history)

        Returns:
            The updated task

        Raises:
            TaskNotFoundError: If the task or the new parent does not exist
            ValidationError: If the parent is in another project or the
                resulting tree would be too deep
            CircularHierarchyError: If the new parent is the task or one of
                its descendants
        """
        if position is not None and position < 0:
            raise ValidationError("Position must be non-negative", field="position", value=position)

        task = self._require_task(task_id)
        with self.locks.hold(task.project_id):
            # Re-read inside the lock; the task may have moved meanwhile
            task = self._require_task(task_id)
            old_parent_id = task.parent_id

            if new_parent_id is not None:
                self._validate_new_parent(task, new_parent_id)

            if not self.task_store.update_task_parent(task_id, new_parent_id, position, actor_id):
                raise TaskNotFoundError(task_id)

        logger.info(
            f"Moved task {task_id} from parent {old_parent_id} to {new_parent_id}",
            extra={"task_id": task_id, "actor_id": actor_id}
        )
        return self._require_task(task_id)

    def _validate_new_parent(self, task: TaskRecord, new_parent_id: int) -> None:
        if new_parent_id == task.id:
            cycle_rejections_total.labels(source="hierarchy").inc()
            raise CircularHierarchyError(task.id, new_parent_id)

        new_parent = self.task_store.fetch_task(new_parent_id)
        if new_parent is None:
            raise TaskNotFoundError(new_parent_id)
        if new_parent.project_id != task.project_id:
            raise ValidationError(
                f"Parent task {new_parent_id} belongs to a different project",
                field="new_parent_id",
                value=new_parent_id
            )

        if new_parent_id in self.descendant_ids(task.id):
            cycle_rejections_total.labels(source="hierarchy").inc()
            logger.warning(f"Rejected move of task {task.id} under its descendant {new_parent_id}")
            raise CircularHierarchyError(task.id, new_parent_id)

        new_depth = len(self.get_ancestors(new_parent_id)) + 1
        deepest = new_depth + self.subtree_height(task.id)
        if deepest > self.max_hierarchy_depth:
            raise ValidationError(
                f"Moving task {task.id} under {new_parent_id} would nest {deepest} levels deep "
                f"(maximum {self.max_hierarchy_depth})",
                field="new_parent_id",
                value=new_parent_id
            )

    def get_task_tree(self, task_id: int, max_depth: Optional[int] = None) -> TaskTreeNode:
        """
        Build the subtree rooted at a task.

        The root is depth 0; children are expanded while depth < max_depth - 1,
        so max_depth=1 returns the root alone. has_children always reflects the
        store, even for nodes that were not expanded.

        Raises:
            TaskNotFoundError: If the task does not exist
            ValidationError: If max_depth < 1
        """
        if max_depth is None:
            max_depth = config.DEFAULT_TREE_DEPTH
        if max_depth < 1:
            raise ValidationError("max_depth must be at least 1", field="max_depth", value=max_depth)

        root_task = self._require_task(task_id)
        root = TaskTreeNode(task=TaskSummary.from_record(root_task), depth=0)
        stack = [root]
        visited = {root_task.id}
        while stack:
            node = stack.pop()
            children = self.task_store.list_children(node.task.id)
            node.has_children = bool(children)
            if node.depth >= max_depth - 1:
                continue
            for child in children:
                if child.id in visited:
                    logger.warning(f"Skipping task {child.id} already present in tree of {task_id}")
                    continue
                visited.add(child.id)
                child_node = TaskTreeNode(task=TaskSummary.from_record(child), depth=node.depth + 1)
                node.children.append(child_node)
                stack.append(child_node)
        return root

    def get_subtask_summary(self, parent_task_id: int) -> SubtaskSummary:
        """
        Roll up the direct children of a task.

        Completion is weighted by story points when any child has points,
        otherwise it is the share of children that are done.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        self._require_task(parent_task_id)
        children = self.task_store.list_children(parent_task_id)
        total = len(children)

        done = [c for c in children if c.status == TaskStatus.DONE.value]
        in_progress = [c for c in children if c.status in (TaskStatus.IN_PROGRESS.value, TaskStatus.REVIEW.value)]
        todo = [c for c in children if c.status == TaskStatus.TODO.value]

        estimated = sum(c.estimated_hours or 0.0 for c in children)
        logged = sum(c.actual_hours or 0.0 for c in children)

        completion = 0
        if total:
            total_points = sum(c.story_points or 0 for c in children)
            if any(c.story_points for c in children) and total_points > 0:
                done_points = sum(c.story_points or 0 for c in done)
                completion = _round_half_up(100.0 * done_points / total_points)
            else:
                completion = _round_half_up(100.0 * len(done) / total)

        return SubtaskSummary(
            parent_task_id=parent_task_id,
            total_subtasks=total,
            completed_subtasks=len(done),
            in_progress_subtasks=len(in_progress),
            todo_subtasks=len(todo),
            completion_percentage=completion,
            estimated_hours=float(estimated),
            logged_hours=float(logged),
            remaining_hours=float(max(0.0, estimated - logged)),
        )
