"""
SQLite reference implementation of the task and edge stores.
"""
import os
import sqlite3
import time
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from opentelemetry import trace

from taskgraph import config
from taskgraph.exceptions import DatabaseError, DuplicateDependencyError, ValidationError
from taskgraph.models.task_models import TaskRecord, TaskStatus, normalize_task_status
from taskgraph.models.dependency_models import DependencyEdge, DependencyType, EdgeDirection
from taskgraph.storage.interface import EdgeStore, TaskStore
from taskgraph.tracing import add_span_attribute, trace_span

logger = logging.getLogger(__name__)

_TASK_COLUMNS = (
    "id, project_id, parent_id, task_key, title, status, estimated_hours, "
    "actual_hours, story_points, position"
)
_EDGE_COLUMNS = "id, dependent_task_id, blocking_task_id, dependency_type, created_at"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStore(TaskStore, EdgeStore):
    """Task and dependency storage backed by a SQLite file."""

    def __init__(self, db_path: str = None):
        """
        Initialize database and create schema if needed.

        Args:
            db_path: SQLite file path. If None, uses TASKGRAPH_DB_PATH.
        """
        self.db_path = db_path or config.DB_PATH
        self._ensure_db_directory()
        self._init_schema()

    def _ensure_db_directory(self):
        db_dir = os.path.dirname(os.path.abspath(self.db_path))
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _execute_with_logging(self, cursor: sqlite3.Cursor, query: str, params: Tuple = None) -> sqlite3.Cursor:
        """
        Execute a query with performance logging and tracing.

        sqlite3 errors are logged and re-raised as DatabaseError.
        """
        query_type = query.strip().split(None, 1)[0].lower() if query.strip() else "unknown"
        start_time = time.time()
        with trace_span(
            f"db.{query_type}",
            attributes={"db.system": "sqlite", "db.operation": query_type},
            kind=trace.SpanKind.CLIENT
        ):
            try:
                result = cursor.execute(query, params or ())
            except sqlite3.IntegrityError:
                raise
            except sqlite3.Error as e:
                duration = time.time() - start_time
                logger.error(f"Query failed after {duration:.4f}s: {query[:200]}", exc_info=True)
                raise DatabaseError(f"Database error: {e}", operation=query_type, original_error=e) from e

            duration = time.time() - start_time
            add_span_attribute("db.duration_ms", duration * 1000)
            if config.ENABLE_QUERY_LOGGING and duration >= config.QUERY_SLOW_THRESHOLD:
                query_preview = query[:200] + "..." if len(query) > 200 else query
                logger.warning(
                    f"Slow query: {duration:.4f}s - {query_preview}",
                    extra={"duration": duration, "params_count": len(params) if params else 0}
                )
                add_span_attribute("db.slow_query", True)
            return result

    def _init_schema(self):
        """Initialize database schema."""
        statuses = ", ".join(f"'{s.value}'" for s in TaskStatus)
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            self._execute_with_logging(cursor, f"""
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    project_id INTEGER NOT NULL,
                    parent_id INTEGER,
                    task_key TEXT,
                    title TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'todo' CHECK(status IN ({statuses})),
                    estimated_hours REAL,
                    actual_hours REAL,
                    story_points INTEGER,
                    position INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (parent_id) REFERENCES tasks(id) ON DELETE SET NULL
                )
            """)
            self._execute_with_logging(cursor, "CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id)")
            self._execute_with_logging(cursor, "CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id)")

            # Only canonical types are ever stored; IS_BLOCKED_BY is normalized to BLOCKS
            self._execute_with_logging(cursor, """
                CREATE TABLE IF NOT EXISTS task_dependencies (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    dependent_task_id INTEGER NOT NULL,
                    blocking_task_id INTEGER NOT NULL,
                    dependency_type TEXT NOT NULL DEFAULT 'BLOCKS'
                        CHECK(dependency_type IN ('BLOCKS', 'RELATES_TO')),
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (dependent_task_id) REFERENCES tasks(id) ON DELETE CASCADE,
                    FOREIGN KEY (blocking_task_id) REFERENCES tasks(id) ON DELETE CASCADE,
                    UNIQUE(dependent_task_id, blocking_task_id, dependency_type)
                )
            """)
            self._execute_with_logging(cursor, "CREATE INDEX IF NOT EXISTS idx_deps_dependent ON task_dependencies(dependent_task_id)")
            self._execute_with_logging(cursor, "CREATE INDEX IF NOT EXISTS idx_deps_blocking ON task_dependencies(blocking_task_id)")

            self._execute_with_logging(cursor, """
                CREATE TABLE IF NOT EXISTS change_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL,
                    actor_id TEXT,
                    change_type TEXT NOT NULL
                        CHECK(change_type IN ('dependency_added', 'dependency_removed', 'parent_changed')),
                    old_value TEXT,
                    new_value TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            self._execute_with_logging(cursor, "CREATE INDEX IF NOT EXISTS idx_history_task ON change_history(task_id)")
            conn.commit()
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _status_value(status) -> str:
        normalized = normalize_task_status(status)
        if normalized is None:
            raise ValidationError(f"Invalid status '{status}'", field="status", value=status)
        return normalized.value

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> TaskRecord:
        return TaskRecord(
            id=row["id"],
            project_id=row["project_id"],
            parent_id=row["parent_id"],
            key=row["task_key"],
            title=row["title"] or "",
            status=row["status"],
            estimated_hours=row["estimated_hours"],
            actual_hours=row["actual_hours"],
            story_points=row["story_points"],
            position=row["position"] or 0,
        )

    @staticmethod
    def _row_to_edge(row: sqlite3.Row) -> DependencyEdge:
        return DependencyEdge(
            id=row["id"],
            dependent_task_id=row["dependent_task_id"],
            blocking_task_id=row["blocking_task_id"],
            type=row["dependency_type"],
            created_at=row["created_at"],
        )

    def _query_edges(self, where: str, params: Tuple) -> List[DependencyEdge]:
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            self._execute_with_logging(
                cursor,
                f"SELECT {_EDGE_COLUMNS} FROM task_dependencies d WHERE {where} ORDER BY d.id",
                params
            )
            return [self._row_to_edge(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Task operations (reference CRUD used to seed the store)
    # ------------------------------------------------------------------

    def create_task(
        self,
        project_id: int,
        title: str = "",
        key: Optional[str] = None,
        parent_id: Optional[int] = None,
        status: str = TaskStatus.TODO.value,
        estimated_hours: Optional[float] = None,
        actual_hours: Optional[float] = None,
        story_points: Optional[int] = None,
        position: int = 0
    ) -> int:
        """Create a task and return its ID."""
        status_value = self._status_value(status)
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            self._execute_with_logging(cursor, """
                INSERT INTO tasks (project_id, parent_id, task_key, title, status,
                                   estimated_hours, actual_hours, story_points, position)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (project_id, parent_id, key, title, status_value,
                  estimated_hours, actual_hours, story_points, position))
            task_id = cursor.lastrowid
            conn.commit()
            logger.info(f"Created task {task_id} in project {project_id}")
            return task_id
        finally:
            conn.close()

    def update_task_status(self, task_id: int, status: str) -> bool:
        """Set a task's status (aliases accepted)."""
        status_value = self._status_value(status)
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            self._execute_with_logging(
                cursor,
                "UPDATE tasks SET status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (status_value, task_id)
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def fetch_task(self, task_id: int) -> Optional[TaskRecord]:
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            self._execute_with_logging(cursor, f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,))
            row = cursor.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def fetch_tasks(self, task_ids: Iterable[int]) -> Dict[int, TaskRecord]:
        ids = sorted(set(task_ids))
        if not ids:
            return {}
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            placeholders = ",".join("?" * len(ids))
            self._execute_with_logging(
                cursor,
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id IN ({placeholders})",
                tuple(ids)
            )
            return {row["id"]: self._row_to_task(row) for row in cursor.fetchall()}
        finally:
            conn.close()

    def list_children(self, parent_id: int) -> List[TaskRecord]:
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            self._execute_with_logging(
                cursor,
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE parent_id = ? ORDER BY position, id",
                (parent_id,)
            )
            return [self._row_to_task(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def update_task_parent(
        self,
        task_id: int,
        parent_id: Optional[int],
        position: Optional[int] = None,
        actor_id: Optional[str] = None
    ) -> bool:
        """Re-parent a task and record parent_changed in the same transaction."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            self._execute_with_logging(cursor, "SELECT parent_id FROM tasks WHERE id = ?", (task_id,))
            current = cursor.fetchone()
            if current is None:
                return False
            old_parent_id = current["parent_id"]

            self._execute_with_logging(cursor, """
                UPDATE tasks
                SET parent_id = ?, position = COALESCE(?, position), updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            """, (parent_id, position, task_id))
            success = cursor.rowcount > 0
            if success:
                self._record_change(
                    cursor,
                    task_id,
                    actor_id,
                    "parent_changed",
                    old_value=str(old_parent_id) if old_parent_id is not None else None,
                    new_value=str(parent_id) if parent_id is not None else None,
                )
            conn.commit()
            return success
        finally:
            conn.close()

    def _record_change(
        self,
        cursor: sqlite3.Cursor,
        task_id: int,
        actor_id: Optional[str],
        change_type: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None
    ) -> None:
        """Append a change_history row on the caller's open transaction."""
        self._execute_with_logging(cursor, """
            INSERT INTO change_history (task_id, actor_id, change_type, old_value, new_value, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (task_id, actor_id, change_type, old_value, new_value, _utcnow()))

    def get_change_history(self, task_id: int) -> List[Dict[str, Any]]:
        """Change history of a task, oldest first."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            self._execute_with_logging(
                cursor,
                "SELECT * FROM change_history WHERE task_id = ? ORDER BY id",
                (task_id,)
            )
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Edge operations
    # ------------------------------------------------------------------

    def list_edges_for_project(self, project_id: int) -> List[DependencyEdge]:
        return self._query_edges(
            """
            EXISTS (SELECT 1 FROM tasks t WHERE t.id = d.dependent_task_id AND t.project_id = ?)
            AND EXISTS (SELECT 1 FROM tasks t WHERE t.id = d.blocking_task_id AND t.project_id = ?)
            """,
            (project_id, project_id)
        )

    def list_edges_for_task(self, task_id: int, direction: EdgeDirection = EdgeDirection.BOTH) -> List[DependencyEdge]:
        direction = EdgeDirection(direction)
        if direction == EdgeDirection.INCOMING:
            return self._query_edges("d.dependent_task_id = ?", (task_id,))
        if direction == EdgeDirection.OUTGOING:
            return self._query_edges("d.blocking_task_id = ?", (task_id,))
        return self._query_edges("(d.dependent_task_id = ? OR d.blocking_task_id = ?)", (task_id, task_id))

    def list_edges(
        self,
        task_id: Optional[int] = None,
        project_id: Optional[int] = None,
        dependency_type: Optional[DependencyType] = None
    ) -> List[DependencyEdge]:
        conditions = ["1 = 1"]
        params: List[Any] = []
        if task_id is not None:
            conditions.append("(d.dependent_task_id = ? OR d.blocking_task_id = ?)")
            params.extend([task_id, task_id])
        if project_id is not None:
            conditions.append("""
                EXISTS (SELECT 1 FROM tasks t
                        WHERE t.project_id = ? AND t.id IN (d.dependent_task_id, d.blocking_task_id))
            """)
            params.append(project_id)
        if dependency_type is not None:
            conditions.append("d.dependency_type = ?")
            params.append(DependencyType(dependency_type).canonical().value)
        return self._query_edges(" AND ".join(conditions), tuple(params))

    def find_edge(self, dependent_task_id: int, blocking_task_id: int, dependency_type: DependencyType) -> Optional[DependencyEdge]:
        edges = self._query_edges(
            "d.dependent_task_id = ? AND d.blocking_task_id = ? AND d.dependency_type = ?",
            (dependent_task_id, blocking_task_id, DependencyType(dependency_type).canonical().value)
        )
        return edges[0] if edges else None

    def get_edge(self, edge_id: int) -> Optional[DependencyEdge]:
        edges = self._query_edges("d.id = ?", (edge_id,))
        return edges[0] if edges else None

    def insert_edge(self, edge: DependencyEdge, actor_id: Optional[str] = None) -> DependencyEdge:
        """Insert an edge and record dependency_added on the dependent task in one transaction."""
        dependency_type = DependencyType(edge.type).canonical()
        created_at = _utcnow()
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            try:
                self._execute_with_logging(cursor, """
                    INSERT INTO task_dependencies (dependent_task_id, blocking_task_id, dependency_type, created_at)
                    VALUES (?, ?, ?, ?)
                """, (edge.dependent_task_id, edge.blocking_task_id, dependency_type.value, created_at))
            except sqlite3.IntegrityError as e:
                conn.rollback()
                if "UNIQUE" in str(e).upper():
                    raise DuplicateDependencyError(
                        edge.dependent_task_id, edge.blocking_task_id, dependency_type.value
                    ) from e
                raise DatabaseError(f"Database error: {e}", operation="insert", original_error=e) from e
            edge_id = cursor.lastrowid
            self._record_change(
                cursor,
                edge.dependent_task_id,
                actor_id,
                "dependency_added",
                new_value=f"{dependency_type.value}:{edge.blocking_task_id}"
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug(f"Inserted dependency {edge_id}: {edge.blocking_task_id} -> {edge.dependent_task_id}")
        return DependencyEdge(
            id=edge_id,
            dependent_task_id=edge.dependent_task_id,
            blocking_task_id=edge.blocking_task_id,
            type=dependency_type,
            created_at=created_at,
        )

    def delete_edge(self, edge_id: int, actor_id: Optional[str] = None) -> bool:
        """Delete an edge and record dependency_removed in the same transaction."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            self._execute_with_logging(
                cursor,
                f"SELECT {_EDGE_COLUMNS} FROM task_dependencies d WHERE d.id = ?",
                (edge_id,)
            )
            row = cursor.fetchone()
            if row is None:
                return False
            self._execute_with_logging(cursor, "DELETE FROM task_dependencies WHERE id = ?", (edge_id,))
            success = cursor.rowcount > 0
            if success:
                self._record_change(
                    cursor,
                    row["dependent_task_id"],
                    actor_id,
                    "dependency_removed",
                    old_value=f"{row['dependency_type']}:{row['blocking_task_id']}"
                )
            conn.commit()
            return success
        finally:
            conn.close()
