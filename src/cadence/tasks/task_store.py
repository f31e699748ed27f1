# src/cadence/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
import uuid
from pathlib import Path
from typing import Any

from ..core.models import CustomCategory, Priority, Task, TaskCategory

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite store for tasks and custom categories.

    Serves as the task-store and category-directory collaborator of the analysis
    service (recent completed tasks, correction bookkeeping, category lookup).

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    notes TEXT,
                    due_at REAL,
                    priority TEXT NOT NULL DEFAULT 'none',
                    category TEXT NOT NULL DEFAULT 'uncategorized',
                    custom_category_id TEXT,
                    estimated_minutes INTEGER,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    completed_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS custom_categories (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    color_hex TEXT NOT NULL DEFAULT '#808080',
                    icon_name TEXT NOT NULL DEFAULT 'tag.fill',
                    created_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("notes", "TEXT")
            add_col("due_at", "REAL")
            add_col("priority", "TEXT NOT NULL DEFAULT 'none'")
            add_col("category", "TEXT NOT NULL DEFAULT 'uncategorized'")
            add_col("custom_category_id", "TEXT")
            add_col("estimated_minutes", "INTEGER")
            add_col("is_completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("completed_at", "REAL")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_completed ON tasks(is_completed, completed_at)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        try:
            priority = Priority(row["priority"])
        except ValueError:
            priority = Priority.NONE
        try:
            category = TaskCategory(row["category"])
        except ValueError:
            category = TaskCategory.UNCATEGORIZED

        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            notes=row["notes"],
            due_at=float(row["due_at"]) if row["due_at"] is not None else None,
            priority=priority,
            category=category,
            custom_category_id=row["custom_category_id"],
            estimated_minutes=int(row["estimated_minutes"]) if row["estimated_minutes"] is not None else None,
            is_completed=bool(row["is_completed"]),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            created_at=float(row["created_at"] or 0.0),
        )

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> CustomCategory:
        return CustomCategory(
            id=str(row["id"]),
            name=str(row["name"]),
            color_hex=str(row["color_hex"] or "#808080"),
            icon_name=str(row["icon_name"] or "tag.fill"),
        )

    # ---- tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        notes: str | None = None,
        due_at: float | None = None,
        priority: Priority = Priority.NONE,
        category: TaskCategory = TaskCategory.UNCATEGORIZED,
        custom_category_id: str | None = None,
        estimated_minutes: int | None = None,
    ) -> Task:
        if not title or not title.strip():
            raise ValueError("title is required")

        now = time.time()
        task = Task(
            id=str(uuid.uuid4()),
            title=title.strip(),
            notes=notes,
            due_at=due_at,
            priority=priority,
            category=category,
            custom_category_id=custom_category_id,
            estimated_minutes=estimated_minutes,
            created_at=now,
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, title, notes, due_at, priority, category, custom_category_id,
                    estimated_minutes, is_completed, completed_at, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, NULL, ?, ?)
                """,
                (
                    task.id,
                    task.title,
                    task.notes,
                    task.due_at,
                    task.priority.value,
                    task.category.value,
                    task.custom_category_id,
                    task.estimated_minutes,
                    now,
                    now,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug("Task added id=%s priority=%s category=%s", task.id, task.priority, task.category)
        return task

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return self._row_to_task(row) if row is not None else None
        finally:
            conn.close()

    def list_open_tasks(self, limit: int = 50) -> list[Task]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE is_completed = 0
                ORDER BY COALESCE(due_at, created_at) ASC, created_at ASC
                    LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def list_recent_completed(self, limit: int = 10) -> list[Task]:
        """Completed tasks, most recently completed first."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE is_completed = 1
                ORDER BY completed_at DESC
                    LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def complete_task(self, task_id: str, *, completed_at: float | None = None) -> Task | None:
        ts = time.time() if completed_at is None else float(completed_at)
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE tasks SET is_completed = 1, completed_at = ?, updated_at = ? WHERE id = ?",
                (ts, ts, task_id),
            )
            conn.commit()
        finally:
            conn.close()
        return self.get_task(task_id)

    def update_task_fields(
        self,
        task_id: str,
        *,
        category: TaskCategory | None = None,
        custom_category_id: str | None = None,
        priority: Priority | None = None,
        estimated_minutes: int | None = None,
    ) -> None:
        fields: list[str] = []
        params: list[Any] = []

        if category is not None:
            fields.append("category = ?")
            params.append(category.value)

        if custom_category_id is not None:
            # Empty string clears the custom category.
            fields.append("custom_category_id = ?")
            params.append(custom_category_id or None)

        if priority is not None:
            fields.append("priority = ?")
            params.append(priority.value)

        if estimated_minutes is not None:
            fields.append("estimated_minutes = ?")
            params.append(int(estimated_minutes))

        if not fields:
            return

        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(task_id)

        sql = f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?"

        conn = self._get_conn()
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    # ---- custom categories ----

    def add_category(self, name: str, *, color_hex: str = "#808080", icon_name: str = "tag.fill") -> CustomCategory:
        clean = (name or "").strip()
        if not clean:
            raise ValueError("category name is required")

        existing = self.get_category_by_name(clean)
        if existing is not None:
            return existing

        cat = CustomCategory(id=str(uuid.uuid4()), name=clean, color_hex=color_hex, icon_name=icon_name)
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO custom_categories(id, name, color_hex, icon_name, created_at) VALUES (?, ?, ?, ?, ?)",
                (cat.id, cat.name, cat.color_hex, cat.icon_name, time.time()),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Custom category added name=%s", cat.name)
        return cat

    def list_categories(self) -> list[CustomCategory]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM custom_categories ORDER BY created_at ASC").fetchall()
            return [self._row_to_category(r) for r in rows]
        finally:
            conn.close()

    def get_category(self, category_id: str) -> CustomCategory | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM custom_categories WHERE id = ?", (category_id,)).fetchone()
            return self._row_to_category(row) if row is not None else None
        finally:
            conn.close()

    def get_category_by_name(self, name: str) -> CustomCategory | None:
        """Exact, case-sensitive name lookup."""
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM custom_categories WHERE name = ?", (name,)).fetchone()
            return self._row_to_category(row) if row is not None else None
        finally:
            conn.close()

    def delete_category(self, category_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("UPDATE tasks SET custom_category_id = NULL WHERE custom_category_id = ?", (category_id,))
            conn.execute("DELETE FROM custom_categories WHERE id = ?", (category_id,))
            conn.commit()
        finally:
            conn.close()
