import math
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from config import DATABASE_PATH
from errors import TaskAlreadyCompleted, TaskNotFound
from models import PaginatedTasks, PaginationMeta, Task

MAX_PAGE_SIZE = 50

# Columns PATCH may touch; anything else passed to update_task_db is ignored
UPDATABLE_COLUMNS = ("title", "description", "category", "priority", "suggested_deadline", "is_completed")


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _enum_value(value):
    """Store enums by their plain string value."""
    return getattr(value, "value", value)


def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        category=row["category"],
        priority=row["priority"],
        suggested_deadline=row["suggested_deadline"],
        is_completed=bool(row["is_completed"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def create_task_db(
    task_id: str,
    title: str,
    description: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    suggested_deadline: Optional[str] = None,
) -> Task:
    """Insert a new, not yet completed task and return it."""
    now = _now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO tasks (id, title, description, category, priority,
                               suggested_deadline, is_completed, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (task_id, title, description, _enum_value(category), _enum_value(priority),
             suggested_deadline, now, now)
        )
        conn.commit()
    return get_task_db(task_id)


def get_task_db(task_id: str) -> Task:
    """Fetch a task by id. Raises TaskNotFound if it does not exist."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    if not row:
        raise TaskNotFound(task_id)
    return _row_to_task(row)


def list_tasks_db(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = "newest",
) -> tuple[list[Task], int]:
    """
    Return one page of tasks plus the total number of matching tasks.
    status is COMPLETED or PENDING; sort is newest or oldest (by created_at).
    """
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    clauses = []
    params: list = []
    if search:
        clauses.append("(title LIKE ? COLLATE NOCASE OR description LIKE ? COLLATE NOCASE)")
        params.extend([f"%{search}%", f"%{search}%"])
    if status == "COMPLETED":
        clauses.append("is_completed = 1")
    elif status == "PENDING":
        clauses.append("is_completed = 0")
    if priority:
        clauses.append("priority = ?")
        params.append(_enum_value(priority))
    if category:
        clauses.append("category = ?")
        params.append(_enum_value(category))

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    order = "ASC" if sort == "oldest" else "DESC"

    with get_db() as conn:
        total = conn.execute(f"SELECT COUNT(*) FROM tasks {where}", params).fetchone()[0]
        rows = conn.execute(
            f"SELECT * FROM tasks {where} ORDER BY created_at {order}, rowid {order} LIMIT ? OFFSET ?",
            params + [limit, (page - 1) * limit]
        ).fetchall()
    return [_row_to_task(row) for row in rows], total


def paginate(items: list[Task], total: int, page: int, limit: int) -> PaginatedTasks:
    """Wrap a page of tasks with pagination metadata."""
    total_pages = math.ceil(total / limit) if limit else 0
    return PaginatedTasks(
        data=items,
        meta=PaginationMeta(
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        ),
    )


def update_task_db(task_id: str, **updates) -> Task:
    """
    Update the given fields of a task.
    Only keys present in updates are changed; pass None explicitly to clear
    a nullable column. Raises TaskNotFound for unknown ids.
    """
    get_task_db(task_id)

    columns = [key for key in updates if key in UPDATABLE_COLUMNS]
    if columns:
        values = []
        for key in columns:
            value = _enum_value(updates[key])
            if key == "is_completed":
                value = 1 if value else 0
            values.append(value)
        assignments = ", ".join(f"{key} = ?" for key in columns)
        with get_db() as conn:
            conn.execute(
                f"UPDATE tasks SET {assignments}, updated_at = ? WHERE id = ?",
                values + [_now(), task_id]
            )
            conn.commit()
    return get_task_db(task_id)


def complete_task_db(task_id: str) -> Task:
    """Mark a task completed. Raises TaskAlreadyCompleted if it already is."""
    task = get_task_db(task_id)
    if task.is_completed:
        raise TaskAlreadyCompleted()
    return update_task_db(task_id, is_completed=True)


def delete_task_db(task_id: str) -> None:
    with get_db() as conn:
        deleted = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,)).rowcount
        conn.commit()
    if deleted == 0:
        raise TaskNotFound(task_id)
