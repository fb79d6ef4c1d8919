"""
tasks/store.py -- SQLAlchemy-backed persistence layer for tasks.

Uses SQLAlchemy Core (not ORM) so the dataclass in tasks/models.py remains
the authoritative domain representation.

Pattern: Repository + Data Mapper. TaskStore is the repository; _row_to_task
is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL. Search terms
are passed as LIKE parameters with %, _ and the escape character escaped, so
user input can only ever match literally.

Ownership is not decided here. List/search accept an owner_id filter that the
route sets from the caller's identity (None = admin view of everything);
single-task reads return the task and the access guard checks its user_id.

Usage:
    store = TaskStore("sqlite:///:memory:")
    task_id = store.create_task(Task(user_id=1, title="Patch servers"))
    store.search_tasks("patch", owner_id=1)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, or_
from sqlalchemy.engine import Engine

from core.db import make_engine, retry_transient
from tasks.models import Task

# Columns a caller may change through update_task(). user_id is deliberately
# absent: ownership is fixed at creation.
_MUTABLE_FIELDS = frozenset({"title", "description", "completed"})

_LIKE_ESCAPE = "\\"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("title", String(200), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("completed", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _like_pattern(query: str) -> str:
    """Wrap query in % wildcards after escaping LIKE metacharacters."""
    escaped = (
        query.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2).replace("%", _LIKE_ESCAPE + "%").replace("_", _LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    """Repository for Task entities."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    @retry_transient
    def create_task(self, task: Task) -> int:
        """Insert a new task and return its assigned database ID."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.insert().values(
                    user_id=task.user_id,
                    title=task.title,
                    description=task.description,
                    completed=task.completed,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    @retry_transient
    def get_task(self, task_id: int) -> Optional[Task]:
        """Return the task or None. Callers must run the ownership check before using it."""
        with self.engine.connect() as conn:
            row = conn.execute(_tasks.select().where(_tasks.c.id == task_id)).fetchone()
        return _row_to_task(row) if row is not None else None

    @retry_transient
    def list_tasks(self, owner_id: Optional[int] = None) -> list[Task]:
        """Return tasks ordered by id. owner_id=None returns every user's tasks."""
        stmt = _tasks.select().order_by(_tasks.c.id)
        if owner_id is not None:
            stmt = stmt.where(_tasks.c.user_id == owner_id)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_task(r) for r in rows]

    @retry_transient
    def search_tasks(self, query: str, owner_id: Optional[int] = None) -> list[Task]:
        """Case-insensitive substring match on title or description.

        An empty query matches every task visible to owner_id.
        """
        pattern = _like_pattern(query)
        stmt = (
            _tasks.select()
            .where(
                or_(
                    _tasks.c.title.ilike(pattern, escape=_LIKE_ESCAPE),
                    _tasks.c.description.ilike(pattern, escape=_LIKE_ESCAPE),
                )
            )
            .order_by(_tasks.c.id)
        )
        if owner_id is not None:
            stmt = stmt.where(_tasks.c.user_id == owner_id)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_task(r) for r in rows]

    @retry_transient
    def update_task(self, task_id: int, **fields) -> bool:
        """Update mutable fields on an existing task.

        Accepted fields: title, description, completed. Anything else raises
        ValueError -- fail fast rather than silently dropping input.

        Returns True if a row was updated, False if task_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {sorted(unknown)!r}")
        if not fields:
            return self.get_task(task_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.update().where(_tasks.c.id == task_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    @retry_transient
    def delete_task(self, task_id: int) -> bool:
        """Delete one task. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.id == task_id))
            conn.commit()
        return result.rowcount > 0

    @retry_transient
    def delete_tasks_for_user(self, user_id: int) -> int:
        """Delete every task owned by user_id. Returns the number removed.

        Called when an admin deletes a user so no orphaned tasks remain.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.user_id == user_id))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        description=row.description or "",
        completed=bool(row.completed),
        created_at=row.created_at,
    )
