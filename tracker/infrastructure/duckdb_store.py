"""DuckDB-backed persistent repository.

Timestamps are stored as naive UTC ``TIMESTAMP`` values and handed back as
timezone-aware datetimes. Every public method holds the connection lock;
``atomic()`` wraps the outermost block in ``BEGIN``/``COMMIT``.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator

import duckdb

from tracker.core.errors import StorageError
from tracker.domain import STATUS_FLAGGED, Project, ProgressEntry, WorkItem

logger = logging.getLogger(__name__)

SCHEMA = (
    "CREATE SEQUENCE IF NOT EXISTS id_sequence START 1",
    "CREATE SEQUENCE IF NOT EXISTS entry_sequence START 1",
    """
    CREATE TABLE IF NOT EXISTS work_items (
        id VARCHAR NOT NULL,
        domain VARCHAR NOT NULL,
        title VARCHAR NOT NULL,
        status VARCHAR NOT NULL,
        description VARCHAR,
        resource_url VARCHAR,
        library VARCHAR,
        shelf VARCHAR,
        type VARCHAR,
        notes VARCHAR,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        id VARCHAR NOT NULL,
        domain VARCHAR NOT NULL,
        title VARCHAR NOT NULL,
        description VARCHAR,
        status VARCHAR NOT NULL,
        current_progress INTEGER NOT NULL,
        chapters INTEGER,
        current_chapter INTEGER,
        resource_url VARCHAR,
        source_work_item_id VARCHAR,
        flagged_to_user_id VARCHAR,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS project_assignees (
        project_id VARCHAR NOT NULL,
        user_id VARCHAR NOT NULL,
        position BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS progress_entries (
        id VARCHAR NOT NULL,
        project_id VARCHAR NOT NULL,
        author_id VARCHAR NOT NULL,
        created_at TIMESTAMP NOT NULL,
        sequence BIGINT NOT NULL,
        chapter_completed INTEGER,
        message VARCHAR,
        estimated_progress INTEGER,
        estimated_hours DECIMAL(18, 4),
        accomplishments VARCHAR,
        issues VARCHAR,
        objectives VARCHAR,
        notes VARCHAR
    )
    """,
)

WORK_ITEM_COLUMNS = (
    "id", "domain", "title", "status", "description", "resource_url",
    "library", "shelf", "type", "notes", "created_at", "updated_at",
)
PROJECT_COLUMNS = (
    "id", "domain", "title", "description", "status", "current_progress", "chapters",
    "current_chapter", "resource_url", "source_work_item_id", "flagged_to_user_id",
    "created_at", "updated_at",
)
ENTRY_COLUMNS = (
    "id", "project_id", "author_id", "created_at", "sequence", "chapter_completed", "message",
    "estimated_progress", "estimated_hours", "accomplishments", "issues", "objectives", "notes",
)


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return value


def _from_db(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class DuckDBProjectRepository:
    """Repository persisting every record in a single DuckDB database file."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        self._path = str(path)
        if self._path != ":memory:":
            Path(self._path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._depth = 0
        try:
            self._conn = duckdb.connect(self._path)
            for statement in SCHEMA:
                self._conn.execute(statement)
        except duckdb.Error as exc:
            raise StorageError("could not open the project database", path=self._path) from exc
        logger.info("Opened DuckDB project store at %s", self._path)

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _execute(self, sql: str, params: Iterable[Any] = ()) -> duckdb.DuckDBPyConnection:
        try:
            return self._conn.execute(sql, [_to_db(value) for value in params])
        except duckdb.Error as exc:
            raise StorageError("project database query failed", error=str(exc)) from exc

    def _rows(self, sql: str, params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        with self._lock:
            cursor = self._execute(sql, params)
            columns = [column[0] for column in cursor.description]
            return [
                {column: _from_db(value) for column, value in zip(columns, row)}
                for row in cursor.fetchall()
            ]

    def _scalar(self, sql: str, params: Iterable[Any] = ()) -> Any:
        with self._lock:
            row = self._execute(sql, params).fetchone()
            return row[0] if row else None

    def _insert(self, table: str, columns: tuple[str, ...], record: dict[str, Any]) -> None:
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({_placeholders(len(columns))})"
        with self._lock:
            self._execute(sql, [record[column] for column in columns])

    def _update(self, table: str, columns: tuple[str, ...], record: dict[str, Any]) -> None:
        assignments = ", ".join(f"{column} = ?" for column in columns if column != "id")
        params = [record[column] for column in columns if column != "id"] + [record["id"]]
        with self._lock:
            self._execute(f"UPDATE {table} SET {assignments} WHERE id = ?", params)

    def _delete(self, table: str, key: str, value: str) -> int:
        with self._lock:
            count = self._scalar(f"SELECT count(*) FROM {table} WHERE {key} = ?", [value])
            if count:
                self._execute(f"DELETE FROM {table} WHERE {key} = ?", [value])
            return int(count or 0)

    # ------------------------------------------------------------------
    # transactions
    # ------------------------------------------------------------------
    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return
            self._execute("BEGIN TRANSACTION")
            self._depth = 1
            try:
                yield
            except BaseException:
                self._depth = 0
                self._rollback()
                raise
            self._depth = 0
            try:
                self._execute("COMMIT")
            except StorageError:
                self._rollback()
                raise

    def _rollback(self) -> None:
        try:
            self._conn.execute("ROLLBACK")
        except duckdb.Error:
            logger.exception("Rollback failed")

    def next_id(self, prefix: str) -> str:
        value = self._scalar("SELECT nextval('id_sequence')")
        return f"{prefix}-{int(value):05d}"

    def next_sequence(self) -> int:
        return int(self._scalar("SELECT nextval('entry_sequence')"))

    # ------------------------------------------------------------------
    # work items
    # ------------------------------------------------------------------
    def add_work_item(self, item: WorkItem) -> None:
        self._insert("work_items", WORK_ITEM_COLUMNS, asdict(item))

    def get_work_item(self, item_id: str) -> WorkItem | None:
        rows = self._rows(f"SELECT {', '.join(WORK_ITEM_COLUMNS)} FROM work_items WHERE id = ?", [item_id])
        return WorkItem(**rows[0]) if rows else None

    def save_work_item(self, item: WorkItem) -> None:
        self._update("work_items", WORK_ITEM_COLUMNS, asdict(item))

    def delete_work_item(self, item_id: str) -> bool:
        return self._delete("work_items", "id", item_id) > 0

    def list_work_items(self, domain: str, statuses: Iterable[str], limit: int) -> list[WorkItem]:
        wanted = list(statuses)
        if not wanted:
            return []
        rows = self._rows(
            f"SELECT {', '.join(WORK_ITEM_COLUMNS)} FROM work_items "
            f"WHERE domain = ? AND status IN ({_placeholders(len(wanted))}) "
            f"ORDER BY lower(title), id LIMIT {int(limit)}",
            [domain, *wanted],
        )
        return [WorkItem(**row) for row in rows]

    # ------------------------------------------------------------------
    # projects
    # ------------------------------------------------------------------
    def add_project(self, project: Project) -> None:
        self._insert("projects", PROJECT_COLUMNS, asdict(project))

    def get_project(self, project_id: str) -> Project | None:
        rows = self._rows(f"SELECT {', '.join(PROJECT_COLUMNS)} FROM projects WHERE id = ?", [project_id])
        return Project(**rows[0]) if rows else None

    def save_project(self, project: Project) -> None:
        self._update("projects", PROJECT_COLUMNS, asdict(project))

    def delete_project(self, project_id: str) -> bool:
        with self.atomic():
            deleted = self._delete("projects", "id", project_id)
            if deleted:
                self._delete("project_assignees", "project_id", project_id)
                self._delete("progress_entries", "project_id", project_id)
        return deleted > 0

    def list_projects(
        self,
        domain: str,
        statuses: Iterable[str],
        *,
        user_id: str | None = None,
    ) -> list[Project]:
        wanted = list(statuses)
        if not wanted:
            return []
        sql = (
            f"SELECT {', '.join('p.' + column for column in PROJECT_COLUMNS)} FROM projects p "
            f"WHERE p.domain = ? AND p.status IN ({_placeholders(len(wanted))})"
        )
        params: list[Any] = [domain, *wanted]
        if user_id is not None:
            sql += (
                " AND (EXISTS (SELECT 1 FROM project_assignees a WHERE a.project_id = p.id AND a.user_id = ?)"
                " OR (p.status = ? AND p.flagged_to_user_id = ?))"
            )
            params.extend([user_id, STATUS_FLAGGED, user_id])
        sql += " ORDER BY p.created_at, p.id"
        return [Project(**row) for row in self._rows(sql, params)]

    def count_projects_from(self, work_item_id: str) -> int:
        return int(self._scalar("SELECT count(*) FROM projects WHERE source_work_item_id = ?", [work_item_id]))

    # ------------------------------------------------------------------
    # assignments
    # ------------------------------------------------------------------
    def add_assignee(self, project_id: str, user_id: str) -> bool:
        with self.atomic():
            exists = self._scalar(
                "SELECT count(*) FROM project_assignees WHERE project_id = ? AND user_id = ?",
                [project_id, user_id],
            )
            if exists:
                return False
            position = self._scalar(
                "SELECT coalesce(max(position), 0) + 1 FROM project_assignees WHERE project_id = ?",
                [project_id],
            )
            self._execute(
                "INSERT INTO project_assignees (project_id, user_id, position) VALUES (?, ?, ?)",
                [project_id, user_id, position],
            )
            return True

    def list_assignees(self, project_id: str) -> list[str]:
        rows = self._rows(
            "SELECT user_id FROM project_assignees WHERE project_id = ? ORDER BY position",
            [project_id],
        )
        return [row["user_id"] for row in rows]

    # ------------------------------------------------------------------
    # ledger
    # ------------------------------------------------------------------
    def add_entry(self, entry: ProgressEntry) -> None:
        self._insert("progress_entries", ENTRY_COLUMNS, asdict(entry))

    def get_entry(self, entry_id: str) -> ProgressEntry | None:
        rows = self._rows(f"SELECT {', '.join(ENTRY_COLUMNS)} FROM progress_entries WHERE id = ?", [entry_id])
        return ProgressEntry(**rows[0]) if rows else None

    def delete_entry(self, entry_id: str) -> bool:
        return self._delete("progress_entries", "id", entry_id) > 0

    def list_entries(self, project_id: str) -> list[ProgressEntry]:
        rows = self._rows(
            f"SELECT {', '.join(ENTRY_COLUMNS)} FROM progress_entries WHERE project_id = ? "
            "ORDER BY created_at DESC, sequence DESC",
            [project_id],
        )
        return [ProgressEntry(**row) for row in rows]

    def latest_entry(self, project_id: str) -> ProgressEntry | None:
        rows = self._rows(
            f"SELECT {', '.join(ENTRY_COLUMNS)} FROM progress_entries WHERE project_id = ? "
            "ORDER BY created_at DESC, sequence DESC LIMIT 1",
            [project_id],
        )
        return ProgressEntry(**rows[0]) if rows else None

    def list_domain_entries(
        self,
        domain: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> list[ProgressEntry]:
        columns = ", ".join("e." + column for column in ENTRY_COLUMNS)
        rows = self._rows(
            f"SELECT {columns} FROM progress_entries e JOIN projects p ON p.id = e.project_id "
            "WHERE p.domain = ? AND e.created_at >= ? AND e.created_at <= ? "
            f"ORDER BY e.created_at DESC, e.sequence DESC LIMIT {int(limit)}",
            [domain, start, end],
        )
        return [ProgressEntry(**row) for row in rows]

    def reset(self) -> None:
        with self._lock:
            for table in ("progress_entries", "project_assignees", "projects", "work_items"):
                self._execute(f"DELETE FROM {table}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()
