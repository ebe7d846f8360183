"""Persistence contract for projects, ledgers, assignments and work items."""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import ContextManager, Iterable, Iterator, Protocol

from tracker.domain import STATUS_FLAGGED, Project, ProgressEntry, WorkItem


class ProjectRepository(Protocol):
    """Storage operations used by the application services.

    Every mutating use case runs inside ``atomic()``; nested blocks join the
    outermost one so a project and its ledger never appear half-updated.
    """

    def atomic(self) -> ContextManager[None]: ...

    def next_id(self, prefix: str) -> str: ...

    def next_sequence(self) -> int: ...

    def add_work_item(self, item: WorkItem) -> None: ...

    def get_work_item(self, item_id: str) -> WorkItem | None: ...

    def save_work_item(self, item: WorkItem) -> None: ...

    def delete_work_item(self, item_id: str) -> bool: ...

    def list_work_items(self, domain: str, statuses: Iterable[str], limit: int) -> list[WorkItem]: ...

    def add_project(self, project: Project) -> None: ...

    def get_project(self, project_id: str) -> Project | None: ...

    def save_project(self, project: Project) -> None: ...

    def delete_project(self, project_id: str) -> bool: ...

    def list_projects(
        self,
        domain: str,
        statuses: Iterable[str],
        *,
        user_id: str | None = None,
    ) -> list[Project]: ...

    def count_projects_from(self, work_item_id: str) -> int: ...

    def add_assignee(self, project_id: str, user_id: str) -> bool: ...

    def list_assignees(self, project_id: str) -> list[str]: ...

    def add_entry(self, entry: ProgressEntry) -> None: ...

    def get_entry(self, entry_id: str) -> ProgressEntry | None: ...

    def delete_entry(self, entry_id: str) -> bool: ...

    def list_entries(self, project_id: str) -> list[ProgressEntry]: ...

    def latest_entry(self, project_id: str) -> ProgressEntry | None: ...

    def list_domain_entries(
        self,
        domain: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> list[ProgressEntry]: ...

    def reset(self) -> None: ...

_MISSING = object()


class InMemoryProjectRepository:
    """Simple in-memory repository for fast iteration and tests.

    Stored records are never mutated in place, so ``atomic()`` keeps an undo
    journal of the keys a block touches instead of copying the whole store.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._undo: dict[tuple[str, str], object] | None = None
        self._work_items: dict[str, WorkItem] = {}
        self._projects: dict[str, Project] = {}
        self._assignees: dict[str, list[str]] = {}
        self._entries: dict[str, ProgressEntry] = {}
        self._counters: dict[str, int] = {}
        self._sequence = 0

    # ------------------------------------------------------------------
    # transactions
    # ------------------------------------------------------------------
    def _touch(self, table: str, key: str) -> None:
        """Remember the value ``key`` held before the current block changed it."""

        if self._undo is None or (table, key) in self._undo:
            return
        value = getattr(self, table).get(key, _MISSING)
        if isinstance(value, list):
            value = list(value)
        self._undo[(table, key)] = value

    def _rollback(self, counters: dict[str, int], sequence: int) -> None:
        for (table, key), value in (self._undo or {}).items():
            store = getattr(self, table)
            if value is _MISSING:
                store.pop(key, None)
            else:
                store[key] = value
        self._counters = counters
        self._sequence = sequence

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
            counters, sequence = dict(self._counters), self._sequence
            self._undo = {}
            self._depth = 1
            try:
                yield
            except BaseException:
                self._rollback(counters, sequence)
                raise
            finally:
                self._undo = None
                self._depth = 0

    def next_id(self, prefix: str) -> str:
        with self._lock:
            self._counters[prefix] = self._counters.get(prefix, 0) + 1
            return f"{prefix}-{self._counters[prefix]:05d}"

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    # ------------------------------------------------------------------
    # work items
    # ------------------------------------------------------------------
    def add_work_item(self, item: WorkItem) -> None:
        with self._lock:
            self._touch("_work_items", item.id)
            self._work_items[item.id] = replace(item)

    def get_work_item(self, item_id: str) -> WorkItem | None:
        item = self._work_items.get(item_id)
        return replace(item) if item else None

    def save_work_item(self, item: WorkItem) -> None:
        with self._lock:
            self._touch("_work_items", item.id)
            self._work_items[item.id] = replace(item)

    def delete_work_item(self, item_id: str) -> bool:
        with self._lock:
            self._touch("_work_items", item_id)
            return self._work_items.pop(item_id, None) is not None

    def list_work_items(self, domain: str, statuses: Iterable[str], limit: int) -> list[WorkItem]:
        wanted = set(statuses)
        items = [
            replace(item)
            for item in self._work_items.values()
            if item.domain == domain and item.status in wanted
        ]
        items.sort(key=lambda item: (item.title.lower(), item.id))
        return items[:limit]

    # ------------------------------------------------------------------
    # projects
    # ------------------------------------------------------------------
    def add_project(self, project: Project) -> None:
        with self._lock:
            self._touch("_projects", project.id)
            self._touch("_assignees", project.id)
            self._projects[project.id] = replace(project)
            self._assignees.setdefault(project.id, [])

    def get_project(self, project_id: str) -> Project | None:
        project = self._projects.get(project_id)
        return replace(project) if project else None

    def save_project(self, project: Project) -> None:
        with self._lock:
            self._touch("_projects", project.id)
            self._projects[project.id] = replace(project)

    def delete_project(self, project_id: str) -> bool:
        with self._lock:
            if project_id not in self._projects:
                return False
            self._touch("_projects", project_id)
            self._touch("_assignees", project_id)
            del self._projects[project_id]
            self._assignees.pop(project_id, None)
            for entry_id in [key for key, entry in self._entries.items() if entry.project_id == project_id]:
                self._touch("_entries", entry_id)
                del self._entries[entry_id]
            return True

    def list_projects(
        self,
        domain: str,
        statuses: Iterable[str],
        *,
        user_id: str | None = None,
    ) -> list[Project]:
        wanted = set(statuses)
        results: list[Project] = []
        for project in self._projects.values():
            if project.domain != domain or project.status not in wanted:
                continue
            if user_id is not None:
                assigned = user_id in self._assignees.get(project.id, [])
                flagged_to = project.status == STATUS_FLAGGED and project.flagged_to_user_id == user_id
                if not (assigned or flagged_to):
                    continue
            results.append(replace(project))
        return results

    def count_projects_from(self, work_item_id: str) -> int:
        return sum(1 for project in self._projects.values() if project.source_work_item_id == work_item_id)

    # ------------------------------------------------------------------
    # assignments
    # ------------------------------------------------------------------
    def add_assignee(self, project_id: str, user_id: str) -> bool:
        with self._lock:
            assignees = self._assignees.get(project_id, [])
            if user_id in assignees:
                return False
            self._touch("_assignees", project_id)
            self._assignees[project_id] = [*assignees, user_id]
            return True

    def list_assignees(self, project_id: str) -> list[str]:
        return list(self._assignees.get(project_id, []))

    # ------------------------------------------------------------------
    # ledger
    # ------------------------------------------------------------------
    def add_entry(self, entry: ProgressEntry) -> None:
        with self._lock:
            self._touch("_entries", entry.id)
            self._entries[entry.id] = replace(entry)

    def get_entry(self, entry_id: str) -> ProgressEntry | None:
        entry = self._entries.get(entry_id)
        return replace(entry) if entry else None

    def delete_entry(self, entry_id: str) -> bool:
        with self._lock:
            self._touch("_entries", entry_id)
            return self._entries.pop(entry_id, None) is not None

    def list_entries(self, project_id: str) -> list[ProgressEntry]:
        entries = [replace(entry) for entry in self._entries.values() if entry.project_id == project_id]
        entries.sort(key=lambda entry: entry.ordering_key, reverse=True)
        return entries

    def latest_entry(self, project_id: str) -> ProgressEntry | None:
        entries = self.list_entries(project_id)
        return entries[0] if entries else None

    def list_domain_entries(
        self,
        domain: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> list[ProgressEntry]:
        project_ids = {key for key, project in self._projects.items() if project.domain == domain}
        entries = [
            replace(entry)
            for entry in self._entries.values()
            if entry.project_id in project_ids and start <= entry.created_at <= end
        ]
        entries.sort(key=lambda entry: entry.ordering_key, reverse=True)
        return entries[:limit]

    def reset(self) -> None:
        with self._lock:
            self._work_items.clear()
            self._projects.clear()
            self._assignees.clear()
            self._entries.clear()
            self._counters.clear()
            self._sequence = 0
