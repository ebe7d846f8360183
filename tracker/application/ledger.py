"""Append-only progress ledger.

Entries are never edited. Appending or deleting one recomputes the parent
project's progress from whichever entry is now the latest, inside the same
atomic block as the ledger change.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import Any, Callable

from tracker.application.projects import ProjectStore
from tracker.core.errors import NotFoundError, ValidationError
from tracker.core.schema import entry_view, parse_payload
from tracker.domain import ProgressEntry, get_profile, utcnow
from tracker.infrastructure import ProjectRepository, get_user_directory

logger = logging.getLogger(__name__)

FEED_START = date(2021, 1, 1)


class ProgressLedger:
    def __init__(
        self,
        repository: ProjectRepository,
        projects: ProjectStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        feed_limit: int = 200,
    ) -> None:
        self._repository = repository
        self._projects = projects
        self._clock = clock
        self._feed_limit = feed_limit

    def append_entry(self, domain: str, project_id: str, payload: dict[str, Any], author_id: str) -> str:
        profile = get_profile(domain)
        parsed = parse_payload(profile.entry_model, payload)
        with self._repository.atomic():
            project = self._projects.get(domain, project_id)
            entry = profile.make_entry(
                project,
                parsed,
                entry_id=self._repository.next_id("update"),
                author_id=author_id,
                created_at=self._clock(),
                sequence=self._repository.next_sequence(),
            )
            self._repository.add_entry(entry)
            project = self._projects.refresh(project)
        logger.info(
            "Appended progress update %s to project %s by %s (progress=%s, status=%s)",
            entry.id,
            project.id,
            author_id,
            project.current_progress,
            project.status,
        )
        return entry.id

    def delete_entry(
        self,
        domain: str,
        entry_id: str,
        *,
        actor_id: str,
        project_id: str | None = None,
    ) -> None:
        with self._repository.atomic():
            entry = self._repository.get_entry(entry_id) if entry_id else None
            if entry is None or (project_id and entry.project_id != project_id):
                raise NotFoundError("progress update", entry_id)
            project = self._projects.get(domain, entry.project_id)
            self._repository.delete_entry(entry.id)
            project = self._projects.refresh(project)
        logger.info(
            "Deleted progress update %s from project %s by %s (progress=%s, status=%s)",
            entry_id,
            project.id,
            actor_id,
            project.current_progress,
            project.status,
        )

    def list_entries(self, domain: str, project_id: str) -> list[ProgressEntry]:
        """Entries of one project, most recent first."""

        project = self._projects.get(domain, project_id)
        return self._repository.list_entries(project.id)

    def entries_view(self, domain: str, project_id: str) -> list[dict[str, Any]]:
        entries = self.list_entries(domain, project_id)
        authors = {
            user.uuid: user.as_dict()
            for user in get_user_directory().resolve(sorted({entry.author_id for entry in entries}))
        }
        views: list[dict[str, Any]] = []
        for entry in entries:
            view = entry_view(entry)
            view["author"] = authors.get(entry.author_id, {"uuid": entry.author_id})
            views.append(view)
        return views

    def feed(self, domain: str, start: date | None = None, end: date | None = None) -> list[dict[str, Any]]:
        """Recent entries across a whole domain, annotated with their project."""

        get_profile(domain)
        start = start or FEED_START
        end = end or self._clock().date()
        if end < start:
            raise ValidationError("The feed range ends before it starts.", start=start.isoformat(), end=end.isoformat())
        entries = self._repository.list_domain_entries(
            domain,
            datetime.combine(start, time.min, tzinfo=timezone.utc),
            datetime.combine(end, time.max, tzinfo=timezone.utc),
            self._feed_limit,
        )
        directory = get_user_directory()
        authors = {user.uuid: user.as_dict() for user in directory.resolve(sorted({e.author_id for e in entries}))}
        titles: dict[str, str | None] = {}
        items: list[dict[str, Any]] = []
        for entry in entries:
            if entry.project_id not in titles:
                project = self._repository.get_project(entry.project_id)
                titles[entry.project_id] = project.title if project else None
            view = entry_view(entry)
            view["author"] = authors.get(entry.author_id, {"uuid": entry.author_id})
            view["project"] = {"id": entry.project_id, "title": titles[entry.project_id]}
            items.append(view)
        return items
