"""Project records and the merged views exposed to callers."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

from tracker.core import status as status_rules
from tracker.core.errors import NotFoundError, ValidationError
from tracker.core.schema import ProjectFields, ProjectPatch, entry_view, parse_payload, project_view, sparse
from tracker.domain import (
    STATUS_COMPLETED,
    STATUS_FLAGGED,
    STATUS_IN_PROGRESS,
    STATUS_READY,
    ZERO_READING,
    Project,
    get_profile,
    utcnow,
)
from tracker.infrastructure import ProjectRepository, get_user_directory

logger = logging.getLogger(__name__)

LIST_VIEWS: dict[str, tuple[str, ...]] = {
    "current": (STATUS_READY, STATUS_IN_PROGRESS),
    "flagged": (STATUS_FLAGGED,),
    "completed": (STATUS_COMPLETED,),
    "recentlycompleted": (STATUS_COMPLETED,),
}


class ProjectStore:
    """Owns project records and composes them with ledger and assignment data."""

    def __init__(
        self,
        repository: ProjectRepository,
        *,
        clock: Callable[[], datetime] = utcnow,
        recent_completed_limit: int = 2,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._recent_completed_limit = recent_completed_limit

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------
    def get(self, domain: str, project_id: str) -> Project:
        get_profile(domain)
        project = self._repository.get_project(project_id) if project_id else None
        if project is None or project.domain != domain:
            raise NotFoundError("project", project_id)
        return project

    def detail(self, domain: str, project_id: str) -> dict[str, Any]:
        project = self.get(domain, project_id)
        directory = get_user_directory()
        view = project_view(project)
        view["assignees"] = [user.as_dict() for user in directory.resolve(self._repository.list_assignees(project.id))]
        flagged = directory.resolve([project.flagged_to_user_id]) if project.flagged_to_user_id else []
        view["flaggedTo"] = flagged[0].as_dict() if flagged else None
        return view

    def list(self, domain: str, view: str, *, user_id: str | None = None) -> list[dict[str, Any]]:
        get_profile(domain)
        statuses = LIST_VIEWS.get(view)
        if statuses is None:
            raise ValidationError("Unknown project listing.", view=view, supported=sorted(LIST_VIEWS))
        projects = self._repository.list_projects(domain, statuses, user_id=user_id)
        if view in {"completed", "recentlycompleted"}:
            projects.sort(key=lambda project: project.updated_at, reverse=True)
        if view == "recentlycompleted":
            projects = projects[: self._recent_completed_limit]

        results: list[dict[str, Any]] = []
        for project in projects:
            item = project_view(project)
            latest = self._repository.latest_entry(project.id)
            item["lastUpdate"] = entry_view(latest) if latest else {"createdAt": project.updated_at.isoformat()}
            results.append(item)
        return results

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def create(
        self,
        domain: str,
        fields: dict[str, Any],
        *,
        actor_id: str,
        source_work_item_id: str | None = None,
    ) -> Project:
        profile = get_profile(domain)
        parsed = parse_payload(ProjectFields, fields)
        now = self._clock()
        with self._repository.atomic():
            project = Project(
                id=self._repository.next_id("project"),
                domain=domain,
                title=parsed.title,
                description=parsed.description or None,
                resource_url=parsed.resource_url or None,
                chapters=parsed.chapters if profile.chapter_based else None,
                source_work_item_id=source_work_item_id,
                status=STATUS_READY,
                current_progress=0,
                created_at=now,
                updated_at=now,
            )
            self._repository.add_project(project)
        logger.info("Created %s project %s by %s", domain, project.id, actor_id)
        return project

    def update(self, domain: str, project_id: str, patch: dict[str, Any], *, actor_id: str) -> str:
        profile = get_profile(domain)
        fields = sparse(patch)
        if not profile.chapter_based:
            fields.pop("chapters", None)
        parsed = parse_payload(ProjectPatch, fields)
        changes = parsed.model_dump(exclude_none=True)

        with self._repository.atomic():
            project = self.get(domain, project_id)
            chapters = changes.get("chapters")
            if chapters is not None:
                # no ledger entry may exceed the new count
                highest = max(
                    (entry.chapter_completed or 0 for entry in self._repository.list_entries(project.id)),
                    default=0,
                )
                if highest > chapters:
                    raise ValidationError(
                        "The chapter count is lower than a completed chapter in the ledger.",
                        chapters=chapters,
                        chapter_completed=highest,
                    )
            project = replace(project, **changes, updated_at=self._clock())
            if chapters is not None:
                project = self.refresh(project)
            else:
                self._repository.save_project(project)
        logger.info("Updated project %s (%s) by %s", project_id, ", ".join(sorted(changes)) or "no fields", actor_id)
        return project.id

    def delete(self, domain: str, project_id: str, *, actor_id: str) -> bool:
        with self._repository.atomic():
            project = self.get(domain, project_id)
            deleted = self._repository.delete_project(project.id)
        logger.info("Deleted project %s by %s", project_id, actor_id)
        return deleted

    def mark_completed(self, domain: str, project_id: str, *, actor_id: str) -> Project:
        with self._repository.atomic():
            project = self.get(domain, project_id)
            project = status_rules.complete(project, now=self._clock())
            self._repository.save_project(project)
        logger.info("Marked project %s completed by %s", project_id, actor_id)
        return project

    def refresh(self, project: Project) -> Project:
        """Recompute derived progress from the latest ledger entry and persist it."""

        profile = get_profile(project.domain)
        latest = self._repository.latest_entry(project.id)
        reading = profile.read_progress(project, latest) if latest else ZERO_READING
        updated = status_rules.apply_reading(project, reading, now=self._clock())
        self._repository.save_project(updated)
        return updated
