from __future__ import annotations

import logging
from typing import Any

from tracker.application.assignments import AssignmentRegistry
from tracker.application.projects import ProjectStore
from tracker.application.work_items import WorkItemStore
from tracker.core.schema import sparse
from tracker.infrastructure import ProjectRepository

logger = logging.getLogger(__name__)


class PromotionService:
    """Turns work items into projects.

    Promotion reads the source work item and never modifies it, so the same
    task or target can be promoted more than once.
    """

    def __init__(
        self,
        repository: ProjectRepository,
        work_items: WorkItemStore,
        projects: ProjectStore,
        assignments: AssignmentRegistry,
    ) -> None:
        self._repository = repository
        self._work_items = work_items
        self._projects = projects
        self._assignments = assignments

    def promote_from_work_item(
        self,
        domain: str,
        work_item_id: str,
        overrides: dict[str, Any] | None = None,
        assignee_id: str | None = None,
        *,
        actor_id: str,
    ) -> str:
        with self._repository.atomic():
            item = self._work_items.get(domain, work_item_id)
            fields: dict[str, Any] = {
                "title": item.title,
                "description": item.description,
                "resource_url": item.resource_url,
            }
            fields.update(sparse(self._normalise(overrides)))
            previous = self._repository.count_projects_from(item.id)
            project = self._projects.create(domain, fields, actor_id=actor_id, source_work_item_id=item.id)
            if assignee_id:
                self._assignments.add_assignee(domain, project.id, assignee_id, actor_id=actor_id)
        if previous:
            logger.info("Work item %s already backs %d project(s); promoted again", item.id, previous)
        logger.info("Promoted work item %s to project %s by %s", item.id, project.id, actor_id)
        return project.id

    def create_standalone(
        self,
        domain: str,
        fields: dict[str, Any],
        assignee_id: str | None = None,
        *,
        actor_id: str,
    ) -> str:
        with self._repository.atomic():
            project = self._projects.create(domain, self._normalise(fields), actor_id=actor_id)
            if assignee_id:
                self._assignments.add_assignee(domain, project.id, assignee_id, actor_id=actor_id)
        return project.id

    @staticmethod
    def _normalise(fields: dict[str, Any] | None) -> dict[str, Any]:
        data = dict(fields or {})
        if "resourceURL" in data:
            data["resource_url"] = data.pop("resourceURL")
        return data
