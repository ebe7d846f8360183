from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from tracker.application.projects import ProjectStore
from tracker.core import status as status_rules
from tracker.core.errors import ValidationError
from tracker.domain import Project, utcnow
from tracker.infrastructure import ProjectRepository

logger = logging.getLogger(__name__)


class AssignmentRegistry:
    """Assignee sets and the single flagged-to supervisor slot of each project.

    Flagging is independent of assignment: a project may be flagged to a user
    who is not one of its assignees.
    """

    def __init__(
        self,
        repository: ProjectRepository,
        projects: ProjectStore,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._projects = projects
        self._clock = clock

    def add_assignee(self, domain: str, project_id: str, user_id: str, *, actor_id: str) -> bool:
        if not user_id:
            raise ValidationError("Missing required fields.", fields=["assignee"])
        with self._repository.atomic():
            project = self._projects.get(domain, project_id)
            added = self._repository.add_assignee(project.id, user_id)
        if added:
            logger.info("Assigned %s to project %s by %s", user_id, project_id, actor_id)
        return added

    def assignees(self, domain: str, project_id: str) -> list[str]:
        project = self._projects.get(domain, project_id)
        return self._repository.list_assignees(project.id)

    def flag_project(self, domain: str, project_id: str, supervisor_id: str, *, actor_id: str) -> Project:
        if not supervisor_id:
            raise ValidationError("Missing required fields.", fields=["supervisor"])
        with self._repository.atomic():
            project = self._projects.get(domain, project_id)
            project = status_rules.flag(project, supervisor_id, now=self._clock())
            self._repository.save_project(project)
        logger.info("Flagged project %s to %s by %s", project_id, supervisor_id, actor_id)
        return project

    def unflag_project(self, domain: str, project_id: str, *, actor_id: str) -> Project:
        with self._repository.atomic():
            project = self._projects.get(domain, project_id)
            project = status_rules.unflag(project, now=self._clock())
            self._repository.save_project(project)
        logger.info("Unflagged project %s by %s (status=%s)", project_id, actor_id, project.status)
        return project
