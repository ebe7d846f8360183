"""Application services and the process-wide service container."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from tracker.core.config import Settings
from tracker.domain import utcnow
from tracker.infrastructure import InMemoryProjectRepository, ProjectRepository

from .assignments import AssignmentRegistry
from .ledger import ProgressLedger
from .projects import LIST_VIEWS, ProjectStore
from .promotion import PromotionService
from .work_items import WorkItemStore


@dataclass
class TrackerServices:
    repository: ProjectRepository
    work_items: WorkItemStore
    projects: ProjectStore
    ledger: ProgressLedger
    assignments: AssignmentRegistry
    promotion: PromotionService

    def reset(self) -> None:
        self.repository.reset()


def build_services(
    repository: ProjectRepository,
    settings: Settings | None = None,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> TrackerServices:
    settings = settings or Settings()
    work_items = WorkItemStore(repository, clock=clock, list_limit=settings.work_item_limit)
    projects = ProjectStore(repository, clock=clock, recent_completed_limit=settings.recent_completed_limit)
    ledger = ProgressLedger(repository, projects, clock=clock, feed_limit=settings.feed_limit)
    assignments = AssignmentRegistry(repository, projects, clock=clock)
    promotion = PromotionService(repository, work_items, projects, assignments)
    return TrackerServices(
        repository=repository,
        work_items=work_items,
        projects=projects,
        ledger=ledger,
        assignments=assignments,
        promotion=promotion,
    )


_services = build_services(InMemoryProjectRepository())


def get_services() -> TrackerServices:
    """Return the singleton service container for the process."""

    return _services


def configure_services(services: TrackerServices) -> None:
    """Install the service container used by the HTTP routes."""

    global _services
    _services = services


def reset_tracker_state() -> None:
    """Clear the configured store (used in tests)."""

    _services.reset()


__all__ = [
    "LIST_VIEWS",
    "AssignmentRegistry",
    "ProgressLedger",
    "ProjectStore",
    "PromotionService",
    "TrackerServices",
    "WorkItemStore",
    "build_services",
    "configure_services",
    "get_services",
    "reset_tracker_state",
]
