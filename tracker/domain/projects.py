"""Domain records for work items, projects and their progress ledgers."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

DomainName = Literal["harvesting", "development", "admin"]

DOMAINS: tuple[str, ...] = ("harvesting", "development", "admin")

WORK_ITEM_STATUSES: tuple[str, ...] = ("ready", "wait", "review")

STATUS_READY = "ready"
STATUS_IN_PROGRESS = "in_progress"
STATUS_FLAGGED = "flagged"
STATUS_COMPLETED = "completed"

PROJECT_STATUSES: tuple[str, ...] = (
    STATUS_READY,
    STATUS_IN_PROGRESS,
    STATUS_FLAGGED,
    STATUS_COMPLETED,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class WorkItem:
    """A candidate unit of work awaiting promotion (a task or a target)."""

    id: str
    domain: str
    title: str
    status: str = STATUS_READY
    description: str | None = None
    resource_url: str | None = None
    library: str | None = None
    shelf: str | None = None
    type: str | None = None
    notes: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Project:
    """A tracked unit of work whose progress is derived from its ledger."""

    id: str
    domain: str
    title: str
    description: str | None = None
    status: str = STATUS_READY
    current_progress: int = 0
    chapters: int | None = None
    current_chapter: int | None = None
    resource_url: str | None = None
    source_work_item_id: str | None = None
    flagged_to_user_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class ProgressEntry:
    """An immutable progress report appended to a project's ledger."""

    id: str
    project_id: str
    author_id: str
    created_at: datetime
    sequence: int = 0
    chapter_completed: int | None = None
    message: str | None = None
    estimated_progress: int | None = None
    estimated_hours: Decimal | None = None
    accomplishments: str | None = None
    issues: str | None = None
    objectives: str | None = None
    notes: str | None = None

    @property
    def ordering_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.sequence)
