"""Per-domain strategies for the three workflow pipelines.

Harvesting, development and administration projects share one engine. A
``DomainProfile`` carries what differs between them: which payload model
validates a progress entry, how an entry is turned into a ledger record and
how the project's progress is derived from its latest entry.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel

from tracker.core.errors import NotFoundError, ValidationError
from tracker.core.schema import AdminEntryPayload, DevelopmentEntryPayload, HarvestingEntryPayload
from tracker.domain.projects import Project, ProgressEntry


@dataclass(frozen=True, slots=True)
class ProgressReading:
    """Derived values produced by a single ledger entry."""

    current_progress: int
    current_chapter: int | None = None


ZERO_READING = ProgressReading(current_progress=0, current_chapter=None)


def _harvesting_entry(payload: HarvestingEntryPayload, project: Project) -> dict[str, Any]:
    if not project.chapters:
        raise ValidationError("The project does not have a chapter count.", project_id=project.id)
    if payload.chapter_completed > project.chapters:
        raise ValidationError(
            "The completed chapter exceeds the project's chapter count.",
            chapter_completed=payload.chapter_completed,
            chapters=project.chapters,
        )
    return {"chapter_completed": payload.chapter_completed, "message": payload.message}


def _harvesting_reading(project: Project, entry: ProgressEntry) -> ProgressReading:
    chapter = entry.chapter_completed or 0
    if not project.chapters:
        return ProgressReading(current_progress=0, current_chapter=chapter)
    progress = chapter * 100 // project.chapters
    return ProgressReading(current_progress=max(0, min(100, progress)), current_chapter=chapter)


def _development_entry(payload: DevelopmentEntryPayload, project: Project) -> dict[str, Any]:
    return {
        "estimated_progress": payload.estimated_progress,
        "estimated_hours": payload.estimated_hours,
        "accomplishments": payload.accomplishments,
        "issues": payload.issues,
        "objectives": payload.objectives,
        "notes": payload.notes or None,
    }


def _admin_entry(payload: AdminEntryPayload, project: Project) -> dict[str, Any]:
    return {"estimated_progress": payload.estimated_progress, "message": payload.message}


def _estimated_reading(project: Project, entry: ProgressEntry) -> ProgressReading:
    return ProgressReading(current_progress=entry.estimated_progress or 0)


@dataclass(frozen=True, slots=True)
class DomainProfile:
    name: str
    work_item_label: str
    entry_model: type[BaseModel]
    build_entry: Callable[[Any, Project], dict[str, Any]]
    read_progress: Callable[[Project, ProgressEntry], ProgressReading]
    chapter_based: bool = False

    def make_entry(
        self,
        project: Project,
        payload: BaseModel,
        *,
        entry_id: str,
        author_id: str,
        created_at: datetime,
        sequence: int,
    ) -> ProgressEntry:
        fields = self.build_entry(payload, project)
        return ProgressEntry(
            id=entry_id,
            project_id=project.id,
            author_id=author_id,
            created_at=created_at,
            sequence=sequence,
            **fields,
        )


PROFILES: dict[str, DomainProfile] = {
    "harvesting": DomainProfile(
        name="harvesting",
        work_item_label="target",
        entry_model=HarvestingEntryPayload,
        build_entry=_harvesting_entry,
        read_progress=_harvesting_reading,
        chapter_based=True,
    ),
    "development": DomainProfile(
        name="development",
        work_item_label="task",
        entry_model=DevelopmentEntryPayload,
        build_entry=_development_entry,
        read_progress=_estimated_reading,
    ),
    "admin": DomainProfile(
        name="admin",
        work_item_label="task",
        entry_model=AdminEntryPayload,
        build_entry=_admin_entry,
        read_progress=_estimated_reading,
    ),
}


def get_profile(domain: str) -> DomainProfile:
    try:
        return PROFILES[domain]
    except KeyError:
        raise NotFoundError("domain", domain) from None
