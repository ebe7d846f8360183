"""Pure status and progress derivation for projects.

The lifecycle is ``ready -> in_progress -> completed`` with ``flagged`` as an
overlay reachable from ``ready`` or ``in_progress``. Every function here takes
a project snapshot and returns a new one; nothing is persisted.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from tracker.core.errors import InvalidStateError, PreconditionFailedError
from tracker.domain.profiles import ProgressReading
from tracker.domain.projects import (
    STATUS_COMPLETED,
    STATUS_FLAGGED,
    STATUS_IN_PROGRESS,
    STATUS_READY,
    Project,
)


def resting_status(current_progress: int) -> str:
    """Status a project falls back to when it is neither flagged nor completed."""

    return STATUS_IN_PROGRESS if current_progress > 0 else STATUS_READY


def derive_status(status: str, current_progress: int, flagged_to_user_id: str | None) -> str:
    if status == STATUS_COMPLETED:
        return STATUS_COMPLETED
    if flagged_to_user_id:
        return STATUS_FLAGGED
    return resting_status(current_progress)


def apply_reading(project: Project, reading: ProgressReading, *, now: datetime) -> Project:
    """Return ``project`` with progress taken from ``reading`` and status re-derived."""

    return replace(
        project,
        current_progress=reading.current_progress,
        current_chapter=reading.current_chapter,
        status=derive_status(project.status, reading.current_progress, project.flagged_to_user_id),
        updated_at=now,
    )


def flag(project: Project, supervisor_id: str, *, now: datetime) -> Project:
    if project.status == STATUS_COMPLETED:
        raise InvalidStateError("A completed project cannot be flagged.", project_id=project.id)
    if project.flagged_to_user_id == supervisor_id:
        raise InvalidStateError(
            "The project is already flagged to that user.",
            project_id=project.id,
            supervisor_id=supervisor_id,
        )
    return replace(project, flagged_to_user_id=supervisor_id, status=STATUS_FLAGGED, updated_at=now)


def unflag(project: Project, *, now: datetime) -> Project:
    if project.status != STATUS_FLAGGED or not project.flagged_to_user_id:
        raise InvalidStateError("The project is not flagged.", project_id=project.id, status=project.status)
    return replace(
        project,
        flagged_to_user_id=None,
        status=resting_status(project.current_progress),
        updated_at=now,
    )


def complete(project: Project, *, now: datetime) -> Project:
    if project.status == STATUS_COMPLETED:
        raise InvalidStateError("The project is already completed.", project_id=project.id)
    if project.current_progress != 100:
        raise PreconditionFailedError(
            "The project must be at 100% progress to mark as completed.",
            project_id=project.id,
            current_progress=project.current_progress,
        )
    return replace(project, status=STATUS_COMPLETED, flagged_to_user_id=None, updated_at=now)
