from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, constr, field_validator
from pydantic import ValidationError as PydanticValidationError

from tracker.core.errors import ValidationError

if TYPE_CHECKING:
    from tracker.domain.projects import Project, ProgressEntry, WorkItem

NonEmptyStr = constr(strip_whitespace=True, min_length=1)

ModelT = TypeVar("ModelT", bound=BaseModel)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ----------------------------------------------------------------------
# progress entries
# ----------------------------------------------------------------------
class HarvestingEntryPayload(_Payload):
    chapter_completed: int = Field(alias="chapterCompleted", gt=0)
    message: NonEmptyStr


class DevelopmentEntryPayload(_Payload):
    estimated_hours: Decimal = Field(alias="estimatedHours", gt=0)
    estimated_progress: int = Field(alias="estimatedProgress", gt=0, le=100)
    accomplishments: NonEmptyStr
    issues: NonEmptyStr
    objectives: NonEmptyStr
    notes: str | None = None


class AdminEntryPayload(_Payload):
    estimated_progress: int = Field(alias="estimatedProgress", le=100)
    message: NonEmptyStr

    @field_validator("estimated_progress")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("estimatedProgress must be non-zero")
        return value


# ----------------------------------------------------------------------
# projects
# ----------------------------------------------------------------------
class ProjectFields(_Payload):
    title: NonEmptyStr
    description: str | None = None
    resource_url: str | None = Field(default=None, alias="resourceURL")
    chapters: int | None = Field(default=None, ge=0)

    @field_validator("chapters")
    @classmethod
    def _zero_means_unknown(cls, value: int | None) -> int | None:
        return value or None


class ProjectPatch(_Payload):
    title: NonEmptyStr | None = None
    description: str | None = None
    resource_url: str | None = Field(default=None, alias="resourceURL")
    chapters: int | None = Field(default=None, gt=0)


# ----------------------------------------------------------------------
# work items
# ----------------------------------------------------------------------
WorkItemStatus = Literal["ready", "wait", "review"]


class WorkItemFields(_Payload):
    title: NonEmptyStr
    status: WorkItemStatus = "ready"
    description: str | None = None
    resource_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("resource_url", "resourceURL", "originalURL"),
    )
    library: str | None = None
    shelf: str | None = None
    type: str | None = None
    notes: str | None = None


class WorkItemPatch(_Payload):
    title: NonEmptyStr | None = None
    status: WorkItemStatus | None = None
    description: str | None = None
    resource_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("resource_url", "resourceURL", "originalURL"),
    )
    library: str | None = None
    shelf: str | None = None
    type: str | None = None
    notes: str | None = None


def sparse(data: dict[str, Any] | None) -> dict[str, Any]:
    """Drop blank values so only fields the caller actually changed remain."""

    if not data:
        return {}
    return {key: value for key, value in data.items() if value is not None and value != ""}


def parse_payload(model: type[ModelT], data: dict[str, Any] | None) -> ModelT:
    """Validate ``data`` against ``model``, translating pydantic failures."""

    try:
        return model.model_validate(data or {})
    except PydanticValidationError as exc:
        fields = sorted({str(error["loc"][0]) for error in exc.errors() if error.get("loc")})
        raise ValidationError("Missing or invalid required fields.", fields=fields) from exc


# ----------------------------------------------------------------------
# response views
# ----------------------------------------------------------------------
def project_view(project: Project) -> dict[str, Any]:
    view: dict[str, Any] = {
        "id": project.id,
        "domain": project.domain,
        "title": project.title,
        "description": project.description,
        "status": project.status,
        "currentProgress": project.current_progress,
        "resourceURL": project.resource_url,
        "sourceWorkItemID": project.source_work_item_id,
        "flaggedToUserID": project.flagged_to_user_id,
        "createdAt": project.created_at.isoformat(),
        "updatedAt": project.updated_at.isoformat(),
    }
    if project.domain == "harvesting":
        view["chapters"] = project.chapters
        view["currentChapter"] = project.current_chapter
    return view


def _hours_text(value: Decimal | None) -> str | None:
    """Render hours without storage-specific trailing zeros (``2.5000`` -> ``2.5``)."""

    if value is None:
        return None
    return format(value.normalize(), "f")


def entry_view(entry: ProgressEntry) -> dict[str, Any]:
    view: dict[str, Any] = {
        "id": entry.id,
        "projectID": entry.project_id,
        "author": entry.author_id,
        "createdAt": entry.created_at.isoformat(),
    }
    optional = {
        "chapterCompleted": entry.chapter_completed,
        "message": entry.message,
        "estimatedProgress": entry.estimated_progress,
        "estimatedHours": _hours_text(entry.estimated_hours),
        "accomplishments": entry.accomplishments,
        "issues": entry.issues,
        "objectives": entry.objectives,
        "notes": entry.notes,
    }
    view.update({key: value for key, value in optional.items() if value is not None})
    return view


def work_item_view(item: WorkItem) -> dict[str, Any]:
    view: dict[str, Any] = {
        "id": item.id,
        "domain": item.domain,
        "title": item.title,
        "status": item.status,
        "description": item.description,
        "resourceURL": item.resource_url,
        "createdAt": item.created_at.isoformat(),
        "updatedAt": item.updated_at.isoformat(),
    }
    if item.domain == "harvesting":
        view.update({"library": item.library, "shelf": item.shelf, "type": item.type, "notes": item.notes})
    return view
