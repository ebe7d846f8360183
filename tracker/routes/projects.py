from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query

from tracker.application import get_services
from tracker.core.errors import ValidationError
from tracker.routes.deps import Actor, first_present, get_actor, require

router = APIRouter(prefix="/{domain}/projects", tags=["projects"])

PROMOTION_KEYS = ("workItemID", "taskID", "targetID")


def _parse_date(value: str | None, name: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError("There was an error parsing the date range.", field=name, value=value) from None


def _overrides(payload: dict[str, Any]) -> dict[str, Any]:
    skipped = {*PROMOTION_KEYS, "assignee"}
    return {key: value for key, value in payload.items() if key not in skipped}


# ----------------------------------------------------------------------
# reads
# ----------------------------------------------------------------------
@router.get("/detail")
async def get_project_detail(domain: str, id: str | None = Query(default=None), actor: Actor = Depends(get_actor)) -> dict:
    if not id:
        raise ValidationError("Missing required fields.", fields=["id"])
    project = get_services().projects.detail(domain, id)
    return {"err": False, "project": project}


@router.get("/updates/all")
async def get_progress_updates(domain: str, id: str | None = Query(default=None), actor: Actor = Depends(get_actor)) -> dict:
    if not id:
        raise ValidationError("Missing required fields.", fields=["id"])
    updates = get_services().ledger.entries_view(domain, id)
    return {"err": False, "updates": updates}


@router.get("/updates/feed")
async def get_updates_feed(
    domain: str,
    from_date: str | None = Query(default=None, alias="fromDate"),
    to_date: str | None = Query(default=None, alias="toDate"),
    actor: Actor = Depends(get_actor),
) -> dict:
    start = _parse_date(from_date, "fromDate")
    end = _parse_date(to_date, "toDate")
    updates = get_services().ledger.feed(domain, start, end)
    return {"err": False, "updates": updates, "startDate": from_date, "endDate": to_date}


@router.get("/{view}")
async def list_projects(
    domain: str,
    view: str,
    all_projects: bool = Query(default=False, alias="all"),
    actor: Actor = Depends(get_actor),
) -> dict:
    user_id = None if all_projects else actor.id
    projects = get_services().projects.list(domain, view, user_id=user_id)
    return {"err": False, "projects": projects}


# ----------------------------------------------------------------------
# creation
# ----------------------------------------------------------------------
@router.post("/addexisting")
async def add_existing_project(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    project_id = get_services().promotion.create_standalone(domain, payload, assignee_id=actor.id, actor_id=actor.id)
    return {"err": False, "id": project_id}


async def _promote(domain: str, payload: dict, assignee_id: str, actor: Actor) -> dict:
    work_item_id = first_present(payload, *PROMOTION_KEYS)
    if work_item_id is None:
        raise ValidationError("Missing required fields.", fields=["workItemID"])
    project_id = get_services().promotion.promote_from_work_item(
        domain,
        work_item_id,
        _overrides(payload),
        assignee_id,
        actor_id=actor.id,
    )
    return {"err": False, "id": project_id}


@router.post("/newfromtask")
async def new_project_from_task(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    return await _promote(domain, payload, first_present(payload, "assignee") or actor.id, actor)


@router.post("/newfromtarget")
async def new_project_from_target(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    return await _promote(domain, payload, first_present(payload, "assignee") or actor.id, actor)


@router.post("/newforassignee")
async def new_project_for_assignee(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    (assignee,) = require(payload, "assignee")
    return await _promote(domain, payload, assignee, actor)


# ----------------------------------------------------------------------
# mutations
# ----------------------------------------------------------------------
@router.post("/update")
async def update_project(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    (project_id,) = require(payload, "id")
    patch = {key: value for key, value in payload.items() if key != "id"}
    updated = get_services().projects.update(domain, project_id, patch, actor_id=actor.id)
    return {"err": False, "id": updated}


@router.post("/addassignee")
async def add_project_assignee(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    project_id, assignee = require(payload, "id", "assignee")
    get_services().assignments.add_assignee(domain, project_id, assignee, actor_id=actor.id)
    return {"err": False}


@router.post("/flag")
async def flag_project(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    (project_id,) = require(payload, "id")
    supervisor = first_present(payload, "supervisor", "newAssignee")
    if supervisor is None:
        raise ValidationError("Missing required fields.", fields=["supervisor"])
    get_services().assignments.flag_project(domain, project_id, supervisor, actor_id=actor.id)
    return {"err": False}


@router.post("/unflag")
async def unflag_project(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    (project_id,) = require(payload, "id")
    get_services().assignments.unflag_project(domain, project_id, actor_id=actor.id)
    return {"err": False}


@router.post("/markcompleted")
async def mark_project_completed(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    (project_id,) = require(payload, "id")
    get_services().projects.mark_completed(domain, project_id, actor_id=actor.id)
    return {"err": False}


@router.post("/delete")
async def delete_project(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    (project_id,) = require(payload, "id")
    deleted = get_services().projects.delete(domain, project_id, actor_id=actor.id)
    return {"err": False, "deletedProject": deleted}


@router.post("/updates/new")
async def add_progress_update(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    (project_id,) = require(payload, "projectID")
    entry = {key: value for key, value in payload.items() if key != "projectID"}
    update_id = get_services().ledger.append_entry(domain, project_id, entry, actor.id)
    return {"err": False, "id": update_id}


@router.post("/updates/delete")
async def delete_progress_update(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    (update_id,) = require(payload, "updateID")
    get_services().ledger.delete_entry(
        domain,
        update_id,
        actor_id=actor.id,
        project_id=first_present(payload, "projectID"),
    )
    return {"err": False, "deletedProgressUpdate": True}
