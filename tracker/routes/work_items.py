from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from tracker.application import get_services
from tracker.core.errors import ValidationError
from tracker.core.schema import work_item_view
from tracker.routes.deps import Actor, get_actor, require

router = APIRouter(prefix="/{domain}/workitems", tags=["work items"])


@router.get("/all")
async def list_work_items(domain: str, actor: Actor = Depends(get_actor)) -> dict:
    items = get_services().work_items.list(domain)
    return {"err": False, "items": [work_item_view(item) for item in items]}


@router.get("/detail")
async def get_work_item(domain: str, id: str | None = Query(default=None), actor: Actor = Depends(get_actor)) -> dict:
    if not id:
        raise ValidationError("Missing required fields.", fields=["id"])
    item = get_services().work_items.get(domain, id)
    return {"err": False, "item": work_item_view(item)}


@router.post("/add")
async def add_work_item(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    item_id = get_services().work_items.add(domain, payload, actor_id=actor.id)
    return {"err": False, "id": item_id}


@router.post("/update")
async def update_work_item(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    (item_id,) = require(payload, "id")
    patch = {key: value for key, value in payload.items() if key != "id"}
    updated = get_services().work_items.update(domain, item_id, patch, actor_id=actor.id)
    return {"err": False, "id": updated}


@router.post("/delete")
async def delete_work_item(domain: str, payload: dict, actor: Actor = Depends(get_actor)) -> dict:
    (item_id,) = require(payload, "id")
    deleted = get_services().work_items.delete(domain, item_id, actor_id=actor.id)
    return {"err": False, "deletedItem": deleted}
