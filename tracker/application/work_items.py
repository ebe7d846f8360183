from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

from tracker.core.errors import NotFoundError
from tracker.core.schema import WorkItemFields, WorkItemPatch, parse_payload, sparse
from tracker.domain import WORK_ITEM_STATUSES, WorkItem, get_profile, utcnow
from tracker.infrastructure import ProjectRepository

logger = logging.getLogger(__name__)


class WorkItemStore:
    """Candidate tasks and targets awaiting promotion."""

    def __init__(
        self,
        repository: ProjectRepository,
        *,
        clock: Callable[[], datetime] = utcnow,
        list_limit: int = 50,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._list_limit = list_limit

    def add(self, domain: str, fields: dict[str, Any], *, actor_id: str) -> str:
        profile = get_profile(domain)
        parsed = parse_payload(WorkItemFields, fields)
        now = self._clock()
        with self._repository.atomic():
            item = WorkItem(
                id=self._repository.next_id(profile.work_item_label),
                domain=domain,
                created_at=now,
                updated_at=now,
                **parsed.model_dump(),
            )
            self._repository.add_work_item(item)
        logger.info("Added %s %s to %s by %s", profile.work_item_label, item.id, domain, actor_id)
        return item.id

    def get(self, domain: str, item_id: str) -> WorkItem:
        profile = get_profile(domain)
        item = self._repository.get_work_item(item_id) if item_id else None
        if item is None or item.domain != domain:
            raise NotFoundError(profile.work_item_label, item_id)
        return item

    def list(self, domain: str) -> list[WorkItem]:
        get_profile(domain)
        return self._repository.list_work_items(domain, WORK_ITEM_STATUSES, self._list_limit)

    def update(self, domain: str, item_id: str, patch: dict[str, Any], *, actor_id: str) -> str:
        parsed = parse_payload(WorkItemPatch, sparse(patch))
        changes = parsed.model_dump(exclude_none=True)
        with self._repository.atomic():
            item = self.get(domain, item_id)
            item = replace(item, **changes, updated_at=self._clock())
            self._repository.save_work_item(item)
        logger.info("Updated work item %s (%s) by %s", item_id, ", ".join(sorted(changes)) or "no fields", actor_id)
        return item.id

    def delete(self, domain: str, item_id: str, *, actor_id: str) -> bool:
        with self._repository.atomic():
            item = self.get(domain, item_id)
            deleted = self._repository.delete_work_item(item.id)
        logger.info("Deleted work item %s by %s", item_id, actor_id)
        return deleted
