from decimal import Decimal

import pytest

from conftest import FakeClock
from tracker.application import build_services
from tracker.core.errors import StorageError
from tracker.infrastructure import DuckDBProjectRepository


def test_store_survives_reopen(tmp_path):
    path = tmp_path / "nested" / "tracker.duckdb"
    repository = DuckDBProjectRepository(path)
    services = build_services(repository, clock=FakeClock())
    project_id = services.promotion.create_standalone(
        "development", {"title": "Persistent"}, "dev-1", actor_id="dev-1"
    )
    services.ledger.append_entry(
        "development",
        project_id,
        {
            "estimatedHours": "2.5",
            "estimatedProgress": 45,
            "accomplishments": "Drafted",
            "issues": "None",
            "objectives": "Edit",
        },
        "dev-1",
    )
    repository.close()

    reopened = DuckDBProjectRepository(path)
    try:
        services = build_services(reopened, clock=FakeClock())
        project = services.projects.get("development", project_id)
        assert project.current_progress == 45
        assert project.status == "in_progress"
        assert project.created_at.tzinfo is not None
        assert services.assignments.assignees("development", project_id) == ["dev-1"]
        (entry,) = services.ledger.list_entries("development", project_id)
        assert entry.estimated_hours == Decimal("2.5")

        next_project = services.projects.create("development", {"title": "Second"}, actor_id="dev-1")
        assert next_project.id != project_id
    finally:
        reopened.close()


def test_atomic_block_rolls_back_on_error(tmp_path):
    repository = DuckDBProjectRepository(tmp_path / "tracker.duckdb")
    services = build_services(repository, clock=FakeClock())
    try:
        with pytest.raises(RuntimeError):
            with repository.atomic():
                services.work_items.add("admin", {"title": "Lost"}, actor_id="a")
                raise RuntimeError("abort")
        assert services.work_items.list("admin") == []

        services.work_items.add("admin", {"title": "Kept"}, actor_id="a")
        assert [item.title for item in services.work_items.list("admin")] == ["Kept"]
    finally:
        repository.close()


def test_query_failures_surface_as_storage_errors(tmp_path):
    repository = DuckDBProjectRepository(tmp_path / "tracker.duckdb")
    repository.close()
    with pytest.raises(StorageError):
        repository.get_project("project-00001")


def test_failed_commit_rolls_back_and_leaves_connection_usable(tmp_path, monkeypatch):
    repository = DuckDBProjectRepository(tmp_path / "tracker.duckdb")
    services = build_services(repository, clock=FakeClock())
    execute = repository._execute

    def failing_commit(sql, params=()):
        if sql == "COMMIT":
            raise StorageError("project database query failed", error="commit refused")
        return execute(sql, params)

    try:
        monkeypatch.setattr(repository, "_execute", failing_commit)
        with pytest.raises(StorageError):
            services.work_items.add("admin", {"title": "Lost"}, actor_id="a")
        monkeypatch.undo()

        assert services.work_items.list("admin") == []
        services.work_items.add("admin", {"title": "Kept"}, actor_id="a")
        assert [item.title for item in services.work_items.list("admin")] == ["Kept"]
    finally:
        repository.close()
