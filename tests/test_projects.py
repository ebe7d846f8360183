import pytest

from tracker.application import build_services
from tracker.core.config import Settings
from tracker.core.errors import NotFoundError, ValidationError
from tracker.infrastructure import StaticUserDirectory, configure_user_directory


def _create(services, domain="development", title="Workbook", **fields):
    return services.promotion.create_standalone(domain, {"title": title, **fields}, "dev-1", actor_id="dev-1")


def _finish(services, project_id, domain="admin"):
    services.ledger.append_entry(domain, project_id, {"estimatedProgress": 100, "message": "done"}, "a")
    services.projects.mark_completed(domain, project_id, actor_id="a")


def test_get_rejects_unknown_domain_and_mismatch(services):
    project_id = _create(services)
    with pytest.raises(NotFoundError) as excinfo:
        services.projects.get("admin", project_id)
    assert excinfo.value.message == "Couldn't find a project with that ID."
    with pytest.raises(NotFoundError):
        services.projects.get("marketing", project_id)


def test_listing_views_partition_by_status(services):
    ready = _create(services, title="Ready one")
    flagged = _create(services, title="Flagged one")
    services.assignments.flag_project("development", flagged, "sup-1", actor_id="dev-1")

    assert [p["id"] for p in services.projects.list("development", "current")] == [ready]
    assert [p["id"] for p in services.projects.list("development", "flagged")] == [flagged]
    assert services.projects.list("development", "completed") == []
    with pytest.raises(ValidationError):
        services.projects.list("development", "archived")


def test_listing_for_user_includes_flagged_supervisor(services):
    mine = _create(services, title="Mine")
    services.promotion.create_standalone("development", {"title": "Theirs"}, "dev-9", actor_id="dev-9")
    services.assignments.flag_project("development", mine, "sup-1", actor_id="dev-1")

    assert [p["id"] for p in services.projects.list("development", "flagged", user_id="sup-1")] == [mine]
    assert [p["id"] for p in services.projects.list("development", "flagged", user_id="dev-1")] == [mine]
    assert services.projects.list("development", "current", user_id="dev-1") == []
    assert len(services.projects.list("development", "current")) == 1


def test_listing_carries_last_update(services):
    project_id = _create(services, domain="admin", title="Budget")
    (item,) = services.projects.list("admin", "current")
    assert item["lastUpdate"] == {"createdAt": item["updatedAt"]}

    services.ledger.append_entry("admin", project_id, {"estimatedProgress": 20, "message": "Started"}, "a")
    (item,) = services.projects.list("admin", "current")
    assert item["lastUpdate"]["message"] == "Started"
    assert item["currentProgress"] == 20


def test_recently_completed_is_newest_first_and_capped(repository, clock):
    services = build_services(repository, Settings(recent_completed_limit=2), clock=clock)
    ids = [_create(services, domain="admin", title=f"Review {n}") for n in range(3)]
    for project_id in ids:
        _finish(services, project_id)

    assert [p["id"] for p in services.projects.list("admin", "completed")] == list(reversed(ids))
    assert [p["id"] for p in services.projects.list("admin", "recentlycompleted")] == [ids[2], ids[1]]


def test_detail_resolves_assignees_and_supervisor(services):
    configure_user_directory(StaticUserDirectory({"dev-1": ("Grace", "Hopper"), "sup-1": ("Alan", "Kay")}))
    project_id = _create(services)
    services.assignments.flag_project("development", project_id, "sup-1", actor_id="dev-1")

    detail = services.projects.detail("development", project_id)

    assert detail["assignees"] == [{"uuid": "dev-1", "firstName": "Grace", "lastName": "Hopper", "avatar": None}]
    assert detail["flaggedTo"]["firstName"] == "Alan"
    assert detail["status"] == "flagged"
    assert "chapters" not in detail


def test_harvesting_detail_includes_chapters(services):
    project_id = _create(services, domain="harvesting", title="Biology", chapters=4)
    detail = services.projects.detail("harvesting", project_id)
    assert detail["chapters"] == 4
    assert detail["currentChapter"] is None
    assert detail["flaggedTo"] is None


def test_update_changes_only_supplied_fields(services):
    project_id = _create(services, description="Original")
    services.projects.update("development", project_id, {"title": "Renamed", "description": ""}, actor_id="dev-1")

    project = services.projects.get("development", project_id)
    assert project.title == "Renamed"
    assert project.description == "Original"


def test_update_chapters_recomputes_progress(services):
    project_id = _create(services, domain="harvesting", title="Biology", chapters=10)
    services.ledger.append_entry("harvesting", project_id, {"chapterCompleted": 5, "message": "m"}, "a")

    services.projects.update("harvesting", project_id, {"chapters": 20}, actor_id="a")
    assert services.projects.get("harvesting", project_id).current_progress == 25

    with pytest.raises(ValidationError):
        services.projects.update("harvesting", project_id, {"chapters": 4}, actor_id="a")
    assert services.projects.get("harvesting", project_id).chapters == 20


def test_update_ignores_chapters_outside_harvesting(services):
    project_id = _create(services)
    services.projects.update("development", project_id, {"chapters": 9}, actor_id="a")
    assert services.projects.get("development", project_id).chapters is None


def test_delete_removes_project_ledger_and_assignments(services):
    project_id = _create(services, domain="admin", title="Retreat")
    entry_id = services.ledger.append_entry("admin", project_id, {"estimatedProgress": 10, "message": "m"}, "a")

    assert services.projects.delete("admin", project_id, actor_id="a") is True

    with pytest.raises(NotFoundError):
        services.projects.get("admin", project_id)
    assert services.repository.get_entry(entry_id) is None
    assert services.repository.list_assignees(project_id) == []
    with pytest.raises(NotFoundError):
        services.projects.delete("admin", project_id, actor_id="a")


def test_chapter_count_cannot_drop_below_any_ledger_entry(services):
    project_id = _create(services, domain="harvesting", title="Chemistry", chapters=10)
    services.ledger.append_entry("harvesting", project_id, {"chapterCompleted": 8, "message": "m"}, "a")
    latest = services.ledger.append_entry("harvesting", project_id, {"chapterCompleted": 2, "message": "m"}, "a")

    with pytest.raises(ValidationError):
        services.projects.update("harvesting", project_id, {"chapters": 4}, actor_id="a")

    services.ledger.delete_entry("harvesting", latest, actor_id="a")
    project = services.projects.get("harvesting", project_id)
    assert (project.current_chapter, project.chapters, project.current_progress) == (8, 10, 80)


@pytest.mark.parametrize("domain", ["development", "admin"])
def test_zero_chapters_is_ignored_outside_harvesting(services, domain):
    project_id = _create(services, domain=domain)
    services.projects.update(domain, project_id, {"chapters": 0, "title": "Retitled"}, actor_id="a")
    project = services.projects.get(domain, project_id)
    assert project.title == "Retitled"
    assert project.chapters is None
