from datetime import date, timedelta

import pytest

from conftest import FakeClock
from tracker.application import build_services
from tracker.core.errors import NotFoundError, ValidationError
from tracker.infrastructure import StaticUserDirectory, configure_user_directory


def _harvesting(services, chapters=10):
    return services.projects.create(
        "harvesting", {"title": "Open Biology", "chapters": chapters}, actor_id="editor-1"
    ).id


def _development(services):
    return services.projects.create("development", {"title": "Accessibility pass"}, actor_id="editor-1").id


def _dev_entry(progress, **overrides):
    payload = {
        "estimatedHours": 2,
        "estimatedProgress": progress,
        "accomplishments": "Reviewed chapter one",
        "issues": "None",
        "objectives": "Review chapter two",
    }
    payload.update(overrides)
    return payload


def test_harvesting_scenario_reaches_completion(services):
    project_id = _harvesting(services)

    services.ledger.append_entry("harvesting", project_id, {"chapterCompleted": 3, "message": "Ch. 3"}, "editor-1")
    project = services.projects.get("harvesting", project_id)
    assert project.current_progress == 30
    assert project.current_chapter == 3
    assert project.status == "in_progress"

    services.ledger.append_entry("harvesting", project_id, {"chapterCompleted": 10, "message": "Done"}, "editor-1")
    assert services.projects.get("harvesting", project_id).current_progress == 100

    services.projects.mark_completed("harvesting", project_id, actor_id="editor-1")
    assert services.projects.get("harvesting", project_id).status == "completed"


@pytest.mark.parametrize(
    ("chapters", "completed", "expected"),
    [(3, 1, 33), (3, 2, 66), (7, 5, 71), (12, 11, 91), (1, 1, 100)],
)
def test_harvesting_progress_is_floored_percentage(services, chapters, completed, expected):
    project_id = _harvesting(services, chapters=chapters)
    services.ledger.append_entry(
        "harvesting", project_id, {"chapterCompleted": completed, "message": "progress"}, "editor-1"
    )
    assert services.projects.get("harvesting", project_id).current_progress == expected


def test_latest_entry_wins_even_when_chapter_goes_down(services):
    project_id = _harvesting(services)
    for chapter in (6, 2):
        services.ledger.append_entry("harvesting", project_id, {"chapterCompleted": chapter, "message": "m"}, "a")
    assert services.projects.get("harvesting", project_id).current_progress == 20


def test_harvesting_rejects_chapter_beyond_count(services):
    project_id = _harvesting(services, chapters=4)
    with pytest.raises(ValidationError):
        services.ledger.append_entry("harvesting", project_id, {"chapterCompleted": 5, "message": "m"}, "a")
    assert services.ledger.list_entries("harvesting", project_id) == []


def test_harvesting_without_chapter_count_rejects_entries(services):
    project_id = services.projects.create("harvesting", {"title": "Unsized"}, actor_id="a").id
    with pytest.raises(ValidationError):
        services.ledger.append_entry("harvesting", project_id, {"chapterCompleted": 1, "message": "m"}, "a")


@pytest.mark.parametrize(
    "payload",
    [
        {"message": "no chapter"},
        {"chapterCompleted": 0, "message": "zero"},
        {"chapterCompleted": 2, "message": "   "},
    ],
)
def test_harvesting_required_fields(services, payload):
    project_id = _harvesting(services)
    with pytest.raises(ValidationError):
        services.ledger.append_entry("harvesting", project_id, payload, "a")


def test_development_progress_is_taken_verbatim(services):
    project_id = _development(services)
    services.ledger.append_entry("development", project_id, _dev_entry(40), "dev-1")
    services.ledger.append_entry("development", project_id, _dev_entry(35, notes="Rework"), "dev-1")
    project = services.projects.get("development", project_id)
    assert project.current_progress == 35
    assert project.current_chapter is None


@pytest.mark.parametrize(
    "overrides",
    [{"estimatedHours": 0}, {"estimatedProgress": 0}, {"accomplishments": ""}, {"issues": None}, {"objectives": " "}],
)
def test_development_required_fields(services, overrides):
    project_id = _development(services)
    with pytest.raises(ValidationError):
        services.ledger.append_entry("development", project_id, _dev_entry(40, **overrides), "dev-1")


def test_admin_entry_missing_message_leaves_project_untouched(services):
    project_id = services.projects.create("admin", {"title": "Budget review"}, actor_id="a").id
    services.ledger.append_entry("admin", project_id, {"estimatedProgress": 40, "message": "Kickoff"}, "a")

    with pytest.raises(ValidationError) as excinfo:
        services.ledger.append_entry("admin", project_id, {"estimatedProgress": 80}, "a")

    assert "message" in excinfo.value.context["fields"]
    project = services.projects.get("admin", project_id)
    assert project.current_progress == 40
    assert len(services.ledger.list_entries("admin", project_id)) == 1


def test_admin_rejects_zero_progress(services):
    project_id = services.projects.create("admin", {"title": "Budget review"}, actor_id="a").id
    with pytest.raises(ValidationError):
        services.ledger.append_entry("admin", project_id, {"estimatedProgress": 0, "message": "m"}, "a")


def test_append_to_unknown_project_fails(services):
    with pytest.raises(NotFoundError):
        services.ledger.append_entry("development", "project-99999", _dev_entry(10), "dev-1")


def test_deleting_sole_entry_resets_project(services):
    project_id = _harvesting(services)
    entry_id = services.ledger.append_entry("harvesting", project_id, {"chapterCompleted": 4, "message": "m"}, "a")

    services.ledger.delete_entry("harvesting", entry_id, actor_id="a")

    project = services.projects.get("harvesting", project_id)
    assert project.current_progress == 0
    assert project.current_chapter is None
    assert project.status == "ready"


def test_deleting_latest_entry_falls_back_to_previous(services):
    project_id = _development(services)
    services.ledger.append_entry("development", project_id, _dev_entry(20), "dev-1")
    latest = services.ledger.append_entry("development", project_id, _dev_entry(60), "dev-1")

    services.ledger.delete_entry("development", latest, actor_id="dev-1", project_id=project_id)

    project = services.projects.get("development", project_id)
    assert project.current_progress == 20
    assert project.status == "in_progress"


def test_delete_unknown_or_mismatched_entry_fails(services):
    project_id = _development(services)
    entry_id = services.ledger.append_entry("development", project_id, _dev_entry(20), "dev-1")
    with pytest.raises(NotFoundError):
        services.ledger.delete_entry("development", "update-99999", actor_id="dev-1")
    with pytest.raises(NotFoundError):
        services.ledger.delete_entry("development", entry_id, actor_id="dev-1", project_id="project-99999")
    with pytest.raises(NotFoundError):
        services.ledger.delete_entry("admin", entry_id, actor_id="dev-1")


def test_entries_are_listed_most_recent_first(services):
    project_id = _development(services)
    ids = [services.ledger.append_entry("development", project_id, _dev_entry(p), "dev-1") for p in (10, 20, 30)]
    listed = services.ledger.list_entries("development", project_id)
    assert [entry.id for entry in listed] == list(reversed(ids))


def test_identical_timestamps_fall_back_to_insertion_order(repository):
    services = build_services(repository, clock=FakeClock(step=timedelta(0)))
    project_id = _development(services)
    services.ledger.append_entry("development", project_id, _dev_entry(30), "dev-1")
    last = services.ledger.append_entry("development", project_id, _dev_entry(50), "dev-1")

    assert services.projects.get("development", project_id).current_progress == 50
    assert services.ledger.list_entries("development", project_id)[0].id == last


def test_append_to_completed_project_keeps_terminal_status(services):
    project_id = _development(services)
    services.ledger.append_entry("development", project_id, _dev_entry(100), "dev-1")
    services.projects.mark_completed("development", project_id, actor_id="dev-1")

    entry_id = services.ledger.append_entry("development", project_id, _dev_entry(90), "dev-1")
    project = services.projects.get("development", project_id)
    assert project.status == "completed"
    assert project.current_progress == 90

    services.ledger.delete_entry("development", entry_id, actor_id="dev-1")
    assert services.projects.get("development", project_id).status == "completed"


def test_failed_recompute_rolls_back_the_append(services, monkeypatch):
    project_id = _development(services)
    services.ledger.append_entry("development", project_id, _dev_entry(25), "dev-1")

    def explode(project):
        raise RuntimeError("store went away")

    monkeypatch.setattr(services.projects, "refresh", explode)
    with pytest.raises(RuntimeError):
        services.ledger.append_entry("development", project_id, _dev_entry(75), "dev-1")
    monkeypatch.undo()

    assert len(services.ledger.list_entries("development", project_id)) == 1
    assert services.projects.get("development", project_id).current_progress == 25


def test_entries_view_resolves_authors(services):
    configure_user_directory(StaticUserDirectory({"dev-1": ("Ada", "Lovelace")}))
    project_id = _development(services)
    services.ledger.append_entry("development", project_id, _dev_entry(20, notes="Draft"), "dev-1")

    (view,) = services.ledger.entries_view("development", project_id)
    assert view["author"]["firstName"] == "Ada"
    assert view["estimatedProgress"] == 20
    assert view["notes"] == "Draft"


def test_feed_is_scoped_to_domain_and_range(services):
    dev_id = _development(services)
    admin_id = services.projects.create("admin", {"title": "Budget review"}, actor_id="a").id
    services.ledger.append_entry("development", dev_id, _dev_entry(20), "dev-1")
    services.ledger.append_entry("admin", admin_id, {"estimatedProgress": 10, "message": "m"}, "a")

    feed = services.ledger.feed("development")
    assert [item["project"] for item in feed] == [{"id": dev_id, "title": "Accessibility pass"}]

    assert services.ledger.feed("development", date(2023, 1, 1), date(2023, 12, 31)) == []
    with pytest.raises(ValidationError):
        services.ledger.feed("development", date(2024, 5, 1), date(2024, 4, 1))


@pytest.mark.parametrize(("hours", "expected"), [(2, "2"), ("2.50", "2.5"), (10, "10"), ("0.25", "0.25")])
def test_estimated_hours_render_the_same_on_every_store(services, hours, expected):
    project_id = _development(services)
    services.ledger.append_entry("development", project_id, _dev_entry(20, estimatedHours=hours), "dev-1")

    (view,) = services.ledger.entries_view("development", project_id)
    assert view["estimatedHours"] == expected
