#!/usr/bin/env python
from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from tracker.application import build_services
from tracker.infrastructure import DuckDBProjectRepository


def seed(path: Path, actor: str) -> dict[str, str]:
    """Populate a DuckDB store with one project per workflow domain."""

    repository = DuckDBProjectRepository(path)
    services = build_services(repository)
    created: dict[str, str] = {}
    try:
        target_id = services.work_items.add(
            "harvesting",
            {"title": "Introductory Chemistry", "library": "chem", "shelf": "General", "type": "textbook"},
            actor_id=actor,
        )
        created["harvesting"] = services.promotion.promote_from_work_item(
            "harvesting", target_id, {"chapters": 12}, actor, actor_id=actor
        )
        services.ledger.append_entry(
            "harvesting", created["harvesting"], {"chapterCompleted": 3, "message": "Chapters 1-3 imported"}, actor
        )

        task_id = services.work_items.add("development", {"title": "Accessibility audit"}, actor_id=actor)
        created["development"] = services.promotion.promote_from_work_item(
            "development", task_id, {}, actor, actor_id=actor
        )
        services.ledger.append_entry(
            "development",
            created["development"],
            {
                "estimatedHours": 6,
                "estimatedProgress": 40,
                "accomplishments": "Audited the first two modules",
                "issues": "Alt text missing on figures",
                "objectives": "Finish remaining modules",
            },
            actor,
        )

        created["admin"] = services.promotion.create_standalone(
            "admin", {"title": "Quarterly review"}, actor, actor_id=actor
        )
    finally:
        repository.close()
    return created


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Seed a DuckDB project store with demo data")
    parser.add_argument("--output", required=True, help="DuckDB database file to create or extend")
    parser.add_argument("--actor", default="demo-editor", help="actor id recorded as author and assignee")
    args = parser.parse_args(argv)

    created = seed(Path(args.output), args.actor)
    for domain, project_id in created.items():
        print(f"{domain}: {project_id}")


if __name__ == "__main__":
    main()
