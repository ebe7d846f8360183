import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from tracker.application import build_services
from tracker.infrastructure import (
    DuckDBProjectRepository,
    EchoUserDirectory,
    InMemoryProjectRepository,
    configure_user_directory,
)


class FakeClock:
    """Deterministic clock advancing by ``step`` on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture(params=["memory", "duckdb"])
def repository(request, tmp_path):
    if request.param == "memory":
        repo = InMemoryProjectRepository()
        yield repo
    else:
        repo = DuckDBProjectRepository(tmp_path / "tracker.duckdb")
        yield repo
        repo.close()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def services(repository, clock):
    return build_services(repository, clock=clock)


@pytest.fixture(autouse=True)
def reset_user_directory():
    yield
    configure_user_directory(EchoUserDirectory())
