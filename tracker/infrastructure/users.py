"""User name resolution hooks.

Accounts live outside the tracker. Detail views only need display names for
assignees, supervisors and entry authors, so the service asks a
``UserDirectory`` for them. Deployments install a real directory with
``configure_user_directory`` during start-up; tests and bare installs use the
echo directory, which knows ids but no names.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Protocol


@dataclass(slots=True)
class UserSummary:
    uuid: str
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None

    def as_dict(self) -> dict[str, str | None]:
        return {
            "uuid": self.uuid,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "avatar": self.avatar,
        }


class UserDirectory(Protocol):
    """Contract for user lookups."""

    def resolve(self, user_ids: Iterable[str]) -> list[UserSummary]:
        """Return a summary for every id, in the order given."""


class EchoUserDirectory:
    """Fallback directory that returns the ids without names."""

    def resolve(self, user_ids: Iterable[str]) -> list[UserSummary]:
        return [UserSummary(uuid=user_id) for user_id in user_ids]


class StaticUserDirectory:
    """Directory backed by a fixed mapping of id to ``(first, last)`` names."""

    def __init__(self, users: Mapping[str, tuple[str, str]]) -> None:
        self._users = dict(users)

    def resolve(self, user_ids: Iterable[str]) -> list[UserSummary]:
        summaries: list[UserSummary] = []
        for user_id in user_ids:
            first, last = self._users.get(user_id, (None, None))
            summaries.append(UserSummary(uuid=user_id, first_name=first, last_name=last))
        return summaries


_directory: UserDirectory = EchoUserDirectory()


def configure_user_directory(directory: UserDirectory) -> None:
    """Install the directory used to resolve user names."""

    global _directory
    _directory = directory


def get_user_directory() -> UserDirectory:
    """Return the currently configured user directory."""

    return _directory
