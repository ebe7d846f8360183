"""Infrastructure layer exports."""

from .duckdb_store import DuckDBProjectRepository
from .repository import InMemoryProjectRepository, ProjectRepository
from .users import (
    EchoUserDirectory,
    StaticUserDirectory,
    UserDirectory,
    UserSummary,
    configure_user_directory,
    get_user_directory,
)

__all__ = [
    "DuckDBProjectRepository",
    "EchoUserDirectory",
    "InMemoryProjectRepository",
    "ProjectRepository",
    "StaticUserDirectory",
    "UserDirectory",
    "UserSummary",
    "configure_user_directory",
    "get_user_directory",
]
