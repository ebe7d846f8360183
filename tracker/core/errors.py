"""Error taxonomy shared by every layer of the tracker.

Each error carries a human readable message plus keyword context (ids,
statuses) so the HTTP boundary can render ``errMsg`` and the logs keep the
details. ``status_code`` is the HTTP status used when the error reaches the
API surface.
"""
from __future__ import annotations

from typing import Any


class TrackerError(Exception):
    """Base class for all tracker errors."""

    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.context:
            context_str = ", ".join(f"{key}={value!r}" for key, value in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ValidationError(TrackerError):
    """Raised when a payload is missing required fields or carries bad values."""

    status_code = 400


class AuthenticationError(TrackerError):
    """Raised when the caller did not identify an actor."""

    status_code = 401


class NotFoundError(TrackerError):
    """Raised when a project, entry or work item does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"Couldn't find a {entity} with that ID.", id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateError(TrackerError):
    """Raised when a transition is not allowed from the current status."""

    status_code = 409


class PreconditionFailedError(TrackerError):
    """Raised when an operation's precondition (e.g. 100% progress) does not hold."""

    status_code = 412


class StorageError(TrackerError):
    """Raised when the backing store fails. Never retried by the core."""

    status_code = 503


class ConfigurationError(TrackerError):
    """Raised at start-up when settings cannot be loaded."""
