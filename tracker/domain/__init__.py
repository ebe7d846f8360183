"""Domain layer definitions."""

from .profiles import PROFILES, ZERO_READING, DomainProfile, ProgressReading, get_profile
from .projects import (
    DOMAINS,
    PROJECT_STATUSES,
    STATUS_COMPLETED,
    STATUS_FLAGGED,
    STATUS_IN_PROGRESS,
    STATUS_READY,
    WORK_ITEM_STATUSES,
    Project,
    ProgressEntry,
    WorkItem,
    utcnow,
)

__all__ = [
    "DOMAINS",
    "PROFILES",
    "PROJECT_STATUSES",
    "STATUS_COMPLETED",
    "STATUS_FLAGGED",
    "STATUS_IN_PROGRESS",
    "STATUS_READY",
    "WORK_ITEM_STATUSES",
    "ZERO_READING",
    "DomainProfile",
    "Project",
    "ProgressEntry",
    "ProgressReading",
    "WorkItem",
    "get_profile",
    "utcnow",
]
