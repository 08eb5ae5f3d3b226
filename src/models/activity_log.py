"""Activity log model type definitions for database operations."""

from datetime import datetime
from typing import Any, TypedDict
from uuid import UUID


class ActivityLog(TypedDict):
    """activity_logs table row representation.

    Append-only audit trail of order lifecycle changes.
    """

    id: UUID
    type: str
    message: str
    actor_id: str | None
    actor_name: str | None
    order_id: str | None
    metadata: dict[str, Any]
    created_at: datetime


class ActivityLogCreate(TypedDict, total=False):
    """Data required to append an activity log entry."""

    type: str
    message: str
    actor_id: str | None
    actor_name: str | None
    order_id: str | None
    metadata: dict[str, Any]
