"""Database models package."""

from eventpulse.db.models.event import Event, EventState
from eventpulse.db.models.incident import (
    Incident,
    IncidentHistory,
    IncidentState,
    IncidentType,
)
from eventpulse.db.models.message import MAX_MESSAGE_LENGTH, Message
from eventpulse.db.models.task import Task, TaskPriority, TaskState
from eventpulse.db.models.user import OVERRIDE_ROLES, Role, User
from eventpulse.db.models.zone import Zone

__all__ = [
    "Event",
    "EventState",
    "Zone",
    "User",
    "Role",
    "OVERRIDE_ROLES",
    "Incident",
    "IncidentHistory",
    "IncidentState",
    "IncidentType",
    "Task",
    "TaskState",
    "TaskPriority",
    "Message",
    "MAX_MESSAGE_LENGTH",
]
