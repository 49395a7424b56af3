"""Core services package."""

from eventpulse.core.chat import ChatService
from eventpulse.core.events import EventService
from eventpulse.core.hub import Client, Hub
from eventpulse.core.incidents import IncidentService
from eventpulse.core.tasks import TaskService
from eventpulse.core.users import UserService
from eventpulse.core.zones import ZoneService

__all__ = [
    "ChatService",
    "Client",
    "EventService",
    "Hub",
    "IncidentService",
    "TaskService",
    "UserService",
    "ZoneService",
]
