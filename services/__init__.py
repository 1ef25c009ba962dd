"""Domain service interfaces used by the agent tools."""

from .errors import ServiceError, NotConnectedError, ItemNotFoundError
from .interfaces import (
    TasksService,
    CalendarService,
    EmailService,
    ContactsService,
    DriveService,
    DomainServices,
)

__all__ = [
    "ServiceError",
    "NotConnectedError",
    "ItemNotFoundError",
    "TasksService",
    "CalendarService",
    "EmailService",
    "ContactsService",
    "DriveService",
    "DomainServices",
]
