"""Interfaces of the domain services the agent acts on.

Implementations live outside this package (Google integrations, task
database). Any method may raise NotConnectedError when the user has not
linked the underlying account.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List

from .errors import NotConnectedError
from .models import (
    Task,
    TaskCreate,
    TaskBriefing,
    Priority,
    TaskStatus,
    CalendarEvent,
    EventCreate,
    EventUpdate,
    BusySlot,
    EmailMessage,
    EmailDraft,
    Contact,
    DriveFile,
    StorageQuota,
)


class TasksService(ABC):

    @abstractmethod
    async def find_all(
        self,
        user_id: str,
        priority: Optional[Priority] = None,
        status: Optional[TaskStatus] = None
    ) -> List[Task]:
        pass

    @abstractmethod
    async def create(self, user_id: str, data: TaskCreate) -> Task:
        pass

    @abstractmethod
    async def complete(self, user_id: str, task_id: str) -> Task:
        """Raises ItemNotFoundError if the task is missing or not the user's."""
        pass

    @abstractmethod
    async def get_todays_briefing(self, user_id: str) -> TaskBriefing:
        pass


class CalendarService(ABC):

    @abstractmethod
    async def get_events(self, user_id: str, start: datetime, end: datetime) -> List[CalendarEvent]:
        pass

    @abstractmethod
    async def get_today_events(self, user_id: str) -> List[CalendarEvent]:
        pass

    @abstractmethod
    async def get_upcoming_events(self, user_id: str, days: int = 7) -> List[CalendarEvent]:
        pass

    @abstractmethod
    async def create_event(self, user_id: str, data: EventCreate) -> CalendarEvent:
        pass

    @abstractmethod
    async def update_event(self, user_id: str, event_id: str, data: EventUpdate) -> CalendarEvent:
        pass

    @abstractmethod
    async def delete_event(self, user_id: str, event_id: str) -> None:
        pass

    @abstractmethod
    async def get_free_busy(self, user_id: str, start: datetime, end: datetime) -> List[BusySlot]:
        pass


class EmailService(ABC):

    @abstractmethod
    async def get_inbox_emails(self, user_id: str, max_results: int = 20) -> List[EmailMessage]:
        pass

    @abstractmethod
    async def get_unread_emails(self, user_id: str, max_results: int = 10) -> List[EmailMessage]:
        pass

    @abstractmethod
    async def search_emails(self, user_id: str, query: str, max_results: int = 20) -> List[EmailMessage]:
        pass

    @abstractmethod
    async def get_email_detail(self, user_id: str, message_id: str) -> EmailMessage:
        pass

    @abstractmethod
    async def send_email(self, user_id: str, draft: EmailDraft) -> str:
        """Send and return the new message id."""
        pass

    @abstractmethod
    async def reply_to_email(self, user_id: str, message_id: str, body: str) -> str:
        pass

    @abstractmethod
    async def archive_email(self, user_id: str, message_id: str) -> None:
        pass

    @abstractmethod
    async def mark_as_read(self, user_id: str, message_id: str) -> None:
        pass

    @abstractmethod
    async def get_unread_count(self, user_id: str) -> int:
        pass


class ContactsService(ABC):

    @abstractmethod
    async def get_contacts(self, user_id: str, max_results: int = 50) -> List[Contact]:
        pass

    @abstractmethod
    async def search_contacts(self, user_id: str, query: str, max_results: int = 20) -> List[Contact]:
        pass


class DriveService(ABC):

    @abstractmethod
    async def search_files(self, user_id: str, query: str, max_results: int = 20) -> List[DriveFile]:
        pass

    @abstractmethod
    async def list_recent_files(self, user_id: str, max_results: int = 20) -> List[DriveFile]:
        pass

    @abstractmethod
    async def list_files_by_type(self, user_id: str, file_type: str, max_results: int = 20) -> List[DriveFile]:
        pass

    @abstractmethod
    async def list_shared_with_me(self, user_id: str, max_results: int = 20) -> List[DriveFile]:
        pass

    @abstractmethod
    async def list_starred_files(self, user_id: str, max_results: int = 20) -> List[DriveFile]:
        pass

    @abstractmethod
    async def get_file_info(self, user_id: str, file_id: str) -> Optional[DriveFile]:
        pass

    @abstractmethod
    async def get_storage_quota(self, user_id: str) -> StorageQuota:
        pass


class DomainServices:
    """Bundle of the collaborators the tools call; any of them may be absent."""

    def __init__(
        self,
        tasks: Optional[TasksService] = None,
        calendar: Optional[CalendarService] = None,
        email: Optional[EmailService] = None,
        contacts: Optional[ContactsService] = None,
        drive: Optional[DriveService] = None
    ):
        self.tasks = tasks
        self.calendar = calendar
        self.email = email
        self.contacts = contacts
        self.drive = drive

    def require(self, name: str):
        """Get a service by attribute name; a missing one counts as not connected."""
        service = getattr(self, name, None)
        if service is None:
            raise NotConnectedError(f"{name} service not connected")
        return service
