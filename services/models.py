"""Shapes exchanged with the domain services."""

from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field


class Priority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NOISE = "NOISE"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class Task(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: Optional[datetime] = None


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None


class BriefingSummary(BaseModel):
    total: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    noise: int = 0


class BriefingTasks(BaseModel):
    high: List[Task] = Field(default_factory=list)
    medium: List[Task] = Field(default_factory=list)
    low: List[Task] = Field(default_factory=list)
    noise: List[Task] = Field(default_factory=list)


class TaskBriefing(BaseModel):
    """Pending tasks of the day grouped by priority."""
    summary: BriefingSummary = Field(default_factory=BriefingSummary)
    tasks: BriefingTasks = Field(default_factory=BriefingTasks)


class CalendarEvent(BaseModel):
    id: str
    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)
    is_all_day: bool = False
    status: str = "confirmed"
    html_link: Optional[str] = None


class EventCreate(BaseModel):
    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)


class EventUpdate(BaseModel):
    title: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    description: Optional[str] = None
    location: Optional[str] = None
    attendees: Optional[List[str]] = None


class BusySlot(BaseModel):
    start: datetime
    end: datetime


class EmailMessage(BaseModel):
    id: str
    thread_id: str = ""
    sender: str = ""
    to: List[str] = Field(default_factory=list)
    subject: str = ""
    snippet: str = ""
    body: Optional[str] = None
    date: Optional[datetime] = None
    is_read: bool = True


class EmailDraft(BaseModel):
    to: List[str]
    subject: str
    body: str
    cc: List[str] = Field(default_factory=list)


class Contact(BaseModel):
    resource_name: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None


class DriveFile(BaseModel):
    id: str
    name: str
    mime_type: str = ""
    web_view_link: Optional[str] = None
    modified_time: Optional[datetime] = None
    size: Optional[str] = None
    owners: List[str] = Field(default_factory=list)
    shared: bool = False
    starred: bool = False


class StorageQuota(BaseModel):
    used: str
    total: str
    used_in_drive: str = ""
    used_in_trash: str = ""
