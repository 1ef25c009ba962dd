"""Task tools."""

import logging
from typing import Optional

from services.models import Priority, TaskStatus, TaskCreate
from .base import Tool, ToolResult, params, string, parse_datetime

logger = logging.getLogger(__name__)

PRIORITIES = [p.value for p in Priority]
STATUSES = [s.value for s in TaskStatus]


class GetTasksTool(Tool):
    """List the user's tasks."""

    name = "get_tasks"
    description = """Get the user's tasks, optionally filtered by priority or status.
Use this when the user asks what they have to do or about specific tasks."""

    parameters = params(
        priority=string("Filter by priority", enum=PRIORITIES),
        status=string("Filter by status", enum=STATUSES),
    )

    async def execute(self, user_id: str, priority: Optional[str] = None, status: Optional[str] = None) -> ToolResult:
        tasks = await self.services.require("tasks").find_all(
            user_id,
            priority=Priority(priority.upper()) if priority else None,
            status=TaskStatus(status.upper()) if status else None
        )
        return self.ok({"count": len(tasks), "tasks": tasks})


class CreateTaskTool(Tool):
    """Create a task."""

    name = "create_task"
    description = """Create a new task for the user.
Ask for the title if it is missing. Priority is HIGH, MEDIUM, LOW or NOISE."""

    parameters = params(
        required=["title"],
        title=string("Task title"),
        description=string("Optional details"),
        priority=string("Task priority", enum=PRIORITIES),
        due_date=string("Optional due date, ISO 8601 (YYYY-MM-DD or YYYY-MM-DDTHH:MM)"),
    )

    async def execute(
        self,
        user_id: str,
        title: str,
        description: Optional[str] = None,
        priority: Optional[str] = None,
        due_date: Optional[str] = None
    ) -> ToolResult:
        data = TaskCreate(
            title=title,
            description=description,
            priority=Priority(priority.upper()) if priority else None,
            due_date=parse_datetime(due_date, "due_date") if due_date else None
        )
        task = await self.services.require("tasks").create(user_id, data)
        logger.info(f"Task created via agent: {task.id}")
        return self.ok({"created": True, "task": task})


class CompleteTaskTool(Tool):
    """Mark a task as done."""

    name = "complete_task"
    description = "Mark one of the user's tasks as completed. Needs the task id (use get_tasks to find it)."

    parameters = params(
        required=["task_id"],
        task_id=string("Id of the task to complete"),
    )

    async def execute(self, user_id: str, task_id: str) -> ToolResult:
        task = await self.services.require("tasks").complete(user_id, task_id)
        return self.ok({"completed": True, "task": task})


class GetDailyBriefingTool(Tool):
    """Summarize today's pending tasks by priority."""

    name = "get_daily_briefing"
    description = """Get today's briefing: pending tasks grouped by priority (HIGH, MEDIUM, LOW, NOISE) with counts.
Use this when the user asks what they have today or for a summary of their day."""

    async def execute(self, user_id: str) -> ToolResult:
        briefing = await self.services.require("tasks").get_todays_briefing(user_id)
        return self.ok(briefing)
