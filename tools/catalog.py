"""Tool catalog and dispatcher."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from llm.base_client import ToolDefinition
from services.errors import NotConnectedError, ItemNotFoundError
from services.interfaces import DomainServices
from .base import Tool, ToolResult
from . import tasks, calendar, email, contacts, files, memory

logger = logging.getLogger(__name__)

MAX_RESULT_CHARS = 8000
TOOL_NOT_RECOGNIZED = "tool not recognized"
CONNECT_INSTRUCTIONS = "ask the user to connect their Google account"

# Order is the order the model sees them in
DOMAIN_TOOLS = [
    tasks.GetTasksTool,
    tasks.CreateTaskTool,
    tasks.CompleteTaskTool,
    tasks.GetDailyBriefingTool,
    calendar.GetTodayEventsTool,
    calendar.GetUpcomingEventsTool,
    calendar.GetEventsTool,
    calendar.CreateCalendarEventTool,
    calendar.UpdateCalendarEventTool,
    calendar.DeleteCalendarEventTool,
    calendar.CheckAvailabilityTool,
    email.GetInboxTool,
    email.GetUnreadEmailsTool,
    email.SearchEmailsTool,
    email.GetEmailDetailTool,
    email.SendEmailTool,
    email.ReplyToEmailTool,
    email.ArchiveEmailTool,
    email.MarkEmailReadTool,
    email.GetUnreadCountTool,
    contacts.GetContactsTool,
    contacts.SearchContactsTool,
    files.SearchFilesTool,
    files.ListRecentFilesTool,
    files.ListFilesByTypeTool,
    files.ListSharedFilesTool,
    files.ListStarredFilesTool,
    files.GetFileInfoTool,
    files.GetStorageQuotaTool,
]

MEMORY_TOOLS = [
    memory.RememberTool,
    memory.RecallMemoriesTool,
    memory.ForgetTool,
]


class ToolCatalog:
    """
    The tools offered to the model during one turn, and their dispatcher.

    execute_tool never raises: every outcome, failures included, comes back
    as a JSON string the model can read.
    """

    def __init__(self, tools: List[Tool], tool_timeout: Optional[float] = 30.0):
        self.tools: Dict[str, Tool] = {tool.name: tool for tool in tools}
        self.tool_timeout = tool_timeout

    def definitions(self) -> List[ToolDefinition]:
        return [tool.get_definition() for tool in self.tools.values()]

    def names(self) -> List[str]:
        return list(self.tools)

    async def execute_tool(self, user_id: str, name: str, arguments: Optional[Dict[str, Any]]) -> str:
        """
        Execute a tool call from the model.

        Args:
            user_id: User the call acts for
            name: Tool name requested by the model
            arguments: Model-supplied arguments

        Returns:
            JSON string with the result or an {"error": ...} payload
        """
        tool = self.tools.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return _to_json({"error": TOOL_NOT_RECOGNIZED, "tool": name})

        arguments = arguments if isinstance(arguments, dict) else {}
        missing = [key for key in tool.parameters.required if arguments.get(key) in (None, "")]
        if missing:
            return _to_json({"error": f"missing required argument(s): {', '.join(missing)}", "tool": name})

        # Drop anything the tool does not declare
        kwargs = {k: v for k, v in arguments.items() if k in tool.parameters.properties}

        logger.info(f"Executing tool {name} for user {user_id}")
        try:
            result = await asyncio.wait_for(tool.execute(user_id, **kwargs), timeout=self.tool_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Tool {name} timed out after {self.tool_timeout}s")
            return _to_json({"error": "tool timed out", "tool": name})
        except NotConnectedError as e:
            logger.info(f"Tool {name} needs a connected account: {e}")
            return _to_json({
                "error": str(e),
                "needs_connection": True,
                "instructions": CONNECT_INSTRUCTIONS,
            })
        except ItemNotFoundError as e:
            return _to_json({"error": str(e) or "item not found", "not_found": True})
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            return _to_json({"error": str(e) or e.__class__.__name__, "tool": name})

        return self._format_result(result)

    def _format_result(self, result: ToolResult) -> str:
        """Format tool result for LLM consumption."""
        if not result.success:
            payload = {"error": result.error}
            if isinstance(result.result, dict):
                payload.update(result.result)
            return _to_json(payload)

        # Truncate large results
        result_str = _to_json(result.result)
        if len(result_str) > MAX_RESULT_CHARS:
            result_str = result_str[:MAX_RESULT_CHARS] + "\n... (truncated)"
        return result_str


def _to_json(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def build_tool_catalog(
    services: DomainServices,
    memory_store=None,
    archive_service=None,
    tool_timeout: Optional[float] = 30.0
) -> ToolCatalog:
    """
    Build the declarative tool list for one orchestrator call.

    Args:
        services: Domain collaborators (absent ones answer "not connected")
        memory_store: Enables remember / recall_memories / forget
        archive_service: Enables search_conversation_history
        tool_timeout: Per-call time limit in seconds (None disables it)
    """
    tools: List[Tool] = [tool_class(services) for tool_class in DOMAIN_TOOLS]
    if memory_store is not None:
        tools.extend(tool_class(memory_store) for tool_class in MEMORY_TOOLS)
    if archive_service is not None:
        tools.append(memory.SearchConversationHistoryTool(archive_service))
    return ToolCatalog(tools, tool_timeout=tool_timeout)
