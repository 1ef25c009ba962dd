"""Tools the agent can call, and the catalog that dispatches them."""

from .base import Tool, ToolResult
from .catalog import ToolCatalog, build_tool_catalog, TOOL_NOT_RECOGNIZED
from .matching import EventMatch, MatchConfidence, match_event, parse_time_token

__all__ = [
    "Tool",
    "ToolResult",
    "ToolCatalog",
    "build_tool_catalog",
    "TOOL_NOT_RECOGNIZED",
    "EventMatch",
    "MatchConfidence",
    "match_event",
    "parse_time_token",
]
