"""Base classes and helpers for agent tools."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, date
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from llm.base_client import ToolDefinition, ToolParameters, ToolProperty
from services.interfaces import DomainServices

logger = logging.getLogger(__name__)

# Accepted spellings of an explicit confirmation
_CONFIRM_WORDS = {"true", "yes", "1", "sí", "si"}


class ToolResult(BaseModel):
    """Result from tool execution."""
    tool_name: str
    success: bool
    result: Any = None
    error: Optional[str] = None


class Tool(ABC):
    """Abstract base class for tools."""
    name: str
    description: str
    parameters: ToolParameters = ToolParameters()

    def __init__(self, services: DomainServices):
        self.services = services

    @abstractmethod
    async def execute(self, user_id: str, **kwargs) -> ToolResult:
        """Execute the tool for user_id with the model-supplied arguments."""
        pass

    def get_definition(self) -> ToolDefinition:
        """Get provider-neutral tool definition."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters
        )

    def ok(self, result: Any) -> ToolResult:
        return ToolResult(tool_name=self.name, success=True, result=dump(result))

    def fail(self, error: str, **extra) -> ToolResult:
        return ToolResult(tool_name=self.name, success=False, result=dump(extra) or None, error=error)


def params(required: Optional[List[str]] = None, **properties: ToolProperty) -> ToolParameters:
    """Build an object parameter schema from keyword properties."""
    return ToolParameters(properties=properties, required=required or [])


def string(description: str, enum: Optional[List[str]] = None) -> ToolProperty:
    return ToolProperty(type="string", description=description, enum=enum)


def integer(description: str) -> ToolProperty:
    return ToolProperty(type="integer", description=description)


def boolean(description: str) -> ToolProperty:
    return ToolProperty(type="boolean", description=description)


def string_list(description: str) -> ToolProperty:
    return ToolProperty(type="array", description=description, items={"type": "string"})


def is_confirmed(value: Any) -> bool:
    """True for an explicit confirmation (True or a yes-like string)."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _CONFIRM_WORDS


def parse_datetime(value: Any, field: str = "date") -> datetime:
    """
    Parse an ISO 8601 date or datetime argument.

    Offsets ("Z", "+02:00") are converted to the local timezone, then dropped.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"invalid {field}: {value!r} (expected ISO 8601)") from e
    # Store naive local times
    return parsed.astimezone().replace(tzinfo=None) if parsed.tzinfo else parsed


def as_list(value: Any) -> List[str]:
    """Accept a list or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value]


def clamp(value: Any, default: int, maximum: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(1, min(number, maximum))


def dump(value: Any) -> Any:
    """Turn pydantic models (also nested in lists/dicts) into JSON-ready data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    if isinstance(value, list):
        return [dump(v) for v in value]
    if isinstance(value, dict):
        return {k: dump(v) for k, v in value.items()}
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value
