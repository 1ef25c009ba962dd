"""Contacts tools."""

from typing import Any

from .base import Tool, ToolResult, params, string, integer, clamp


class GetContactsTool(Tool):
    name = "get_contacts"
    description = "List the user's contacts."

    parameters = params(max_results=integer("How many contacts (1-100, default 20)"))

    async def execute(self, user_id: str, max_results: Any = 20) -> ToolResult:
        contacts = await self.services.require("contacts").get_contacts(user_id, clamp(max_results, 20, 100))
        return self.ok({"count": len(contacts), "contacts": contacts})


class SearchContactsTool(Tool):
    name = "search_contacts"
    description = """Find contacts by name, email or company.
Use this to get someone's email address before writing to them."""

    parameters = params(
        required=["query"],
        query=string("Name, email or company to look for"),
        max_results=integer("How many contacts (1-50, default 10)"),
    )

    async def execute(self, user_id: str, query: str, max_results: Any = 10) -> ToolResult:
        contacts = await self.services.require("contacts").search_contacts(user_id, query, clamp(max_results, 10, 50))
        return self.ok({"count": len(contacts), "contacts": contacts})
