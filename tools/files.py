"""Drive file tools."""

from typing import Any

from .base import Tool, ToolResult, params, string, integer, clamp

FILE_TYPES = ["document", "spreadsheet", "presentation", "folder", "pdf"]


class SearchFilesTool(Tool):
    name = "search_files"
    description = "Search the user's Drive files by name or content."

    parameters = params(
        required=["query"],
        query=string("Text to look for"),
        max_results=integer("How many files (1-50, default 10)"),
    )

    async def execute(self, user_id: str, query: str, max_results: Any = 10) -> ToolResult:
        files = await self.services.require("drive").search_files(user_id, query, clamp(max_results, 10, 50))
        return self.ok({"count": len(files), "files": files})


class ListRecentFilesTool(Tool):
    name = "list_recent_files"
    description = "List the user's most recently modified Drive files."

    parameters = params(max_results=integer("How many files (1-50, default 10)"))

    async def execute(self, user_id: str, max_results: Any = 10) -> ToolResult:
        files = await self.services.require("drive").list_recent_files(user_id, clamp(max_results, 10, 50))
        return self.ok({"count": len(files), "files": files})


class ListFilesByTypeTool(Tool):
    name = "list_files_by_type"
    description = "List the user's Drive files of one kind (documents, spreadsheets, presentations, folders, PDFs)."

    parameters = params(
        required=["file_type"],
        file_type=string("Kind of file", enum=FILE_TYPES),
        max_results=integer("How many files (1-50, default 10)"),
    )

    async def execute(self, user_id: str, file_type: str, max_results: Any = 10) -> ToolResult:
        if file_type not in FILE_TYPES:
            return self.fail(f"unknown file_type {file_type!r}; use one of {', '.join(FILE_TYPES)}")
        files = await self.services.require("drive").list_files_by_type(user_id, file_type, clamp(max_results, 10, 50))
        return self.ok({"count": len(files), "files": files})


class ListSharedFilesTool(Tool):
    name = "list_shared_files"
    description = "List Drive files other people shared with the user."

    parameters = params(max_results=integer("How many files (1-50, default 10)"))

    async def execute(self, user_id: str, max_results: Any = 10) -> ToolResult:
        files = await self.services.require("drive").list_shared_with_me(user_id, clamp(max_results, 10, 50))
        return self.ok({"count": len(files), "files": files})


class ListStarredFilesTool(Tool):
    name = "list_starred_files"
    description = "List the user's starred Drive files."

    parameters = params(max_results=integer("How many files (1-50, default 10)"))

    async def execute(self, user_id: str, max_results: Any = 10) -> ToolResult:
        files = await self.services.require("drive").list_starred_files(user_id, clamp(max_results, 10, 50))
        return self.ok({"count": len(files), "files": files})


class GetFileInfoTool(Tool):
    name = "get_file_info"
    description = "Get details of one Drive file by id."

    parameters = params(required=["file_id"], file_id=string("Drive file id"))

    async def execute(self, user_id: str, file_id: str) -> ToolResult:
        info = await self.services.require("drive").get_file_info(user_id, file_id)
        if info is None:
            return self.fail(f"file {file_id} not found")
        return self.ok(info)


class GetStorageQuotaTool(Tool):
    name = "get_storage_quota"
    description = "Get how much Drive storage the user has used and has available."

    async def execute(self, user_id: str) -> ToolResult:
        quota = await self.services.require("drive").get_storage_quota(user_id)
        return self.ok(quota)
