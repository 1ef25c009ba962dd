"""Email tools."""

import logging
from typing import Any

from services.models import EmailDraft
from .base import Tool, ToolResult, params, string, integer, boolean, string_list, is_confirmed, as_list, clamp

logger = logging.getLogger(__name__)

_CONFIRM_HINT = ("Nothing was sent. Show this preview to the user and ask for confirmation; "
                 "then call again with the same arguments and confirmed=true.")


class GetInboxTool(Tool):
    name = "get_inbox"
    description = "Get the most recent emails of the user's inbox."

    parameters = params(max_results=integer("How many emails (1-50, default 10)"))

    async def execute(self, user_id: str, max_results: Any = 10) -> ToolResult:
        emails = await self.services.require("email").get_inbox_emails(user_id, clamp(max_results, 10, 50))
        return self.ok({"count": len(emails), "emails": emails})


class GetUnreadEmailsTool(Tool):
    name = "get_unread_emails"
    description = "Get the user's unread emails."

    parameters = params(max_results=integer("How many emails (1-50, default 10)"))

    async def execute(self, user_id: str, max_results: Any = 10) -> ToolResult:
        emails = await self.services.require("email").get_unread_emails(user_id, clamp(max_results, 10, 50))
        return self.ok({"count": len(emails), "emails": emails})


class SearchEmailsTool(Tool):
    name = "search_emails"
    description = """Search the user's mailbox. Accepts Gmail query syntax
(e.g. "from:ana@example.com", "subject:factura", "is:unread")."""

    parameters = params(
        required=["query"],
        query=string("Search query"),
        max_results=integer("How many emails (1-50, default 10)"),
    )

    async def execute(self, user_id: str, query: str, max_results: Any = 10) -> ToolResult:
        emails = await self.services.require("email").search_emails(user_id, query, clamp(max_results, 10, 50))
        return self.ok({"count": len(emails), "emails": emails})


class GetEmailDetailTool(Tool):
    name = "get_email_detail"
    description = "Get the full content of one email by id."

    parameters = params(required=["email_id"], email_id=string("Email id"))

    async def execute(self, user_id: str, email_id: str) -> ToolResult:
        email = await self.services.require("email").get_email_detail(user_id, email_id)
        return self.ok(email)


class SendEmailTool(Tool):
    name = "send_email"
    description = """Send an email on behalf of the user. Two steps:
1) call without confirmed: you get a preview, show it and ask the user to confirm;
2) only after the user agrees, call again with the same arguments and confirmed=true."""

    parameters = params(
        required=["to", "subject", "body"],
        to=string_list("Recipient emails"),
        subject=string("Subject"),
        body=string("Plain-text body"),
        cc=string_list("Optional CC emails"),
        confirmed=boolean("true only after the user confirmed sending"),
    )

    async def execute(
        self,
        user_id: str,
        to: Any,
        subject: str,
        body: str,
        cc: Any = None,
        confirmed: Any = None
    ) -> ToolResult:
        draft = EmailDraft(to=as_list(to), subject=subject, body=body, cc=as_list(cc))
        if not draft.to:
            return self.fail("at least one recipient is required")

        if not is_confirmed(confirmed):
            return self.ok({
                "preview": True,
                "action": "send_email",
                "email": draft,
                "message": _CONFIRM_HINT,
            })

        message_id = await self.services.require("email").send_email(user_id, draft)
        logger.info(f"Email sent via agent: {message_id}")
        return self.ok({"sent": True, "message_id": message_id})


class ReplyToEmailTool(Tool):
    name = "reply_to_email"
    description = """Reply to an email. Two steps:
1) call without confirmed: you get a preview, show it and ask the user to confirm;
2) only after the user agrees, call again with the same arguments and confirmed=true."""

    parameters = params(
        required=["email_id", "body"],
        email_id=string("Id of the email to reply to"),
        body=string("Plain-text reply"),
        confirmed=boolean("true only after the user confirmed sending"),
    )

    async def execute(self, user_id: str, email_id: str, body: str, confirmed: Any = None) -> ToolResult:
        email_service = self.services.require("email")

        if not is_confirmed(confirmed):
            original = await email_service.get_email_detail(user_id, email_id)
            return self.ok({
                "preview": True,
                "action": "reply_to_email",
                "in_reply_to": {"id": original.id, "from": original.sender, "subject": original.subject},
                "body": body,
                "message": _CONFIRM_HINT,
            })

        message_id = await email_service.reply_to_email(user_id, email_id, body)
        logger.info(f"Reply sent via agent: {message_id}")
        return self.ok({"sent": True, "message_id": message_id})


class ArchiveEmailTool(Tool):
    name = "archive_email"
    description = "Archive an email (remove it from the inbox)."

    parameters = params(required=["email_id"], email_id=string("Email id"))

    async def execute(self, user_id: str, email_id: str) -> ToolResult:
        await self.services.require("email").archive_email(user_id, email_id)
        return self.ok({"archived": True, "email_id": email_id})


class MarkEmailReadTool(Tool):
    name = "mark_email_read"
    description = "Mark an email as read."

    parameters = params(required=["email_id"], email_id=string("Email id"))

    async def execute(self, user_id: str, email_id: str) -> ToolResult:
        await self.services.require("email").mark_as_read(user_id, email_id)
        return self.ok({"marked_read": True, "email_id": email_id})


class GetUnreadCountTool(Tool):
    name = "get_unread_count"
    description = "Get how many unread emails the user has."

    async def execute(self, user_id: str) -> ToolResult:
        count = await self.services.require("email").get_unread_count(user_id)
        return self.ok({"unread": count})
