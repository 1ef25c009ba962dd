"""Daily archival job."""

import logging
from typing import List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import BaseModel

from memory.conversation_store import ConversationStore
from .service import ArchiveService

logger = logging.getLogger(__name__)

JOB_ID = "nexora-daily-archive"


class ArchiveRunSummary(BaseModel):
    """Counts of one pass over all users."""
    processed: int = 0
    archived: int = 0
    errors: int = 0
    skipped: bool = False


class ArchiveJob:
    """Runs the archive service for every user that has a primary conversation."""

    def __init__(
        self,
        archive_service: ArchiveService,
        conversation_store: ConversationStore,
        cron_hour: int = 3
    ):
        self.archive_service = archive_service
        self.conversation_store = conversation_store
        self.cron_hour = cron_hour
        self.is_running = False

    def start(self, scheduler: AsyncIOScheduler):
        """Register the daily run on scheduler (the caller starts it)."""
        scheduler.add_job(
            func=self.handle_archive,
            trigger="cron",
            hour=self.cron_hour,
            minute=0,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        logger.info(f"Archive job scheduled daily at {self.cron_hour:02d}:00")

    async def handle_archive(self):
        """Scheduled entry point; skipped while a previous run is still going."""
        logger.info("Starting daily archive job...")
        try:
            summary = await self._run_once()
        except Exception as e:
            logger.error(f"Archive job failed: {e}")
            return

        if not summary.skipped:
            logger.info(
                f"Archive job completed: {summary.archived} users archived, {summary.errors} errors"
            )

    async def run_manually(self) -> ArchiveRunSummary:
        """Run one pass now and report the counts, unless a pass is already going."""
        logger.info("Running manual archive job...")
        return await self._run_once()

    async def _run_once(self) -> ArchiveRunSummary:
        # Checked and set before the first await, so two entry points never overlap.
        if self.is_running:
            logger.warning("Archive job already running, skipping...")
            return ArchiveRunSummary(skipped=True)

        self.is_running = True
        try:
            return await self._run()
        finally:
            self.is_running = False

    async def _run(self) -> ArchiveRunSummary:
        users: List[str] = await self.conversation_store.list_users_with_primary_conversation()
        logger.info(f"Processing {len(users)} users for archiving")

        summary = ArchiveRunSummary(processed=len(users))
        for user_id in users:
            try:
                result = await self.archive_service.archive_old_messages(user_id)
            except Exception as e:
                summary.errors += 1
                logger.error(f"Error archiving messages for user {user_id}: {e}")
                continue

            if result.archived:
                summary.archived += 1
                logger.info(f"Archived {result.message_count} messages for user {user_id}")

        return summary
