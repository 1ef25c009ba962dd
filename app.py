"""FastAPI application exposing the Nexora agent under /agent."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional, List, Dict

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request, Response, status

from archive.job import ArchiveJob, ArchiveRunSummary
from config.logging_config import setup_logging
from config.settings import Settings
from llm.factory import ProviderStatus
from memory.models import ArchiveStats, Conversation, HistorySearchResult
from orchestrator import AgentOrchestrator
from schemas.chat import ChatRequest, AgentResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agent", tags=["agent"])


def get_orchestrator(request: Request) -> AgentOrchestrator:
    return request.app.state.orchestrator


def get_archive_job(request: Request) -> ArchiveJob:
    return request.app.state.archive_job


def get_user_id(x_user_id: str = Header(alias="X-User-Id", min_length=1)) -> str:
    """Caller identity; authentication happens in front of this service."""
    return x_user_id


@router.post("/chat", response_model=AgentResponse)
async def chat(
    chat_request: ChatRequest,
    user_id: str = Depends(get_user_id),
    orchestrator: AgentOrchestrator = Depends(get_orchestrator)
) -> AgentResponse:
    return await orchestrator.chat(user_id, chat_request)


@router.get("/conversations", response_model=List[Conversation])
async def list_conversations(
    user_id: str = Depends(get_user_id),
    orchestrator: AgentOrchestrator = Depends(get_orchestrator)
) -> List[Conversation]:
    return await orchestrator.get_conversations(user_id)


@router.get("/conversations/{conversation_id}", response_model=Optional[Conversation])
async def get_conversation(
    conversation_id: str,
    user_id: str = Depends(get_user_id),
    orchestrator: AgentOrchestrator = Depends(get_orchestrator)
) -> Optional[Conversation]:
    return await orchestrator.get_conversation(user_id, conversation_id)


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(get_user_id),
    orchestrator: AgentOrchestrator = Depends(get_orchestrator)
) -> Response:
    deleted = await orchestrator.delete_conversation(user_id, conversation_id)
    if not deleted:
        logger.info(f"Delete of conversation {conversation_id} by {user_id} matched nothing")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/providers/status", response_model=Dict[str, ProviderStatus])
async def provider_status(
    orchestrator: AgentOrchestrator = Depends(get_orchestrator)
) -> Dict[str, ProviderStatus]:
    return orchestrator.get_provider_status()


@router.get("/history/search", response_model=List[HistorySearchResult])
async def search_history(
    q: str = Query(min_length=1),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = Query(default=5, ge=1, le=20),
    user_id: str = Depends(get_user_id),
    orchestrator: AgentOrchestrator = Depends(get_orchestrator)
) -> List[HistorySearchResult]:
    return await orchestrator.archive_service.search_history(
        user_id, q, date_from=date_from, date_to=date_to, limit=limit
    )


@router.get("/history/stats", response_model=ArchiveStats)
async def history_stats(
    user_id: str = Depends(get_user_id),
    orchestrator: AgentOrchestrator = Depends(get_orchestrator)
) -> ArchiveStats:
    return await orchestrator.archive_service.get_archive_stats(user_id)


@router.post("/archive/run", response_model=ArchiveRunSummary)
async def run_archive(job: ArchiveJob = Depends(get_archive_job)) -> ArchiveRunSummary:
    return await job.run_manually()


def create_app(
    orchestrator: Optional[AgentOrchestrator] = None,
    settings: Optional[Settings] = None,
    enable_scheduler: bool = True
) -> FastAPI:
    """
    Build the application.

    Args:
        orchestrator: Prebuilt orchestrator (one is created from settings if omitted)
        settings: Application settings
        enable_scheduler: Register and start the daily archive job
    """
    settings = settings or (orchestrator.settings if orchestrator else Settings())
    owns_orchestrator = orchestrator is None
    orchestrator = orchestrator or AgentOrchestrator(settings=settings)
    archive_job = ArchiveJob(
        archive_service=orchestrator.archive_service,
        conversation_store=orchestrator.conversation_store,
        cron_hour=settings.archive_cron_hour
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if enable_scheduler:
            logger.info("Starting archive scheduler via lifespan...")
            scheduler = AsyncIOScheduler()
            archive_job.start(scheduler)
            scheduler.start()
        yield
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        if owns_orchestrator:
            orchestrator.close()

    app = FastAPI(title="Nexora Agent", lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.state.archive_job = archive_job
    app.include_router(router)
    return app


def build_default_app() -> FastAPI:
    """Factory for `uvicorn app:build_default_app --factory`."""
    settings = Settings()
    setup_logging(settings.log_level)
    return create_app(settings=settings)
