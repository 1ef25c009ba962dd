"""Main orchestrator for the Nexora assistant: tool-calling chat over interchangeable LLMs."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, List, Dict

from config.settings import Settings
from schemas.chat import ChatRequest, AgentResponse, AgentReply

# LLM components
from llm.base_client import BaseLLMClient, LLMResponse, Message, ToolDefinition, ToolOutput, tool_exchange_messages
from llm.factory import ProviderRegistry, ProviderStatus, build_registry

# Memory components
from memory.database import Database
from memory.conversation_store import ConversationStore
from memory.memory_store import MemoryStore
from memory.context_manager import ConversationContextManager
from memory.models import Conversation

# Tools and collaborators
from services.interfaces import DomainServices
from tools.catalog import ToolCatalog, build_tool_catalog
from archive.service import ArchiveService

# Prompting and rule-based fallback
from agents.fallback import FallbackResponder
from agents.prompts import build_system_prompt
from agents.suggestions import generate_suggestions, MAX_SUGGESTIONS

logger = logging.getLogger(__name__)

TITLE_LENGTH = 50

COULD_NOT_FINISH_MESSAGE = (
    "No pude terminar esta solicitud: necesitaba demasiados pasos. "
    "¿Puedes concretar un poco más lo que necesitas?"
)
DEGRADED_SERVICE_MESSAGE = (
    "Lo siento, el servicio de IA no está respondiendo en este momento. "
    "Inténtalo de nuevo en unos minutos."
)


class AgentOrchestrator:
    """Runs one chat turn end to end: memory, prompt, model, tools, persistence."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        db: Optional[Database] = None,
        registry: Optional[ProviderRegistry] = None,
        services: Optional[DomainServices] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Application settings
            db: Shared database (opened from settings.db_path if omitted)
            registry: LLM providers (built from settings if omitted)
            services: Domain collaborators the tools act on
            clock: Returns the current local time
        """
        self.settings = settings or Settings()
        self.clock = clock
        self.services = services or DomainServices()

        self._init_memory(db)
        self._init_llm(registry)
        self._init_archive()

        self.fallback = FallbackResponder(tasks_service=self.services.tasks, clock=clock)

    def _init_memory(self, db: Optional[Database]):
        """Initialize storage shared by conversations and memories."""
        self.db = db or Database(self.settings.db_path)
        self.conversation_store = ConversationStore(self.db)
        self.memory_store = MemoryStore(self.db)
        self.context_manager = ConversationContextManager(
            store=self.conversation_store,
            max_messages=self.settings.history_window
        )
        logger.info(f"Memory initialized: {self.db.db_path}")

    def _init_llm(self, registry: Optional[ProviderRegistry]):
        """Initialize provider registry."""
        self.registry = registry or build_registry(self.settings)
        if not self.registry.has_any_provider():
            logger.warning("No LLM provider configured. Using rule-based fallback replies.")

    def _init_archive(self):
        self.archive_service = ArchiveService(
            db=self.db,
            conversation_store=self.conversation_store,
            memory_store=self.memory_store,
            registry=self.registry,
            settings=self.settings,
            clock=self.clock
        )

    def build_catalog(self) -> ToolCatalog:
        """Tool set offered to the model for one turn."""
        return build_tool_catalog(
            self.services,
            memory_store=self.memory_store,
            archive_service=self.archive_service,
            tool_timeout=self.settings.tool_timeout_seconds
        )

    async def chat(self, user_id: str, request: ChatRequest) -> AgentResponse:
        """
        Process a user message end-to-end.

        Args:
            user_id: Caller
            request: Message and optional conversation id

        Returns:
            AgentResponse with the reply, its conversation and follow-up suggestions
        """
        conversation = await self._resolve_conversation(user_id, request.conversation_id)

        # The user's message is stored before anything can fail
        await self.conversation_store.add_message(
            conversation.id, "user", request.message, created_at=self.clock()
        )

        try:
            reply = await asyncio.wait_for(
                self._run_turn(user_id, conversation.id, request.message),
                timeout=self.settings.turn_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Turn for conversation {conversation.id} exceeded {self.settings.turn_timeout_seconds}s, "
                "using rule-based reply"
            )
            reply = await self.fallback.respond(user_id, request.message)
        except Exception as e:
            logger.error(f"Agent turn failed for conversation {conversation.id}: {e}")
            reply = await self.fallback.respond(user_id, request.message)

        await self.conversation_store.add_message(
            conversation.id, "assistant", reply.message, created_at=self.clock()
        )
        await self.conversation_store.set_title_if_missing(conversation.id, request.message[:TITLE_LENGTH])

        return AgentResponse(
            message=reply.message,
            conversation_id=conversation.id,
            suggestions=reply.suggestions[:MAX_SUGGESTIONS],
            actions=reply.actions
        )

    async def _resolve_conversation(self, user_id: str, conversation_id: Optional[str]) -> Conversation:
        """Reuse the conversation if it belongs to the user, else start a new one."""
        if conversation_id:
            existing = await self.conversation_store.get_conversation(user_id, conversation_id)
            if existing:
                return existing
            logger.info(f"Conversation {conversation_id} not found for user {user_id}, creating a new one")

        return await self.conversation_store.create_conversation(user_id)

    async def _run_turn(self, user_id: str, conversation_id: str, message: str) -> AgentReply:
        provider = self.registry.get_available_provider()
        if provider is None:
            logger.info("No AI provider available, using rule-based reply")
            return await self.fallback.respond(user_id, message)

        memories = await self.memory_store.get_relevant_memories(
            user_id, message, self.settings.max_memories_in_prompt
        )
        system_prompt = build_system_prompt(self.clock(), self.context_manager.format_memories(memories))
        history = await self.context_manager.get_context_messages(conversation_id)

        text = await self._run_tool_loop(provider, user_id, history, system_prompt, self.build_catalog())
        return AgentReply(message=text, suggestions=generate_suggestions(text))

    async def _run_tool_loop(
        self,
        provider: BaseLLMClient,
        user_id: str,
        history: List[Message],
        system_prompt: str,
        catalog: ToolCatalog
    ) -> str:
        """
        Call the model and execute the tools it requests until it answers.

        At most max_tool_iterations tool batches are executed; calls inside a
        batch run sequentially.
        """
        tools = catalog.definitions()
        response = await self._chat_with_retry(provider, history, system_prompt, tools)

        messages = list(history)
        iterations = 0
        while response.wants_tools:
            if iterations >= self.settings.max_tool_iterations:
                logger.warning(
                    f"Tool loop stopped after {iterations} iterations ({provider.get_provider_name()})"
                )
                return response.content.strip() or COULD_NOT_FINISH_MESSAGE

            iterations += 1
            results = []
            for call in response.tool_calls:
                output = await catalog.execute_tool(user_id, call.name, call.arguments)
                results.append(ToolOutput(tool_call_id=call.id, result=output))

            next_response = await provider.continue_with_tool_results(
                messages, system_prompt, tools, results, response
            )
            messages.extend(tool_exchange_messages(response, results))
            response = next_response

        text = response.content.strip()
        if not text:
            logger.warning(f"Empty final response from {provider.get_provider_name()}")
            return DEGRADED_SERVICE_MESSAGE
        return text

    async def _chat_with_retry(
        self,
        provider: BaseLLMClient,
        history: List[Message],
        system_prompt: str,
        tools: List[ToolDefinition]
    ) -> LLMResponse:
        """First model call; an empty non-tool answer is retried after a short pause."""
        retries = self.settings.empty_response_retries
        response = await provider.chat(history, system_prompt, tools)

        for attempt in range(1, retries + 1):
            if response.wants_tools or response.content.strip():
                break
            logger.warning(
                f"Empty response from {provider.get_provider_name()}, retrying ({attempt}/{retries})"
            )
            await asyncio.sleep(self.settings.empty_response_retry_delay)
            response = await provider.chat(history, system_prompt, tools)

        return response

    async def get_conversations(self, user_id: str) -> List[Conversation]:
        """Most recently updated conversations of the user."""
        return await self.conversation_store.list_conversations(user_id, limit=20)

    async def get_conversation(self, user_id: str, conversation_id: str) -> Optional[Conversation]:
        """Conversation with its messages in order, or None if not the user's."""
        return await self.conversation_store.get_conversation(user_id, conversation_id, with_messages=True)

    async def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        return await self.conversation_store.delete_conversation(user_id, conversation_id)

    def get_provider_status(self) -> Dict[str, ProviderStatus]:
        return self.registry.get_provider_status()

    def close(self):
        self.db.close()
