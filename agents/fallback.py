"""Rule-based replies used when no LLM is available or the model call fails."""

import logging
import re
from datetime import datetime
from typing import Callable, Optional, List

from schemas.chat import AgentAction, AgentReply
from services.interfaces import TasksService
from services.models import TaskBriefing

logger = logging.getLogger(__name__)

ASSISTANT_NAME = "Nexora"


def greeting_for(now: datetime) -> str:
    """Time-of-day greeting."""
    if now.hour < 12:
        return "¡Buenos días!"
    if now.hour < 19:
        return "¡Buenas tardes!"
    return "¡Buenas noches!"


def _compile(triggers: List[str]) -> "re.Pattern[str]":
    return re.compile(r"\b(?:" + "|".join(re.escape(t) for t in triggers) + r")\b")


class FallbackResponder:
    """
    Deterministic replies by keyword matching.

    Intents are checked in priority order: briefing, create, greeting,
    then a generic answer. Triggers match whole words only, so "hey"
    never fires inside "they".
    """

    def __init__(
        self,
        tasks_service: Optional[TasksService] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize responder with its trigger phrases.

        Args:
            tasks_service: Source of the daily briefing (optional)
            clock: Returns the current local time
        """
        self.tasks_service = tasks_service
        self.clock = clock

        self.briefing_triggers = _compile(["qué tengo", "que tengo", "pendiente", "hoy", "tareas", "resumen"])
        self.create_triggers = _compile(["crear tarea", "agregar tarea", "nueva tarea", "tarea nueva", "añadir tarea"])
        self.greeting_triggers = _compile(["hola", "buenos días", "buenas tardes", "buenas noches", "hey", "saludos"])

    async def respond(self, user_id: str, message: str) -> AgentReply:
        """
        Build a reply for message without an LLM.

        Args:
            user_id: User asking
            message: Raw user message

        Returns:
            AgentReply with text, suggestions and optional actions
        """
        text = message.lower()

        if self.briefing_triggers.search(text):
            briefing = await self._fetch_briefing(user_id)
            if briefing is not None:
                return self._briefing_reply(briefing)
            return self._generic_reply()

        if self.create_triggers.search(text):
            return self._create_task_reply()

        if self.greeting_triggers.search(text):
            return self._greeting_reply()

        return self._generic_reply()

    async def _fetch_briefing(self, user_id: str) -> Optional[TaskBriefing]:
        if self.tasks_service is None:
            return None
        try:
            return await self.tasks_service.get_todays_briefing(user_id)
        except Exception as e:
            logger.warning(f"Briefing unavailable for fallback reply: {e}")
            return None

    def _briefing_reply(self, briefing: TaskBriefing) -> AgentReply:
        summary = briefing.summary

        if summary.total == 0:
            return AgentReply(
                message="¡No tienes tareas pendientes! ¿Quieres crear una nueva?",
                suggestions=["Crear una tarea nueva", "Revisar mi agenda", "Ver correos no leídos"]
            )

        noun = "tarea pendiente" if summary.total == 1 else "tareas pendientes"
        lines = [
            f"{greeting_for(self.clock())} Tienes {summary.total} {noun}: "
            f"{summary.high} HIGH, {summary.medium} MEDIUM, {summary.low} LOW"
            + (f" y {summary.noise} sin clasificar." if summary.noise else "."),
            "",
        ]

        if summary.high > 0:
            lines.append(f"🔴 HIGH ({summary.high}):")
            lines.extend(f"  • {task.title}" for task in briefing.tasks.high)
            lines.append("")

        if summary.medium > 0:
            lines.append(f"🟡 MEDIUM ({summary.medium}):")
            lines.extend(f"  • {task.title}" for task in briefing.tasks.medium[:3])
            lines.append("")

        if summary.noise > 0:
            lines.append(f"💭 NOISE ({summary.noise}): ¿Quieres que te muestre los elementos sin clasificar?")
            lines.append("")

        lines.append("¿Empezamos con alguna tarea específica?")

        actions = None
        if briefing.tasks.high:
            first = briefing.tasks.high[0]
            actions = [AgentAction(
                type="show_task",
                description=f"Ver detalles de: {first.title}",
                data={"task_id": first.id}
            )]

        return AgentReply(
            message="\n".join(lines),
            actions=actions,
            suggestions=[
                "Empezar con la primera tarea HIGH",
                "Ver todas las tareas",
                "Crear una tarea nueva",
            ]
        )

    def _create_task_reply(self) -> AgentReply:
        return AgentReply(
            message="¿Qué tarea quieres crear? Dime el título y la prioridad (HIGH, MEDIUM, LOW).",
            suggestions=[
                "Llamar a cliente - HIGH",
                "Revisar presupuesto - MEDIUM",
                "Organizar archivos - LOW",
            ]
        )

    def _greeting_reply(self) -> AgentReply:
        return AgentReply(
            message=(
                f"{greeting_for(self.clock())} Soy {ASSISTANT_NAME}, tu asistente personal. "
                "Puedo ayudarte con tus tareas, tu agenda, tu correo y tus archivos. ¿Por dónde empezamos?"
            ),
            suggestions=[
                "¿Qué tengo pendiente hoy?",
                "Crear una tarea nueva",
                "Revisar mi agenda",
            ]
        )

    def _generic_reply(self) -> AgentReply:
        return AgentReply(
            message=(
                f"Entiendo tu mensaje. Soy {ASSISTANT_NAME} y ahora mismo funciono en modo básico. "
                "¿En qué puedo ayudarte? Puedes preguntarme sobre tus tareas pendientes, "
                "crear nuevas tareas, o revisar tu día."
            ),
            suggestions=[
                "¿Qué tengo pendiente hoy?",
                "Crear una tarea nueva",
                "¿Cuántas tareas HIGH tengo?",
            ]
        )
