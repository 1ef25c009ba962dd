"""Follow-up prompt suggestions derived from the assistant's reply."""

from typing import List

MAX_SUGGESTIONS = 3

# (keywords, suggestions) checked in order; first hit wins
SUGGESTION_RULES = [
    (
        ["he creado", "creé", "creada", "creado", "created"],
        ["Crear otra tarea", "Ver todas mis tareas", "¿Qué tengo hoy?"],
    ),
    (
        ["evento", "reunión", "reunion", "agenda", "calendario", "meeting"],
        ["¿Qué tengo en la agenda hoy?", "Ver eventos de esta semana", "Crear un evento"],
    ),
    (
        ["correo", "email", "mensaje de"],
        ["Ver correos no leídos", "Buscar un correo", "¿Cuántos correos sin leer tengo?"],
    ),
    (
        ["tarea", "task"],
        ["Ver todas las tareas", "¿Cuántas tareas HIGH tengo?", "Crear una tarea nueva"],
    ),
]

DEFAULT_SUGGESTIONS = [
    "¿Qué tengo pendiente hoy?",
    "Crear una tarea nueva",
    "Revisar mi agenda",
]


def generate_suggestions(reply: str) -> List[str]:
    """Pick up to three next-step prompts by keyword inspection of the reply."""
    text = (reply or "").lower()
    for keywords, suggestions in SUGGESTION_RULES:
        if any(keyword in text for keyword in keywords):
            return suggestions[:MAX_SUGGESTIONS]
    return DEFAULT_SUGGESTIONS[:MAX_SUGGESTIONS]
