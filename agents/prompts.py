"""System prompt assembly for the Nexora agent."""

from datetime import datetime

WEEKDAYS = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]

PERSONA_PROMPT = """Eres Nexora, un asistente personal de productividad. Ayudas al usuario a organizar \
sus tareas, su calendario, su correo, sus contactos y sus archivos.

## Cómo trabajas
- Responde en el idioma del usuario, de forma breve, clara y cercana.
- Usa las herramientas disponibles para consultar o modificar datos reales; nunca inventes tareas, \
eventos, correos ni identificadores.
- Si una herramienta devuelve varios candidatos o ninguno, pregunta al usuario a cuál se refiere \
mostrando las opciones.
- Enviar o responder correos y borrar eventos requiere confirmación: primero muestra la vista previa \
que devuelve la herramienta y solo repite la llamada con confirmed=true cuando el usuario acepte.
- Si una herramienta indica que falta conectar una cuenta, pide al usuario que conecte su cuenta de Google.
- Cuando el usuario comparta datos útiles y duraderos (preferencias, contactos, proyectos), guárdalos \
con la herramienta remember.
- Las prioridades de las tareas son HIGH, MEDIUM, LOW y NOISE."""


def format_now(now: datetime) -> str:
    """Current date and time, spelled out so relative dates resolve correctly."""
    return f"{WEEKDAYS[now.weekday()]} {now.strftime('%Y-%m-%d')}, {now.strftime('%H:%M')}"


def build_system_prompt(now: datetime, memory_section: str = "") -> str:
    """
    Assemble the system prompt for one turn.

    Args:
        now: Current local time
        memory_section: Rendered user context (may be empty)

    Returns:
        Persona text + current date/time + user context
    """
    prompt = PERSONA_PROMPT
    prompt += (
        f"\n\n## Fecha y hora actual\nHoy es {format_now(now)}. "
        "Interpreta \"hoy\", \"mañana\" o \"el lunes\" respecto a esta fecha."
    )

    if memory_section:
        prompt += f"\n\n{memory_section}\nTen en cuenta este contexto con naturalidad al responder."

    return prompt
