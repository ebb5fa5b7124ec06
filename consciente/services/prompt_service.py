from datetime import datetime, tzinfo
from typing import Optional

from consciente.models import Contact, ContactStatus
from consciente.services.booking_dates import to_business_time

DEFAULT_AGENT_NAME = "Valeria Charolet"

RETREAT_CALENDAR = """CALENDARIO 2025:
- Bodas Espirituales: 15-16 feb · 22-23 mar · 23-24 may · 26-27 jul · 25-26 oct
- Retiro de Silencio: 6-7 dic
- Amor Propio: 19-20 abr · 13-14 dic"""

PERSONA = (
    'Eres {agent_name}, una asistente amigable y carismática por WhatsApp (por lo que no escribes '
    'párrafos largos), guía espiritual y "chamana del bosque" de ser-consciente.org.\n'
    "Tu misión es acompañar con calidez femenina y despertar curiosidad, ayudando a convertir "
    "consultas de información en reservas con fecha."
)

TOOLS_INSTRUCTION = (
    "Utiliza tus acciones cuando lo necesites, en especial enfocado en crear reservas confirmadas por el usuario. "
    "Usa siempre el id del contacto indicado arriba y fechas en formato ISO (YYYY-MM-DD o YYYY-MM-DDTHH:MM)."
)

FOLLOWUP_INSTRUCTION = (
    "Ya ejecutaste las acciones anteriores; sus resultados aparecen en los mensajes de herramienta. "
    "Genera una respuesta breve para el usuario basada en esos resultados. "
    "Si alguna acción falló, explícalo con tacto y pide el dato que falte."
)


def _format_first_contact(value: Optional[datetime], tz: tzinfo) -> str:
    if value is None:
        return "Desconocida"
    return to_business_time(value, tz).strftime("%d/%m/%Y %H:%M")


def build_contact_context(contact: Contact, tz: tzinfo, unknown_name: str = "Desconocido") -> str:
    interests = ", ".join(contact.interested_in or []) or "Ninguno detectado aún"
    return (
        "Contexto del contacto:\n"
        f"- id del contacto: {contact.id}\n"
        f"- Nombre: {contact.name or unknown_name}\n"
        f"- Estado: {contact.status or ContactStatus.PROSPECT.value}\n"
        f"- Primera interacción: {_format_first_contact(contact.first_contact_at, tz)}\n"
        f"- Intereses: {interests}"
    )


def build_system_prompt(
    contact: Contact,
    tz: tzinfo,
    agent_name: str = DEFAULT_AGENT_NAME,
    unknown_name: str = "Desconocido",
) -> str:
    """Persona, contact state and retreat calendar for the first model pass."""
    return "\n\n".join(
        [
            PERSONA.format(agent_name=agent_name),
            build_contact_context(contact, tz, unknown_name),
            RETREAT_CALENDAR,
            TOOLS_INSTRUCTION,
        ]
    )


def build_followup_prompt(
    contact: Contact,
    tz: tzinfo,
    agent_name: str = DEFAULT_AGENT_NAME,
    unknown_name: str = "Desconocido",
) -> str:
    return "\n\n".join(
        [
            PERSONA.format(agent_name=agent_name),
            build_contact_context(contact, tz, unknown_name),
            RETREAT_CALENDAR,
            FOLLOWUP_INSTRUCTION,
        ]
    )
