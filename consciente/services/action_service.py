"""Catalog of actions the model may invoke, and their server-side handlers.

Each action is a named entry in ACTION_REGISTRY with an argument model and a
typed handler. Handlers raise NotFoundError / InvalidArgumentError /
ConflictError for recoverable problems; execute_action turns those into a
failed Result so the follow-up pass can explain them to the customer.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from consciente.errors import ActionError, ConflictError, InvalidArgumentError, NotFoundError
from consciente.logging_config import get_logger
from consciente.models import Booking, BookingStatus, Contact, ContactStatus
from consciente.models.enums import OPEN_BOOKING_STATUSES
from consciente.schemas.actions import (
    ActionArguments,
    AddContactNotesArgs,
    AnalyzeCustomerIntentArgs,
    CreateBookingArgs,
    GetContactBookingsArgs,
    UpdateBookingStatusArgs,
    UpdateContactInfoArgs,
    parameters_schema,
)
from consciente.services.booking_dates import format_business_time, parse_booking_datetime, to_business_time
from consciente.services.conversation_service import get_active_conversation, load_context, store_context
from consciente.services.result import Result
from consciente.services.state_machine import InvalidTransitionError, transition

logger = get_logger("action_service")


class ActionName(str, Enum):
    ANALYZE_CUSTOMER_INTENT = "analyzeCustomerIntent"
    CREATE_BOOKING = "createBooking"
    UPDATE_BOOKING_STATUS = "updateBookingStatus"
    UPDATE_CONTACT_INFO = "updateContactInfo"
    GET_CONTACT_BOOKINGS = "getContactBookings"
    ADD_CONTACT_NOTES = "addContactNotes"


Handler = Callable[[Session, Any, tzinfo], dict]


@dataclass(frozen=True)
class ActionSpec:
    name: ActionName
    description: str
    arguments: type[ActionArguments]
    handler: Handler

    def tool_definition(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": parameters_schema(self.arguments),
            },
        }


# === HELPERS ===


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_contact(db: Session, contact_id: UUID) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id).first()
    if not contact:
        raise NotFoundError(f"Contacto {contact_id} no encontrado")
    return contact


def _merge_interests(current: Optional[Iterable[str]], new: Optional[Iterable[str]]) -> list[str]:
    """Union that keeps first-seen order and ignores case/whitespace duplicates."""
    merged: list[str] = []
    seen: set[str] = set()
    for item in list(current or []) + list(new or []):
        if not isinstance(item, str):
            continue
        cleaned = item.strip()
        key = cleaned.casefold()
        if not cleaned or key in seen:
            continue
        merged.append(cleaned)
        seen.add(key)
    return merged


def _append_line(existing: Optional[str], line: str, separator: str = "\n") -> str:
    return f"{existing}{separator}{line}" if existing else line


def _contact_payload(contact: Contact) -> dict:
    return {
        "id": str(contact.id),
        "name": contact.name,
        "email": contact.email,
        "phoneNumber": contact.phone_number,
        "status": contact.status,
        "leadScore": contact.lead_score,
        "interestedIn": list(contact.interested_in or []),
        "isOptedIn": contact.is_opted_in,
        "isActive": contact.is_active,
    }


def _booking_payload(booking: Booking, tz: tzinfo) -> dict:
    return {
        "id": str(booking.id),
        "contactId": str(booking.contact_id),
        "serviceName": booking.service_name,
        "dateTime": to_business_time(booking.date_time, tz).isoformat(),
        "status": booking.status,
        "notes": booking.notes or "",
    }


def _count_open_bookings(db: Session, contact_id: UUID) -> int:
    return (
        db.query(func.count(Booking.id))
        .filter(Booking.contact_id == contact_id, Booking.status.in_(OPEN_BOOKING_STATUSES))
        .scalar()
        or 0
    )


# === HANDLERS ===


def analyze_customer_intent(db: Session, args: AnalyzeCustomerIntentArgs, tz: tzinfo) -> dict:
    contact = _require_contact(db, args.contact_id)
    conversation = get_active_conversation(db, contact.id)
    if not conversation:
        raise NotFoundError(f"No hay conversación activa para el contacto {contact.id}")

    info = args.extracted_info
    contact.status = args.contact_status.value
    contact.lead_score = args.lead_score
    if info.name:
        contact.name = info.name.strip()
    if info.email:
        contact.email = info.email.strip()
    if args.interested_in:
        contact.interested_in = _merge_interests(contact.interested_in, args.interested_in)
    contact.updated_at = _now()

    context = load_context(conversation)
    store_context(
        conversation,
        context.model_copy(
            update={
                "last_intent": args.intent,
                "needs_human_agent": args.needs_human_agent,
                "extracted_info": context.extracted_info.merged_with(info),
                "updated_at": _now(),
            }
        ),
    )
    db.flush()

    return {
        "contact": _contact_payload(contact),
        "intent": args.intent.value,
        "needsHumanAgent": args.needs_human_agent,
        "message": f"Contacto actualizado: {args.contact_status.value}, score: {args.lead_score}",
    }


def create_booking(db: Session, args: CreateBookingArgs, tz: tzinfo) -> dict:
    contact = _require_contact(db, args.contact_id)
    scheduled = parse_booking_datetime(args.date_time, tz)
    service_name = args.service_name.strip()

    existing = (
        db.query(Booking)
        .filter(
            Booking.contact_id == contact.id,
            func.lower(Booking.service_name) == service_name.lower(),
            Booking.date_time == scheduled,
            Booking.status.in_(OPEN_BOOKING_STATUSES),
        )
        .first()
    )
    if existing:
        return {
            "booking": _booking_payload(existing, tz),
            "created": False,
            "message": f"La reserva ya existía: {existing.service_name} para {format_business_time(existing.date_time, tz)}",
        }

    now = _now()
    booking = Booking(
        contact_id=contact.id,
        service_name=service_name,
        date_time=scheduled,
        status=BookingStatus.PENDING.value,
        notes=args.notes or "",
        created_at=now,
        updated_at=now,
    )
    db.add(booking)
    contact.status = ContactStatus.OPPORTUNITY.value
    contact.updated_at = now
    db.flush()

    return {
        "booking": _booking_payload(booking, tz),
        "created": True,
        "message": f"Reserva creada: {service_name} para {format_business_time(scheduled, tz)}",
    }


def update_booking_status(db: Session, args: UpdateBookingStatusArgs, tz: tzinfo) -> dict:
    booking = db.query(Booking).filter(Booking.id == args.booking_id).first()
    if not booking:
        raise NotFoundError(f"Reserva {args.booking_id} no encontrada")
    if booking.contact_id != args.contact_id:
        raise ConflictError("Esta reserva no pertenece al contacto indicado")

    try:
        new_status = transition(BookingStatus(booking.status), args.status)
    except InvalidTransitionError as e:
        raise ConflictError(
            f"No se puede cambiar la reserva de {e.from_state.value} a {e.to_state.value}"
        ) from None

    now = _now()
    booking.status = new_status.value
    if args.notes:
        booking.notes = _append_line(booking.notes, args.notes)
    booking.updated_at = now
    db.flush()

    contact = _require_contact(db, booking.contact_id)
    if new_status == BookingStatus.COMPLETED:
        contact.status = ContactStatus.CUSTOMER.value
        contact.updated_at = now
    elif new_status in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW):
        if _count_open_bookings(db, contact.id) == 0:
            contact.status = ContactStatus.LEAD.value
            contact.updated_at = now
    db.flush()

    return {
        "booking": _booking_payload(booking, tz),
        "contactStatus": contact.status,
        "message": f"Reserva actualizada a {new_status.value}",
    }


def update_contact_info(db: Session, args: UpdateContactInfoArgs, tz: tzinfo) -> dict:
    contact = _require_contact(db, args.contact_id)
    data = args.update_data
    if not data.model_dump(exclude_none=True):
        raise InvalidArgumentError("No se indicaron campos para actualizar")

    now = _now()
    if data.name is not None:
        contact.name = data.name.strip()
    if data.email is not None:
        contact.email = data.email.strip()
    if data.status is not None:
        contact.status = data.status.value
    if data.lead_score is not None:
        contact.lead_score = data.lead_score
    if data.source is not None:
        contact.source = data.source
    if data.is_opted_in is not None:
        contact.is_opted_in = data.is_opted_in
    if data.is_active is not None:
        contact.is_active = data.is_active
    if data.interested_in is not None:
        contact.interested_in = _merge_interests(contact.interested_in, data.interested_in)
    if data.notes:
        contact.notes = _append_note(contact.notes, data.notes, now, tz)
    contact.updated_at = now
    db.flush()

    return {"contact": _contact_payload(contact), "message": "Información de contacto actualizada"}


def get_contact_bookings(db: Session, args: GetContactBookingsArgs, tz: tzinfo) -> dict:
    contact = _require_contact(db, args.contact_id)
    query = db.query(Booking).filter(Booking.contact_id == contact.id)
    if args.status is not None:
        query = query.filter(Booking.status == args.status.value)
    bookings = query.order_by(Booking.date_time.asc()).all()

    return {
        "bookings": [_booking_payload(booking, tz) for booking in bookings],
        "message": f"{len(bookings)} reservas encontradas",
    }


def _append_note(existing: Optional[str], note: str, now: datetime, tz: tzinfo) -> str:
    stamp = to_business_time(now, tz).strftime("%d/%m/%Y %H:%M")
    return _append_line(existing, f"{stamp}: {note.strip()}", separator="\n\n")


def add_contact_notes(db: Session, args: AddContactNotesArgs, tz: tzinfo) -> dict:
    contact = _require_contact(db, args.contact_id)
    now = _now()
    contact.notes = _append_note(contact.notes, args.notes, now, tz)
    contact.updated_at = now
    db.flush()

    return {"contact": _contact_payload(contact), "message": "Notas agregadas correctamente"}


# === REGISTRY ===


ACTION_REGISTRY: dict[ActionName, ActionSpec] = {
    ActionName.ANALYZE_CUSTOMER_INTENT: ActionSpec(
        name=ActionName.ANALYZE_CUSTOMER_INTENT,
        description=(
            "Analyzes customer intent only when they don't specifically request booking. "
            "If they specify booking, DO NOT use this function."
        ),
        arguments=AnalyzeCustomerIntentArgs,
        handler=analyze_customer_intent,
    ),
    ActionName.CREATE_BOOKING: ActionSpec(
        name=ActionName.CREATE_BOOKING,
        description="Creates a booking record in the system when the customer requests it.",
        arguments=CreateBookingArgs,
        handler=create_booking,
    ),
    ActionName.UPDATE_BOOKING_STATUS: ActionSpec(
        name=ActionName.UPDATE_BOOKING_STATUS,
        description="Updates the status of an existing booking",
        arguments=UpdateBookingStatusArgs,
        handler=update_booking_status,
    ),
    ActionName.UPDATE_CONTACT_INFO: ActionSpec(
        name=ActionName.UPDATE_CONTACT_INFO,
        description="Updates contact information",
        arguments=UpdateContactInfoArgs,
        handler=update_contact_info,
    ),
    ActionName.GET_CONTACT_BOOKINGS: ActionSpec(
        name=ActionName.GET_CONTACT_BOOKINGS,
        description="Gets bookings for a contact, ordered by date",
        arguments=GetContactBookingsArgs,
        handler=get_contact_bookings,
    ),
    ActionName.ADD_CONTACT_NOTES: ActionSpec(
        name=ActionName.ADD_CONTACT_NOTES,
        description="Adds notes to a contact",
        arguments=AddContactNotesArgs,
        handler=add_contact_notes,
    ),
}


def tool_definitions() -> list[dict]:
    """Action catalog in the chat-completions `tools` format."""
    return [spec.tool_definition() for spec in ACTION_REGISTRY.values()]


def _decode_arguments(raw_arguments: Any) -> dict:
    if isinstance(raw_arguments, dict):
        return raw_arguments
    if raw_arguments is None or raw_arguments == "":
        return {}
    decoded = json.loads(raw_arguments)
    if not isinstance(decoded, dict):
        raise ValueError("arguments must be a JSON object")
    return decoded


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def execute_action(
    db: Session,
    name: str,
    raw_arguments: Any,
    *,
    tz: tzinfo,
    expected_contact_id: Optional[UUID] = None,
) -> Result[dict]:
    """
    Validate and run one action in its own transaction.

    Returns Result.failure with code not_found / invalid_argument / conflict
    for recoverable problems. Unexpected errors roll back and propagate.
    """
    try:
        action = ActionName(name)
    except ValueError:
        logger.warning(f"Unknown action requested: {name}")
        return Result.failure(f"Acción desconocida: {name}", InvalidArgumentError.code)

    spec = ACTION_REGISTRY[action]
    try:
        arguments = spec.arguments.model_validate(_decode_arguments(raw_arguments))
    except ValidationError as e:
        message = _describe_validation_error(e)
        logger.warning(
            "Invalid action arguments",
            extra={"context": {"action": action.value, "error": message}},
        )
        return Result.failure(f"Argumentos inválidos: {message}", InvalidArgumentError.code)
    except ValueError as e:
        logger.warning(
            "Unparsable action arguments",
            extra={"context": {"action": action.value, "error": str(e)}},
        )
        return Result.failure(f"Argumentos inválidos: {e}", InvalidArgumentError.code)

    if expected_contact_id is not None and arguments.contact_id != expected_contact_id:
        logger.warning(
            "Action targets a different contact",
            extra={
                "context": {
                    "action": action.value,
                    "expected_contact_id": str(expected_contact_id),
                    "contact_id": str(arguments.contact_id),
                }
            },
        )
        return Result.failure("La acción no corresponde al contacto de esta conversación", ConflictError.code)

    try:
        value = spec.handler(db, arguments, tz)
        db.commit()
    except ActionError as e:
        db.rollback()
        logger.info(
            "Action failed",
            extra={"context": {"action": action.value, "error_code": e.code, "error": e.message}},
        )
        return Result.failure(e.message, e.code)
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Action executed",
        extra={"context": {"action": action.value, "contact_id": str(arguments.contact_id)}},
    )
    return Result.success(value)
