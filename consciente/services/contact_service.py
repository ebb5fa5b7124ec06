from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from consciente.errors import GatewayError
from consciente.logging_config import get_logger
from consciente.models import Contact, ContactStatus
from consciente.services.waha_service import ChatGateway

logger = get_logger("contact_service")

DEFAULT_CONTACT_NAME = "Desconocido"


def phone_from_chat_id(chat_id: str) -> str:
    """'5215551234567@c.us' -> '5215551234567'."""
    return (chat_id or "").split("@", 1)[0].strip()


def get_contact_by_phone(db: Session, phone_number: str) -> Optional[Contact]:
    return db.query(Contact).filter(Contact.phone_number == phone_number).first()


def get_contact(db: Session, contact_id: UUID) -> Optional[Contact]:
    return db.query(Contact).filter(Contact.id == contact_id).first()


async def fetch_display_name(gateway: ChatGateway, chat_id: str, placeholder: str = DEFAULT_CONTACT_NAME) -> str:
    """Best-effort WhatsApp profile name; never fails."""
    try:
        info = await gateway.get_contact(chat_id)
    except GatewayError as e:
        logger.warning(f"Could not fetch contact info for {chat_id}: {e}")
        return placeholder

    if not info:
        return placeholder
    name = info.get("pushname") or info.get("name")
    return name.strip() if isinstance(name, str) and name.strip() else placeholder


def _touch(db: Session, contact: Contact) -> Contact:
    contact.last_contact_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(contact)
    return contact


def _find_and_touch(db: Session, phone_number: str) -> Optional[Contact]:
    contact = get_contact_by_phone(db, phone_number)
    return _touch(db, contact) if contact else None


def _create_prospect(db: Session, phone_number: str, name: str) -> Contact:
    now = datetime.now(timezone.utc)
    contact = Contact(
        phone_number=phone_number,
        name=name,
        status=ContactStatus.PROSPECT.value,
        lead_score=0,
        interested_in=[],
        first_contact_at=now,
        last_contact_at=now,
        created_at=now,
    )
    db.add(contact)
    try:
        db.commit()
    except IntegrityError:
        # Someone else created it between our lookup and insert.
        db.rollback()
        contact = get_contact_by_phone(db, phone_number)
        if contact is None:
            raise
        logger.info(
            "Contact created concurrently, re-fetched",
            extra={"context": {"phone_number": phone_number, "contact_id": str(contact.id)}},
        )
        return _touch(db, contact)

    db.refresh(contact)
    logger.info(
        "Contact created",
        extra={"context": {"phone_number": phone_number, "contact_id": str(contact.id), "name": name}},
    )
    return contact


async def resolve_contact(
    db: Session,
    gateway: ChatGateway,
    chat_id: str,
    placeholder_name: str = DEFAULT_CONTACT_NAME,
) -> Contact:
    """
    Find contact by phone number or create a new PROSPECT.

    Store work runs in the threadpool; only the profile lookup awaits on the
    event loop. The returned contact has its attributes loaded.
    """
    phone_number = phone_from_chat_id(chat_id)
    if not phone_number:
        raise ValueError(f"Cannot derive phone number from chat id {chat_id!r}")

    contact = await run_in_threadpool(_find_and_touch, db, phone_number)
    if contact:
        return contact

    name = await fetch_display_name(gateway, chat_id, placeholder_name)
    return await run_in_threadpool(_create_prospect, db, phone_number, name)
