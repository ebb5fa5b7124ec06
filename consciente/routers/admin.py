"""Admin read endpoints for contacts and bookings."""

import math
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Query as OrmQuery
from sqlalchemy.orm import Session

from consciente.config import Settings, get_settings
from consciente.database import get_db
from consciente.errors import InvalidArgumentError
from consciente.models import Booking, BookingStatus, Contact, ContactStatus, Conversation
from consciente.services.booking_dates import parse_booking_datetime, to_business_time

router = APIRouter(prefix="/admin", tags=["admin"])

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ContactSort(str, Enum):
    LAST_CONTACT_AT = "last_contact_at"
    CREATED_AT = "created_at"
    NAME = "name"
    LEAD_SCORE = "lead_score"


class BookingSort(str, Enum):
    DATE_TIME = "date_time"
    CREATED_AT = "created_at"
    SERVICE_NAME = "service_name"
    STATUS = "status"


def _require_admin_token(provided: Optional[str], settings: Settings) -> None:
    expected = settings.admin_token
    if not expected:
        return
    if provided != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def _pagination(total: int, page: int, limit: int) -> dict:
    total_pages = math.ceil(total / limit) if total else 0
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }


def _paginate(query: OrmQuery, page: int, limit: int) -> tuple[list, dict]:
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, _pagination(total, page, limit)


def _ordering(model, sort_by: Enum, sort_order: SortOrder) -> list:
    column = getattr(model, sort_by.value)
    primary = column.asc() if sort_order == SortOrder.ASC else column.desc()
    # Stable pages when the sort column has ties.
    return [primary, model.id.asc()]


def _like(search: str) -> str:
    return f"%{search.strip().lower()}%"


def _format_dt(value, settings: Settings) -> Optional[str]:
    if value is None:
        return None
    return to_business_time(value, settings.tz).isoformat()


def _parse_date_filter(value: Optional[str], settings: Settings, name: str):
    if not value:
        return None
    try:
        return parse_booking_datetime(value, settings.tz)
    except InvalidArgumentError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}") from None


# === CONTACTS ===


@router.get("/contacts")
def list_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    status: Optional[ContactStatus] = None,
    search: Optional[str] = None,
    sort_by: ContactSort = ContactSort.LAST_CONTACT_AT,
    sort_order: SortOrder = SortOrder.DESC,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
):
    """Contacts, most recent activity first unless sort_by/sort_order say otherwise."""
    _require_admin_token(x_admin_token, settings)

    query = db.query(Contact)
    if status:
        query = query.filter(Contact.status == status.value)
    if search and search.strip():
        pattern = _like(search)
        query = query.filter(
            or_(
                func.lower(Contact.name).like(pattern),
                func.lower(Contact.email).like(pattern),
                Contact.phone_number.like(pattern),
            )
        )
    query = query.order_by(*_ordering(Contact, sort_by, sort_order))
    contacts, pagination = _paginate(query, page, limit)

    ids = [contact.id for contact in contacts]
    booking_counts = dict(
        db.query(Booking.contact_id, func.count(Booking.id))
        .filter(Booking.contact_id.in_(ids))
        .group_by(Booking.contact_id)
        .all()
    ) if ids else {}
    conversation_counts = dict(
        db.query(Conversation.contact_id, func.count(Conversation.id))
        .filter(Conversation.contact_id.in_(ids))
        .group_by(Conversation.contact_id)
        .all()
    ) if ids else {}

    items = [
        {
            "id": str(contact.id),
            "phone_number": contact.phone_number,
            "name": contact.name,
            "email": contact.email,
            "status": contact.status,
            "lead_score": contact.lead_score,
            "interested_in": list(contact.interested_in or []),
            "is_opted_in": contact.is_opted_in,
            "is_active": contact.is_active,
            "first_contact_at": _format_dt(contact.first_contact_at, settings),
            "last_contact_at": _format_dt(contact.last_contact_at, settings),
            "bookings_count": booking_counts.get(contact.id, 0),
            "conversations_count": conversation_counts.get(contact.id, 0),
        }
        for contact in contacts
    ]
    return {"success": True, "data": {"items": items, "pagination": pagination}}


# === BOOKINGS ===


@router.get("/bookings")
def list_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    status: Optional[BookingStatus] = None,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: BookingSort = BookingSort.DATE_TIME,
    sort_order: SortOrder = SortOrder.DESC,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
):
    """Bookings, latest date first by default. Dates without an offset are business-local."""
    _require_admin_token(x_admin_token, settings)

    start = _parse_date_filter(from_date, settings, "from_date")
    end = _parse_date_filter(to_date, settings, "to_date")

    query = db.query(Booking).join(Contact, Booking.contact_id == Contact.id)
    if status:
        query = query.filter(Booking.status == status.value)
    if start:
        query = query.filter(Booking.date_time >= start)
    if end:
        query = query.filter(Booking.date_time <= end)
    if search and search.strip():
        pattern = _like(search)
        query = query.filter(
            or_(
                func.lower(Booking.service_name).like(pattern),
                func.lower(Booking.notes).like(pattern),
                func.lower(Contact.name).like(pattern),
                Contact.phone_number.like(pattern),
            )
        )
    query = query.order_by(*_ordering(Booking, sort_by, sort_order))
    bookings, pagination = _paginate(query, page, limit)

    items = [
        {
            "id": str(booking.id),
            "service_name": booking.service_name,
            "date_time": _format_dt(booking.date_time, settings),
            "status": booking.status,
            "notes": booking.notes or "",
            "contact": {
                "id": str(booking.contact.id),
                "name": booking.contact.name,
                "phone_number": booking.contact.phone_number,
            },
        }
        for booking in bookings
    ]
    return {"success": True, "data": {"items": items, "pagination": pagination}}
