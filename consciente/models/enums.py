from enum import Enum


class ContactStatus(str, Enum):
    PROSPECT = "PROSPECT"
    LEAD = "LEAD"
    OPPORTUNITY = "OPPORTUNITY"
    CUSTOMER = "CUSTOMER"
    INACTIVE = "INACTIVE"
    DISQUALIFIED = "DISQUALIFIED"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


OPEN_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class MessageDirection(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class MessageStatus(str, Enum):
    RECEIVED = "RECEIVED"
    SENT = "SENT"


class MessageType(str, Enum):
    TEXT = "TEXT"


class CustomerIntent(str, Enum):
    BOOKING_REQUEST = "BOOKING_REQUEST"
    BOOKING_CONFIRMATION = "BOOKING_CONFIRMATION"
    SERVICE_INQUIRY = "SERVICE_INQUIRY"
    PRICING_INQUIRY = "PRICING_INQUIRY"
    GENERAL_QUESTION = "GENERAL_QUESTION"
    GREETING = "GREETING"
    OTHER = "OTHER"
