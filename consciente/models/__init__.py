from consciente.models.booking import Booking
from consciente.models.contact import Contact
from consciente.models.conversation import Conversation
from consciente.models.enums import (
    BookingStatus,
    ContactStatus,
    CustomerIntent,
    MessageDirection,
    MessageStatus,
    MessageType,
)
from consciente.models.message import Message

__all__ = [
    "Contact",
    "Conversation",
    "Message",
    "Booking",
    "ContactStatus",
    "BookingStatus",
    "CustomerIntent",
    "MessageDirection",
    "MessageStatus",
    "MessageType",
]
