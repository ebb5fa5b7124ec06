import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from consciente.database import Base
from consciente.models.enums import ContactStatus
from consciente.models.types import JSONType


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    phone_number = Column(Text, nullable=False, unique=True)
    name = Column(Text)
    email = Column(Text)
    source = Column(Text, default="whatsapp")
    status = Column(Text, nullable=False, default=ContactStatus.PROSPECT.value)
    lead_score = Column(Integer, nullable=False, default=0)  # 0-100
    interested_in = Column(JSONType, nullable=False, default=list)
    notes = Column(Text)  # append-only log, one "<timestamp>: <note>" block per entry
    is_opted_in = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    first_contact_at = Column(DateTime(timezone=True), nullable=False)
    last_contact_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True))

    conversations = relationship("Conversation", back_populates="contact")
    bookings = relationship("Booking", back_populates="contact")

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, phone_number={self.phone_number}, status={self.status})>"
