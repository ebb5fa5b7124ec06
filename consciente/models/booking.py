import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from consciente.database import Base
from consciente.models.enums import BookingStatus


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid(as_uuid=True), ForeignKey("contacts.id"), nullable=False)
    service_name = Column(Text, nullable=False)
    date_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(Text, nullable=False, default=BookingStatus.PENDING.value)
    notes = Column(Text)
    payment_id = Column(Text, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True))

    contact = relationship("Contact", back_populates="bookings")
