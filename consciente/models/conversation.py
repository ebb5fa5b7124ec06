import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Text, Uuid, text
from sqlalchemy.orm import relationship

from consciente.database import Base
from consciente.models.types import JSONType


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        # At most one active conversation per contact.
        Index(
            "uq_conversations_active_contact",
            "contact_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid(as_uuid=True), ForeignKey("contacts.id"), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True))
    is_active = Column(Boolean, nullable=False, default=True)
    context = Column(JSONType, nullable=False, default=dict)
    summary = Column(Text)
    sentiment = Column(Text)  # positive, neutral, negative

    contact = relationship("Contact", back_populates="conversations")
    messages = relationship("Message", back_populates="conversation")
