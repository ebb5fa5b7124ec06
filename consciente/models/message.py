import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from consciente.database import Base
from consciente.models.enums import MessageType


class Message(Base):
    __tablename__ = "messages"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid(as_uuid=True), ForeignKey("conversations.id"), nullable=False)
    external_id = Column(Text, unique=True)  # gateway message id, inbound only
    direction = Column(Text, nullable=False)  # INBOUND, OUTBOUND
    content = Column(Text, nullable=False)
    type = Column(Text, nullable=False, default=MessageType.TEXT.value)
    status = Column(Text, nullable=False)  # RECEIVED, SENT
    created_at = Column(DateTime(timezone=True), nullable=False)
    processed_at = Column(DateTime(timezone=True))

    conversation = relationship("Conversation", back_populates="messages")
