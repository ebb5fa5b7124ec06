from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from consciente.logging_config import get_logger
from consciente.models import Conversation, Message, MessageDirection, MessageStatus, MessageType
from consciente.schemas.context import ConversationContext

logger = get_logger("conversation_service")

DEFAULT_HISTORY_LIMIT = 10


def get_active_conversation(db: Session, contact_id: UUID) -> Optional[Conversation]:
    """Most recently started active conversation for the contact."""
    return (
        db.query(Conversation)
        .filter(Conversation.contact_id == contact_id, Conversation.is_active.is_(True))
        .order_by(Conversation.started_at.desc())
        .first()
    )


def ensure_active_conversation(db: Session, contact_id: UUID) -> Conversation:
    """Find active conversation or create new one."""
    conversation = get_active_conversation(db, contact_id)
    if conversation:
        return conversation

    conversation = Conversation(
        contact_id=contact_id,
        started_at=datetime.now(timezone.utc),
        is_active=True,
        context=ConversationContext().model_dump(mode="json"),
    )
    db.add(conversation)
    try:
        db.commit()
    except IntegrityError:
        # Another worker opened one first; the unique index keeps a single active row.
        db.rollback()
        conversation = get_active_conversation(db, contact_id)
        if conversation is None:
            raise
        logger.info(
            "Active conversation created concurrently, reusing",
            extra={"context": {"contact_id": str(contact_id), "conversation_id": str(conversation.id)}},
        )
        return conversation

    logger.info(
        "Conversation opened",
        extra={"context": {"contact_id": str(contact_id), "conversation_id": str(conversation.id)}},
    )
    return conversation


def append_message(
    db: Session,
    conversation_id: UUID,
    direction: MessageDirection,
    content: str,
    external_id: Optional[str] = None,
) -> Message:
    """Save message to database. Messages are never edited afterwards."""
    status = MessageStatus.SENT if direction == MessageDirection.OUTBOUND else MessageStatus.RECEIVED
    message = Message(
        conversation_id=conversation_id,
        external_id=external_id,
        direction=direction.value,
        content=content,
        type=MessageType.TEXT.value,
        status=status.value,
        created_at=datetime.now(timezone.utc),
    )
    db.add(message)
    db.flush()
    return message


def find_inbound_by_external_id(db: Session, external_id: Optional[str]) -> Optional[Message]:
    if not external_id:
        return None
    return (
        db.query(Message)
        .filter(Message.external_id == external_id, Message.direction == MessageDirection.INBOUND.value)
        .first()
    )


def mark_processed(db: Session, message: Message) -> None:
    message.processed_at = datetime.now(timezone.utc)
    db.flush()


def get_history(
    db: Session,
    conversation_id: UUID,
    limit: int = DEFAULT_HISTORY_LIMIT,
    exclude_message_id: Optional[UUID] = None,
) -> list[Message]:
    """Last `limit` messages of the conversation, oldest first."""
    query = db.query(Message).filter(Message.conversation_id == conversation_id)
    if exclude_message_id is not None:
        query = query.filter(Message.id != exclude_message_id)
    rows = query.order_by(Message.created_at.desc()).limit(limit).all()
    return list(reversed(rows))


def history_to_chat_messages(messages: list[Message]) -> list[dict]:
    """Convert stored messages to role-tagged chat entries for the LLM."""
    history = []
    for msg in messages:
        if not msg.content:
            continue
        role = "user" if msg.direction == MessageDirection.INBOUND.value else "assistant"
        history.append({"role": role, "content": msg.content})
    return history


def load_context(conversation: Conversation) -> ConversationContext:
    return ConversationContext.model_validate(conversation.context or {})


def store_context(conversation: Conversation, context: ConversationContext) -> None:
    # Assign a fresh dict so the JSON column is flagged dirty.
    conversation.context = context.model_dump(mode="json")
