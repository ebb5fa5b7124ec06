"""
Per-message dialogue pipeline.

RECEIVED -> CONTACT_RESOLVED -> CONVERSATION_READY -> HISTORY_LOADED ->
MODEL_INVOKED -> [ACTIONS_EXECUTED -> FOLLOWUP_INVOKED] -> REPLY_SENT ->
PERSISTED -> DONE, with FAILED reachable from every step.

When the model proposes tool calls the turn goes through two passes:
ProposedTurn (tool calls) -> ExecutedTurn (one ActionOutcome per call, in
model order) -> NarratedTurn (the follow-up reply). There is exactly one
follow-up call per inbound message that produced tool calls.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from consciente.config import Settings
from consciente.errors import GatewayError, LLMError
from consciente.logging_config import LoggerAdapter, get_logger, pipeline_logger
from consciente.models import Message, MessageDirection
from consciente.services.action_service import execute_action, tool_definitions
from consciente.services.contact_locks import ContactLocks
from consciente.services.contact_service import get_contact, phone_from_chat_id, resolve_contact
from consciente.services.conversation_service import (
    append_message,
    ensure_active_conversation,
    find_inbound_by_external_id,
    get_history,
    history_to_chat_messages,
    mark_processed,
)
from consciente.services.llm import LLMProvider, LLMResponse, ToolCall
from consciente.services.prompt_service import build_followup_prompt, build_system_prompt
from consciente.services.result import Result
from consciente.services.waha_service import ChatGateway

logger = get_logger("orchestrator")


class PipelineStage(str, Enum):
    RECEIVED = "RECEIVED"
    CONTACT_RESOLVED = "CONTACT_RESOLVED"
    CONVERSATION_READY = "CONVERSATION_READY"
    HISTORY_LOADED = "HISTORY_LOADED"
    MODEL_INVOKED = "MODEL_INVOKED"
    ACTIONS_EXECUTED = "ACTIONS_EXECUTED"
    FOLLOWUP_INVOKED = "FOLLOWUP_INVOKED"
    REPLY_SENT = "REPLY_SENT"
    PERSISTED = "PERSISTED"
    DONE = "DONE"
    DUPLICATE = "DUPLICATE"
    FAILED = "FAILED"


@dataclass
class InboundMessage:
    chat_id: str
    content: str
    external_id: Optional[str] = None


@dataclass
class ActionOutcome:
    call: ToolCall
    result: Result[dict]

    def to_tool_message(self) -> dict:
        return {
            "role": "tool",
            "tool_call_id": self.call.id,
            "content": json.dumps(self.result.to_payload(), ensure_ascii=False, default=str),
        }


@dataclass
class ProposedTurn:
    response: LLMResponse

    @property
    def tool_calls(self) -> list[ToolCall]:
        return self.response.tool_calls

    def assistant_message(self) -> dict:
        return {
            "role": "assistant",
            "content": self.response.content or None,
            "tool_calls": [call.to_message_entry() for call in self.tool_calls],
        }


@dataclass
class ExecutedTurn:
    proposed: ProposedTurn
    outcomes: list[ActionOutcome]

    def followup_messages(self) -> list[dict]:
        return [self.proposed.assistant_message()] + [outcome.to_tool_message() for outcome in self.outcomes]


@dataclass
class NarratedTurn:
    reply: str
    executed: Optional[ExecutedTurn] = None

    @property
    def outcomes(self) -> list[ActionOutcome]:
        return self.executed.outcomes if self.executed else []


@dataclass
class PipelineOutcome:
    stage: PipelineStage
    reply: Optional[str] = None
    contact_id: Optional[UUID] = None
    conversation_id: Optional[UUID] = None
    actions: list[ActionOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.stage == PipelineStage.DONE


class DialogueOrchestrator:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        llm: LLMProvider,
        gateway: ChatGateway,
        settings: Settings,
        locks: Optional[ContactLocks] = None,
    ):
        self.session_factory = session_factory
        self.llm = llm
        self.gateway = gateway
        self.settings = settings
        self.locks = locks or ContactLocks()
        self.tz = settings.tz

    async def handle_inbound(self, inbound: InboundMessage) -> PipelineOutcome:
        """
        Run the full pipeline for one inbound text message.

        Messages from the same contact are processed one at a time in arrival
        order. Raises GatewayError only when the final reply could not be
        delivered; every other failure ends in the fallback reply.
        """
        key = phone_from_chat_id(inbound.chat_id) or inbound.chat_id
        async with self.locks.hold(key):
            db = self.session_factory()
            try:
                return await self._run(db, inbound)
            finally:
                db.close()


    # === PIPELINE ===

    async def _run(self, db: Session, inbound: InboundMessage) -> PipelineOutcome:
        log = pipeline_logger(logger, inbound.chat_id, inbound.external_id)
        stage = self._advance(log, PipelineStage.RECEIVED)
        # Plain ids only: ORM attributes expire on every commit.
        contact_id: Optional[UUID] = None
        conversation_id: Optional[UUID] = None

        await self._typing(log, inbound.chat_id, start=True)

        try:
            # 1. Contact and conversation
            contact = await resolve_contact(db, self.gateway, inbound.chat_id, self.settings.unknown_contact_name)
            contact_id = contact.id
            log = log.bind(contact_id=str(contact_id))
            stage = self._advance(log, PipelineStage.CONTACT_RESOLVED)

            # 2. Idempotency on the gateway message id
            conversation_id, inbound_message_id = await run_in_threadpool(
                self._open_turn, db, contact_id, inbound
            )
            log = log.bind(conversation_id=str(conversation_id))
            if inbound_message_id is None:
                log.info("Duplicate inbound message, skipping")
                await self._typing(log, inbound.chat_id, start=False)
                return PipelineOutcome(
                    stage=PipelineStage.DUPLICATE, contact_id=contact_id, conversation_id=conversation_id
                )
            stage = self._advance(log, PipelineStage.CONVERSATION_READY)

            # 3. History
            history = await run_in_threadpool(self._load_history, db, conversation_id, inbound_message_id)
            stage = self._advance(log, PipelineStage.HISTORY_LOADED, history_size=len(history))

            # 4. First pass
            dialogue = history + [{"role": "user", "content": inbound.content}]
            proposed = await self._propose(db, contact_id, dialogue)
            stage = self._advance(log, PipelineStage.MODEL_INVOKED, tool_calls=len(proposed.tool_calls))

            # 5. Actions and follow-up
            if proposed.tool_calls:
                executed = await run_in_threadpool(self._execute, db, proposed, contact_id)
                stage = self._advance(
                    log,
                    PipelineStage.ACTIONS_EXECUTED,
                    actions=[
                        {"name": o.call.name, "ok": o.result.ok, "error_code": o.result.error_code}
                        for o in executed.outcomes
                    ],
                )
                narrated = await self._narrate(db, contact_id, dialogue, executed)
                stage = self._advance(log, PipelineStage.FOLLOWUP_INVOKED)
            else:
                narrated = NarratedTurn(reply=proposed.response.content.strip())

            if not narrated.reply:
                raise LLMError("Model returned an empty reply")
        except Exception as e:
            log.exception(f"Pipeline failed at {stage.value}: {e}", context={"stage": stage.value})
            await self._typing(log, inbound.chat_id, start=False)
            await self._send_fallback(db, log, inbound, conversation_id)
            return PipelineOutcome(
                stage=PipelineStage.FAILED,
                reply=self.settings.fallback_reply,
                contact_id=contact_id,
                conversation_id=conversation_id,
                error=str(e),
            )

        # 6. Deliver
        await self._typing(log, inbound.chat_id, start=False)
        try:
            await self.gateway.send_text(inbound.chat_id, narrated.reply)
        except GatewayError as e:
            log.error(f"Reply delivery failed: {e}", context={"stage": PipelineStage.FAILED.value})
            raise
        stage = self._advance(log, PipelineStage.REPLY_SENT)

        # 7. Persist
        try:
            await run_in_threadpool(self._persist_reply, db, conversation_id, inbound_message_id, narrated.reply)
        except Exception as e:
            log.exception(f"Reply sent but not persisted: {e}", context={"stage": PipelineStage.FAILED.value})
            return PipelineOutcome(
                stage=PipelineStage.FAILED,
                reply=narrated.reply,
                contact_id=contact_id,
                conversation_id=conversation_id,
                actions=narrated.outcomes,
                error=str(e),
            )
        self._advance(log, PipelineStage.PERSISTED)
        self._advance(log, PipelineStage.DONE)

        return PipelineOutcome(
            stage=PipelineStage.DONE,
            reply=narrated.reply,
            contact_id=contact_id,
            conversation_id=conversation_id,
            actions=narrated.outcomes,
        )

    # === STEPS ===

    @staticmethod
    def _advance(log: LoggerAdapter, stage: PipelineStage, **context) -> PipelineStage:
        log.info(f"Pipeline stage {stage.value}", context={"stage": stage.value, **context})
        return stage

    def _open_turn(self, db: Session, contact_id: UUID, inbound: InboundMessage) -> tuple[UUID, Optional[UUID]]:
        """Active conversation id and the stored inbound message id (None if already stored)."""
        conversation = ensure_active_conversation(db, contact_id)
        conversation_id = conversation.id
        message = self._store_inbound(db, conversation_id, inbound)
        return conversation_id, message.id if message else None

    def _store_inbound(self, db: Session, conversation_id: UUID, inbound: InboundMessage) -> Optional[Message]:
        """Persist the inbound message before any model call. None if already stored."""
        if find_inbound_by_external_id(db, inbound.external_id):
            return None
        try:
            message = append_message(
                db, conversation_id, MessageDirection.INBOUND, inbound.content, external_id=inbound.external_id
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            if find_inbound_by_external_id(db, inbound.external_id):
                return None
            raise
        db.refresh(message)
        return message

    def _load_history(self, db: Session, conversation_id: UUID, inbound_message_id: UUID) -> list[dict]:
        return history_to_chat_messages(
            get_history(
                db,
                conversation_id,
                limit=self.settings.history_limit,
                exclude_message_id=inbound_message_id,
            )
        )

    def _render_prompt(self, db: Session, contact_id: UUID, builder: Callable[..., str]) -> str:
        contact = get_contact(db, contact_id)
        if contact is None:
            raise LookupError(f"Contact {contact_id} disappeared mid-turn")
        return builder(contact, self.tz, self.settings.agent_name, self.settings.unknown_contact_name)

    async def _propose(self, db: Session, contact_id: UUID, dialogue: list[dict]) -> ProposedTurn:
        system = await run_in_threadpool(self._render_prompt, db, contact_id, build_system_prompt)
        response = await self.llm.generate(
            messages=[{"role": "system", "content": system}] + dialogue,
            tools=tool_definitions(),
            tool_choice="auto",
            model=self.settings.llm_model,
            temperature=self.settings.llm_temperature,
            max_tokens=self.settings.llm_max_tokens,
        )
        return ProposedTurn(response=response)

    def _execute(self, db: Session, proposed: ProposedTurn, contact_id: UUID) -> ExecutedTurn:
        outcomes = []
        for call in proposed.tool_calls:
            result = execute_action(db, call.name, call.arguments, tz=self.tz, expected_contact_id=contact_id)
            outcomes.append(ActionOutcome(call=call, result=result))
        return ExecutedTurn(proposed=proposed, outcomes=outcomes)

    async def _narrate(
        self, db: Session, contact_id: UUID, dialogue: list[dict], executed: ExecutedTurn
    ) -> NarratedTurn:
        # Rendered after the actions so the prompt reflects what they changed.
        system = await run_in_threadpool(self._render_prompt, db, contact_id, build_followup_prompt)
        response = await self.llm.generate(
            messages=[{"role": "system", "content": system}] + dialogue + executed.followup_messages(),
            tools=tool_definitions(),
            tool_choice="none",
            model=self.settings.llm_model,
            temperature=self.settings.llm_temperature,
            max_tokens=self.settings.llm_max_tokens,
        )
        return NarratedTurn(reply=(response.content or "").strip(), executed=executed)

    def _persist_reply(self, db: Session, conversation_id: UUID, inbound_message_id: UUID, reply: str) -> None:
        try:
            append_message(db, conversation_id, MessageDirection.OUTBOUND, reply)
            mark_processed(db, db.get(Message, inbound_message_id))
            db.commit()
        except Exception:
            db.rollback()
            raise

    async def _typing(self, log: LoggerAdapter, chat_id: str, start: bool) -> None:
        try:
            if start:
                await self.gateway.start_typing(chat_id)
            else:
                await self.gateway.stop_typing(chat_id)
        except GatewayError as e:
            log.warning(f"Typing indicator failed: {e}")

    async def _send_fallback(
        self,
        db: Session,
        log: LoggerAdapter,
        inbound: InboundMessage,
        conversation_id: Optional[UUID],
    ) -> None:
        """Send the apology first; recording it is best effort."""
        reply = self.settings.fallback_reply
        try:
            await self.gateway.send_text(inbound.chat_id, reply)
        except GatewayError as e:
            log.error(f"Fallback reply not delivered: {e}")
            return

        if conversation_id is None:
            return
        try:
            await run_in_threadpool(self._record_fallback, db, conversation_id, reply)
        except Exception as e:
            log.error(f"Fallback reply not persisted: {e}")

    @staticmethod
    def _record_fallback(db: Session, conversation_id: UUID, reply: str) -> None:
        try:
            db.rollback()
            append_message(db, conversation_id, MessageDirection.OUTBOUND, reply)
            db.commit()
        except Exception:
            db.rollback()
            raise
