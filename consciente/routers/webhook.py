from fastapi import APIRouter, BackgroundTasks, Request

from consciente.logging_config import get_logger
from consciente.schemas.webhook import WahaWebhook, WebhookAck
from consciente.services.orchestrator import DialogueOrchestrator, InboundMessage

logger = get_logger("webhook")

router = APIRouter()

ACK_PROCESSING = "Webhook received, processing text message"
ACK_IGNORED = "Webhook received but not processed (not a text message)"


async def run_inbound_pipeline(orchestrator: DialogueOrchestrator, inbound: InboundMessage) -> None:
    """Background entry point. Errors are logged, never re-raised."""
    try:
        outcome = await orchestrator.handle_inbound(inbound)
    except Exception as e:
        logger.exception(
            f"Inbound pipeline crashed: {e}",
            extra={"context": {"chat_id": inbound.chat_id, "external_id": inbound.external_id}},
        )
        return

    logger.info(
        "Inbound pipeline finished",
        extra={
            "context": {
                "chat_id": inbound.chat_id,
                "external_id": inbound.external_id,
                "stage": outcome.stage.value,
                "actions": len(outcome.actions),
            }
        },
    )


@router.post("/waha/webhook", response_model=WebhookAck, response_model_exclude_none=True)
async def waha_webhook(body: WahaWebhook, request: Request, background_tasks: BackgroundTasks):
    """Acknowledge immediately; the dialogue pipeline runs after the response is sent."""
    if not body.is_processable_text():
        logger.debug(f"Ignoring webhook event: {body.event}")
        return WebhookAck(message=ACK_IGNORED, event=body.event)

    payload = body.payload
    inbound = InboundMessage(chat_id=payload.from_, content=payload.body.strip(), external_id=payload.id)
    logger.info(
        "Inbound text message queued",
        extra={"context": {"chat_id": inbound.chat_id, "external_id": inbound.external_id}},
    )

    orchestrator: DialogueOrchestrator = request.app.state.orchestrator
    background_tasks.add_task(run_inbound_pipeline, orchestrator, inbound)
    return WebhookAck(message=ACK_PROCESSING, message_id=inbound.external_id)
