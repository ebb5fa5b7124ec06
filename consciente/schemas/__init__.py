from consciente.schemas.context import ConversationContext, ExtractedInfo
from consciente.schemas.webhook import WahaPayload, WahaWebhook, WebhookAck

__all__ = ["ConversationContext", "ExtractedInfo", "WahaPayload", "WahaWebhook", "WebhookAck"]
