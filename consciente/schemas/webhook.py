"""
WAHA webhook body.

Gateways differ in how they fill optional fields (null flags, null payload,
message ids as ``{"_serialized": ...}`` objects), so every field here is
lenient: anything unusable becomes absent instead of failing the request.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("_serialized")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    return value if isinstance(value, str) else None


class WahaPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    body: Optional[str] = None
    fromMe: Optional[bool] = None
    hasMedia: Optional[bool] = None
    timestamp: Optional[int] = None

    @field_validator("id", "from_", "body", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _as_text(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, value: Any) -> Optional[int]:
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None


class WahaWebhook(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str = ""
    session: Optional[str] = None
    payload: WahaPayload = Field(default_factory=WahaPayload)

    @field_validator("event", mode="before")
    @classmethod
    def coerce_event(cls, value: Any) -> str:
        return _as_text(value) or ""

    @field_validator("session", mode="before")
    @classmethod
    def coerce_session(cls, value: Any) -> Optional[str]:
        return _as_text(value)

    @field_validator("payload", mode="before")
    @classmethod
    def coerce_payload(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, WahaPayload)) else {}

    def is_processable_text(self) -> bool:
        """Only plain inbound text messages reach the dialogue pipeline."""
        payload = self.payload
        return (
            self.event == "message"
            and bool(payload.body and payload.body.strip())
            and bool(payload.from_)
            and not payload.fromMe
            and not payload.hasMedia
        )


class WebhookAck(BaseModel):
    message: str
    event: Optional[str] = None
    message_id: Optional[str] = None
