from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from consciente.models.enums import CustomerIntent

CONTEXT_VERSION = 1


class ExtractedInfo(BaseModel):
    """Customer details the model pulled out of the dialogue."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = Field(default=None, description="Customer name")
    email: Optional[str] = Field(default=None, description="Customer email")
    desired_date: Optional[str] = Field(
        default=None, alias="desiredDate", description="Desired date for the service"
    )
    service_name: Optional[str] = Field(
        default=None, alias="serviceName", description="Specific service requested"
    )
    notes: Optional[str] = Field(default=None, description="Additional details")

    def merged_with(self, newer: "ExtractedInfo") -> "ExtractedInfo":
        """Newer non-empty values win; missing ones keep what we already knew."""
        updates = newer.model_dump(exclude_none=True)
        return self.model_copy(update=updates)


class ConversationContext(BaseModel):
    """Structured, versioned record stored in Conversation.context."""

    model_config = ConfigDict(extra="ignore")

    version: int = CONTEXT_VERSION
    last_intent: Optional[CustomerIntent] = None
    needs_human_agent: bool = False
    extracted_info: ExtractedInfo = Field(default_factory=ExtractedInfo)
    updated_at: Optional[datetime] = None
