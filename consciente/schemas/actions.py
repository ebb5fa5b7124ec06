"""Argument models for the actions the model may call.

The JSON schema advertised to the LLM is generated from these models, so what
the model is told and what the server validates are the same thing.
"""

from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from consciente.models.enums import BookingStatus, ContactStatus, CustomerIntent
from consciente.schemas.context import ExtractedInfo


class ActionArguments(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    contact_id: UUID = Field(alias="contactId", description="Contact ID")


class AnalyzeCustomerIntentArgs(ActionArguments):
    intent: CustomerIntent = Field(description="Primary customer intent")
    contact_status: ContactStatus = Field(
        alias="contactStatus", description="Suggested contact status based on their interaction"
    )
    lead_score: int = Field(
        alias="leadScore", ge=0, le=100, description="Score from 0-100 reflecting how qualified this lead is"
    )
    interested_in: list[str] = Field(
        default_factory=list, alias="interestedIn", description="Services the customer shows interest in"
    )
    needs_human_agent: bool = Field(
        alias="needsHumanAgent", description="Indicates if the inquiry requires a human agent"
    )
    extracted_info: ExtractedInfo = Field(
        default_factory=ExtractedInfo,
        alias="extractedInfo",
        description="Relevant information extracted from the message",
    )


class CreateBookingArgs(ActionArguments):
    service_name: str = Field(alias="serviceName", min_length=1, description="Name of the service to book")
    date_time: str = Field(
        alias="dateTime", description="Date and time of the booking (ISO format, or YYYY-MM-DD)"
    )
    notes: Optional[str] = Field(default=None, description="Additional notes")


class UpdateBookingStatusArgs(ActionArguments):
    booking_id: UUID = Field(alias="bookingId", description="ID of the booking to update")
    status: BookingStatus = Field(description="New status for the booking")
    notes: Optional[str] = Field(default=None, description="Additional notes")


class ContactUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = Field(default=None, description="Contact name")
    email: Optional[str] = Field(default=None, description="Contact email")
    status: Optional[ContactStatus] = Field(default=None, description="Contact status")
    lead_score: Optional[int] = Field(default=None, alias="leadScore", ge=0, le=100, description="Lead score (0-100)")
    source: Optional[str] = Field(default=None, description="Contact source")
    notes: Optional[str] = Field(default=None, description="Note to append to the contact log")
    is_opted_in: Optional[bool] = Field(
        default=None, alias="isOptedIn", description="Has given consent for communications"
    )
    is_active: Optional[bool] = Field(default=None, alias="isActive", description="Whether the contact is active")
    interested_in: Optional[list[str]] = Field(
        default=None, alias="interestedIn", description="Services the customer shows interest in"
    )


class UpdateContactInfoArgs(ActionArguments):
    update_data: ContactUpdate = Field(alias="updateData", description="Fields to update")


class GetContactBookingsArgs(ActionArguments):
    status: Optional[BookingStatus] = Field(default=None, description="Filter by status (optional)")


class AddContactNotesArgs(ActionArguments):
    notes: str = Field(min_length=1, description="Notes to add")


def _inline_refs(node: Any, defs: dict[str, Any]) -> Any:
    if isinstance(node, list):
        return [_inline_refs(item, defs) for item in node]
    if not isinstance(node, dict):
        return node

    if "$ref" in node:
        target = defs[node["$ref"].rsplit("/", 1)[-1]]
        siblings = {key: value for key, value in node.items() if key != "$ref"}
        return _inline_refs({**target, **siblings}, defs)

    # Older pydantic releases wrap a described $ref as allOf: [{$ref}].
    if isinstance(node.get("allOf"), list) and len(node["allOf"]) == 1:
        siblings = {key: value for key, value in node.items() if key != "allOf"}
        return _inline_refs({**node["allOf"][0], **siblings}, defs)

    inlined = {}
    for key, value in node.items():
        if key == "$defs" or (key == "title" and isinstance(value, str)):
            continue
        inlined[key] = _inline_refs(value, defs)
    return inlined


def parameters_schema(model: type[BaseModel]) -> dict[str, Any]:
    """JSON schema for `model` with $defs inlined and titles dropped."""
    schema = model.model_json_schema(by_alias=True)
    return _inline_refs(schema, schema.get("$defs", {}))
