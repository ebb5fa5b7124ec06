import json
from uuid import uuid4

import pytest
from pydantic import ValidationError

from consciente.schemas.actions import (
    AnalyzeCustomerIntentArgs,
    CreateBookingArgs,
    UpdateContactInfoArgs,
    parameters_schema,
)
from consciente.services.action_service import ACTION_REGISTRY, ActionName, tool_definitions


class TestToolDefinitions:
    def test_every_action_is_advertised(self):
        names = [tool["function"]["name"] for tool in tool_definitions()]
        assert names == [name.value for name in ActionName]
        assert set(ACTION_REGISTRY) == set(ActionName)

    def test_definitions_are_chat_completion_tools(self):
        for tool in tool_definitions():
            assert tool["type"] == "function"
            assert tool["function"]["description"]
            assert tool["function"]["parameters"]["type"] == "object"

    def test_schemas_have_no_refs(self):
        dumped = json.dumps(tool_definitions())
        assert "$ref" not in dumped
        assert "$defs" not in dumped

    def test_contact_id_is_always_required(self):
        for tool in tool_definitions():
            assert "contactId" in tool["function"]["parameters"]["required"]

    def test_create_booking_schema(self):
        schema = parameters_schema(CreateBookingArgs)
        assert set(schema["required"]) == {"contactId", "serviceName", "dateTime"}
        assert "notes" in schema["properties"]

    def test_nested_models_are_inlined(self):
        schema = parameters_schema(AnalyzeCustomerIntentArgs)
        extracted = schema["properties"]["extractedInfo"]
        assert extracted["type"] == "object"
        assert "desiredDate" in extracted["properties"]
        intent = schema["properties"]["intent"]
        assert "BOOKING_REQUEST" in intent["enum"]


class TestArgumentValidation:
    def test_accepts_camel_case(self):
        contact_id = uuid4()
        args = UpdateContactInfoArgs.model_validate(
            {"contactId": str(contact_id), "updateData": {"leadScore": 40, "isOptedIn": False}}
        )
        assert args.contact_id == contact_id
        assert args.update_data.lead_score == 40
        assert args.update_data.is_opted_in is False

    def test_lead_score_bounds(self):
        with pytest.raises(ValidationError):
            AnalyzeCustomerIntentArgs.model_validate(
                {
                    "contactId": str(uuid4()),
                    "intent": "GREETING",
                    "contactStatus": "LEAD",
                    "leadScore": 101,
                    "needsHumanAgent": False,
                }
            )

    def test_unknown_enum_value(self):
        with pytest.raises(ValidationError):
            AnalyzeCustomerIntentArgs.model_validate(
                {
                    "contactId": str(uuid4()),
                    "intent": "SHOPPING",
                    "contactStatus": "LEAD",
                    "leadScore": 10,
                    "needsHumanAgent": False,
                }
            )

    def test_bad_contact_id(self):
        with pytest.raises(ValidationError):
            CreateBookingArgs.model_validate({"contactId": "abc", "serviceName": "x", "dateTime": "2025-07-26"})
