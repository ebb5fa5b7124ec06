from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from consciente.errors import GatewayError
from consciente.main import app
from consciente.routers.webhook import ACK_IGNORED, ACK_PROCESSING, run_inbound_pipeline
from consciente.services.orchestrator import InboundMessage, PipelineOutcome, PipelineStage


def _payload(**overrides) -> dict:
    payload = {
        "id": "false_5215551234567@c.us_3EB0A1",
        "from": "5215551234567@c.us",
        "body": "Hola, quiero información",
        "fromMe": False,
        "hasMedia": False,
        "timestamp": 1735689600,
    }
    payload.update(overrides)
    return {"event": "message", "session": "default", "payload": payload}


@pytest.fixture
def orchestrator():
    orchestrator = Mock()
    orchestrator.handle_inbound = AsyncMock(return_value=PipelineOutcome(stage=PipelineStage.DONE))
    return orchestrator


@pytest.fixture
def client(orchestrator):
    app.state.orchestrator = orchestrator
    yield TestClient(app)
    del app.state.orchestrator


class TestWebhookClassification:
    def test_text_message_is_processed(self, client, orchestrator):
        response = client.post("/waha/webhook", json=_payload())

        assert response.status_code == 200
        assert response.json() == {"message": ACK_PROCESSING, "message_id": "false_5215551234567@c.us_3EB0A1"}
        orchestrator.handle_inbound.assert_awaited_once()
        inbound = orchestrator.handle_inbound.await_args.args[0]
        assert inbound == InboundMessage(
            chat_id="5215551234567@c.us",
            content="Hola, quiero información",
            external_id="false_5215551234567@c.us_3EB0A1",
        )

    def test_other_events_are_ignored(self, client, orchestrator):
        response = client.post("/waha/webhook", json={"event": "session.status", "payload": {"status": "WORKING"}})

        assert response.status_code == 200
        assert response.json() == {"message": ACK_IGNORED, "event": "session.status"}
        orchestrator.handle_inbound.assert_not_awaited()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"fromMe": True},
            {"hasMedia": True},
            {"body": ""},
            {"body": "   "},
        ],
    )
    def test_non_text_messages_are_ignored(self, client, orchestrator, overrides):
        response = client.post("/waha/webhook", json=_payload(**overrides))

        assert response.json()["message"] == ACK_IGNORED
        orchestrator.handle_inbound.assert_not_awaited()

    def test_null_payload_is_ignored(self, client, orchestrator):
        response = client.post("/waha/webhook", json={"event": "message", "payload": None})

        assert response.status_code == 200
        assert response.json() == {"message": ACK_IGNORED, "event": "message"}
        orchestrator.handle_inbound.assert_not_awaited()

    def test_null_event_is_ignored(self, client, orchestrator):
        response = client.post("/waha/webhook", json={"event": None, "payload": {}})

        assert response.status_code == 200
        assert response.json()["message"] == ACK_IGNORED

    @pytest.mark.parametrize("overrides", [{"hasMedia": None}, {"fromMe": None}, {"timestamp": "ayer"}])
    def test_null_flags_and_bad_timestamp_are_tolerated(self, client, orchestrator, overrides):
        response = client.post("/waha/webhook", json=_payload(**overrides))

        assert response.status_code == 200
        assert response.json()["message"] == ACK_PROCESSING
        orchestrator.handle_inbound.assert_awaited_once()

    def test_serialized_object_id_is_unwrapped(self, client, orchestrator):
        response = client.post("/waha/webhook", json=_payload(id={"fromMe": False, "_serialized": "abc"}))

        assert response.status_code == 200
        assert response.json() == {"message": ACK_PROCESSING, "message_id": "abc"}
        assert orchestrator.handle_inbound.await_args.args[0].external_id == "abc"

    def test_unusable_id_is_treated_as_absent(self, client, orchestrator):
        response = client.post("/waha/webhook", json=_payload(id=["abc"]))

        assert response.status_code == 200
        assert response.json() == {"message": ACK_PROCESSING}
        assert orchestrator.handle_inbound.await_args.args[0].external_id is None

    def test_pipeline_error_does_not_fail_the_webhook(self, client, orchestrator):
        orchestrator.handle_inbound.side_effect = GatewayError("down")

        response = client.post("/waha/webhook", json=_payload())

        assert response.status_code == 200
        assert response.json()["message"] == ACK_PROCESSING


class TestRunInboundPipeline:
    @pytest.mark.asyncio
    async def test_swallows_exceptions(self, orchestrator):
        orchestrator.handle_inbound.side_effect = RuntimeError("boom")
        await run_inbound_pipeline(orchestrator, InboundMessage("521@c.us", "hola", "wamid-1"))
        orchestrator.handle_inbound.assert_awaited_once()


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
