import json
import logging

from consciente.logging_config import JSONFormatter, LoggerAdapter, get_logger, pipeline_logger


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("consciente.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record("hola")))
        assert data["level"] == "INFO"
        assert data["logger"] == "consciente.test"
        assert data["message"] == "hola"
        assert "context" not in data

    def test_context_is_included(self):
        data = json.loads(JSONFormatter().format(_record("hola", context={"history_size": 3})))
        assert data["context"] == {"history_size": 3}

    def test_pipeline_fields_are_top_level(self):
        record = _record("stage", context={"stage": "RECEIVED", "chat_id": "521@c.us", "tool_calls": 2})
        data = json.loads(JSONFormatter().format(record))
        assert data["stage"] == "RECEIVED"
        assert data["chat_id"] == "521@c.us"
        assert data["context"] == {"tool_calls": 2}

    def test_missing_pipeline_fields_are_left_out(self):
        data = json.loads(JSONFormatter().format(_record("hola", context={"external_id": None})))
        assert "external_id" not in data

    def test_non_serializable_context_does_not_break(self):
        from uuid import uuid4

        contact_id = uuid4()
        data = json.loads(JSONFormatter().format(_record("hola", context={"contact_id": contact_id})))
        assert data["contact_id"] == str(contact_id)


class TestLoggers:
    def test_namespace(self):
        assert get_logger("orchestrator").name == "consciente.orchestrator"

    def test_adapter_merges_context(self, caplog):
        logger = get_logger("adapter_test")
        adapter = LoggerAdapter(logger, {"external_id": "wamid-1"})
        with caplog.at_level(logging.INFO, logger="consciente.adapter_test"):
            adapter.info("stage", context={"stage": "RECEIVED"})
        record = caplog.records[-1]
        assert record.context == {"external_id": "wamid-1", "stage": "RECEIVED"}

    def test_pipeline_logger_binds_ids(self, caplog):
        log = pipeline_logger(get_logger("pipeline_test"), "521@c.us", "wamid-1")
        bound = log.bind(contact_id="c-1")
        with caplog.at_level(logging.INFO, logger="consciente.pipeline_test"):
            bound.info("resolved")
        assert caplog.records[-1].context == {"chat_id": "521@c.us", "external_id": "wamid-1", "contact_id": "c-1"}
        assert log.extra == {"chat_id": "521@c.us", "external_id": "wamid-1"}
