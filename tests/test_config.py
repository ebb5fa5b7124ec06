import pytest
from pydantic import ValidationError

from consciente.config import DEFAULT_FALLBACK_REPLY, Settings


class TestDefaults:
    def test_defaults(self, monkeypatch):
        for name in ("LLM_MODEL", "LLM_TEMPERATURE", "HISTORY_LIMIT", "BUSINESS_TIMEZONE", "ADMIN_TOKEN"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.llm_model == "gpt-4.1-nano"
        assert settings.llm_temperature == 0.7
        assert settings.llm_max_tokens == 800
        assert settings.history_limit == 10
        assert settings.business_timezone == "America/Mexico_City"
        assert settings.agent_name == "Valeria Charolet"
        assert settings.fallback_reply == DEFAULT_FALLBACK_REPLY
        assert settings.admin_token is None

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("HISTORY_LIMIT", "4")
        monkeypatch.setenv("WAHA_SESSION", "ventas")
        settings = Settings(_env_file=None)
        assert settings.history_limit == 4
        assert settings.waha_session == "ventas"

    def test_tz_property(self):
        settings = Settings(business_timezone="Europe/Madrid", _env_file=None)
        assert settings.tz.key == "Europe/Madrid"


class TestValidation:
    def test_temperature_out_of_range(self):
        with pytest.raises(ValidationError):
            Settings(llm_temperature=3.5, _env_file=None)

    def test_history_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(history_limit=0, _env_file=None)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(gateway_timeout_seconds=0, _env_file=None)

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            Settings(business_timezone="Mars/Olympus_Mons", _env_file=None)
