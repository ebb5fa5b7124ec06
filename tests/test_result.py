from consciente.services.result import Result


class TestResultSuccess:
    def test_success_creates_ok_result(self):
        result = Result.success({"booking": "b-1"})
        assert result.ok is True
        assert result.value == {"booking": "b-1"}
        assert result.error is None
        assert result.error_code is None


class TestResultFailure:
    def test_failure_creates_not_ok_result(self):
        result = Result.failure("Contacto no encontrado", "not_found")
        assert result.ok is False
        assert result.error == "Contacto no encontrado"
        assert result.error_code == "not_found"
        assert result.value is None

    def test_failure_default_code(self):
        result = Result.failure("Error message")
        assert result.error_code == "unknown"


class TestResultUnwrapOr:
    def test_unwrap_or_returns_value_on_success(self):
        assert Result.success("actual value").unwrap_or("default") == "actual value"

    def test_unwrap_or_returns_default_on_failure(self):
        assert Result.failure("Error", "code").unwrap_or("default") == "default"

    def test_unwrap_or_with_none_value(self):
        assert Result.success(None).unwrap_or("default") is None


class TestToPayload:
    def test_success_payload(self):
        assert Result.success({"message": "ok"}).to_payload() == {"ok": True, "data": {"message": "ok"}}

    def test_failure_payload(self):
        payload = Result.failure("No se puede cambiar la reserva", "conflict").to_payload()
        assert payload == {"ok": False, "error": "No se puede cambiar la reserva", "error_code": "conflict"}
