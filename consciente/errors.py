"""Error taxonomy shared by actions, clients and the dialogue pipeline."""


class ConscienteError(Exception):
    """Base class for all errors raised by the service."""


class ActionError(ConscienteError):
    """Recoverable action failure, reported back to the model as a result."""

    code = "action_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ActionError):
    code = "not_found"


class InvalidArgumentError(ActionError):
    code = "invalid_argument"


class ConflictError(ActionError):
    code = "conflict"


class TransientExternalError(ConscienteError):
    """Network, timeout or rate-limit failure at an external boundary."""


class GatewayError(TransientExternalError):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class LLMError(TransientExternalError):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
