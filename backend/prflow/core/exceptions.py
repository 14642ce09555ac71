"""PRFlow — Domain exceptions raised by the service layer."""


class PRFlowError(Exception):
    """Base class. Carries the HTTP status and error code the API reports."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, field_errors: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors or []


class ValidationError(PRFlowError):
    """Malformed payload or an action that is illegal in the current state."""

    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidTransitionError(ValidationError):
    code = "INVALID_TRANSITION"


class ConfigurationError(PRFlowError):
    """No approval workflow configured for a department/location."""

    status_code = 400
    code = "CONFIGURATION_ERROR"


class AuthorizationError(PRFlowError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(PRFlowError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(PRFlowError):
    """Stale level or version: someone else acted on the request first."""

    status_code = 409
    code = "CONFLICT"


class PersistenceError(PRFlowError):
    status_code = 500
    code = "PERSISTENCE_ERROR"
