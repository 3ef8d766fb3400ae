class AppError(Exception):
    """Base class for failures that cross the service boundary as values."""

    kind = "app"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed input to an aggregate operation. Aggregate state is unchanged."""

    kind = "validation"


class NotFoundError(AppError):
    kind = "not_found"


class ConflictError(AppError):
    kind = "conflict"


class InfraError(AppError):
    """Connection, serialization or statement failure."""

    kind = "infra"


class EventSerializationError(InfraError):
    """An event could not be turned into an outbox row."""


class DatabaseUnavailableError(InfraError):
    """
    No pooled connection could be obtained within the connect timeout.
    Raised rather than returned so the host's supervisor can react to it.
    """
