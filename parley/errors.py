class ParleyError(Exception):
    """Base exception for parley domain errors."""

    pass


class ValidationError(ParleyError):
    """Raised when required input is missing, blank or oversized."""

    pass


class NotFoundError(ParleyError):
    """Raised when an agent, message or instance mapping does not exist."""

    pass


class PermissionDeniedError(ParleyError):
    """Raised when a privileged path is called without valid credentials."""

    pass


class InternalError(ParleyError):
    """Unexpected failure at an operation boundary.

    The original message is kept on ``str(error)`` and the original exception
    on ``error.original`` for diagnostics.
    """

    def __init__(self, message: str, original: BaseException | None = None):
        super().__init__(message)
        self.original = original
