"""Engine exception types."""

from reelwatch.schemas.error import ErrorResponse


class TrackerError(Exception):
    """Structured engine error carrying a user-facing payload."""

    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        self.payload = ErrorResponse(code=code, message=message, details=details)
        super().__init__(message)


class ApiError(TrackerError):
    """Network or HTTP failure talking to the jobs API."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict | None = None,
        *,
        is_network_error: bool = False,
    ) -> None:
        self.status_code = status_code
        self.is_network_error = is_network_error
        super().__init__(code=code, message=message, details=details)


class PreconditionFailed(TrackerError):
    """A user action was refused locally and never reached the network."""


class DeliveryError(TrackerError):
    """A single notification channel failed to deliver."""


__all__ = ["ApiError", "DeliveryError", "PreconditionFailed", "TrackerError"]
