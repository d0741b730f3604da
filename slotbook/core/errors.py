"""Domain error taxonomy.

Services raise these; the API layer maps them to HTTP responses in
``slotbook.main``. Low-level datastore errors are chained as ``__cause__``
and never returned to callers as-is.
"""
from fastapi import status


class SlotbookError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SlotbookError):
    """Missing or malformed input; nothing was persisted."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFoundError(SlotbookError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(SlotbookError):
    """The requested slot is occupied or not bookable."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Time slot is not available for booking"


class InvalidStateError(SlotbookError):
    """Mutation attempted on a booking whose status does not allow it."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Booking cannot be modified in its current state"


class AlreadyCancelledError(InvalidStateError):
    default_message = "Booking is already cancelled"


class ConfigurationError(SlotbookError):
    """Invalid slot duration or working-hours window. Indicates a bug."""

    default_message = "Invalid availability configuration"


class UnavailableError(SlotbookError):
    """Datastore unreachable; the caller may retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable, please retry"
