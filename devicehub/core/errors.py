# devicehub/core/errors.py
from fastapi import status


class DeviceHubError(Exception):
    """Base class for domain errors. Carries the HTTP status the API answers with."""
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(DeviceHubError):
    default_message = "Validation failed"


class InvalidDateRange(ValidationFailed):
    default_message = "End date must be after start date"


class DeviceUnavailable(ValidationFailed):
    default_message = "Device is not available"


class InvalidState(ValidationFailed):
    default_message = "Operation not allowed in the current state"


class Conflict(DeviceHubError):
    default_message = "Conflicting record exists"


class BookingConflict(Conflict):
    default_message = "Device is already booked for this period"


class DuplicatePending(Conflict):
    default_message = "A pending request already exists"


class InvalidTransition(DeviceHubError):
    default_message = "Invalid status transition"


class Unauthorized(DeviceHubError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class Forbidden(DeviceHubError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFound(DeviceHubError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"
