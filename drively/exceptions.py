"""
Custom exception classes for the Drively web app.

Every exception carries an HTTP status code so JSON endpoints can render
``{"error": message}`` directly and page handlers can flash the message.
"""


class DrivelyError(Exception):
    """Base class for all classified request failures."""

    status_code = 500
    default_message = "Error: request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:  # pragma: no cover
        return self.message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(DrivelyError):
    """Raised when request input is missing or malformed."""

    status_code = 400
    default_message = "Error: invalid input"


class InvalidDateRangeError(ValidationError):
    """Raised when the end of a rental does not come after its start."""

    default_message = "End date must be after start date"


class AuthenticationError(DrivelyError):
    """Raised when no signed-in user is attached to the request."""

    status_code = 401
    default_message = "Unauthorized"


class PermissionDeniedError(DrivelyError):
    """Raised when the signed-in user may not perform the action."""

    status_code = 403
    default_message = "Forbidden"


class NotFoundError(DrivelyError):
    status_code = 404
    default_message = "Error: not found"


class CarNotFoundError(NotFoundError):
    """Raised when a car ID cannot be found in the system."""

    default_message = "Car not found"


class RentalNotFoundError(NotFoundError):
    """Raised when a rental record cannot be found in the system."""

    default_message = "Rental not found"


class ProfileNotFoundError(NotFoundError):
    """Raised when a profile ID or email cannot be found in the system."""

    default_message = "User not found"


class VerificationNotFoundError(NotFoundError):
    default_message = "Verification not found"


class ConflictError(DrivelyError):
    status_code = 409
    default_message = "Error: conflicting state"


class BookingConflictError(ConflictError):
    """Raised when a car is already booked for an overlapping period."""

    default_message = "Vehicle is already booked for the selected dates"
