"""
Tracking error taxonomy.

Every error carries an HTTP status code and a message that is safe to show
to the person on the other end. ``app.main`` turns them into JSON responses.
"""
from typing import Optional


class TrackingError(Exception):
    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(TrackingError):
    status_code = 404
    default_message = "Order not found. Please check your tracking code."


class InvalidCredential(TrackingError):
    """Driver code/PIN rejected.

    ``reason`` is for logs and operators only ("unknown_code", "wrong_pin",
    "malformed"); the message stays the same for every reason.
    """

    status_code = 401
    default_message = "Invalid driver code or PIN"

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message)


class TerminalStateViolation(TrackingError):
    status_code = 409

    def __init__(self, status: str, message: Optional[str] = None):
        self.status = status
        if message is None:
            if status == "delivered":
                message = "This order has already been delivered"
            else:
                message = f"This order is {status} and can no longer change"
        super().__init__(message)


class IllegalTransition(TrackingError):
    status_code = 409

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current} to {target}")


class DeliveryNotStarted(TrackingError):
    status_code = 409
    default_message = "Delivery has not started yet"


class RegistrationRejected(TrackingError):
    status_code = 422
    default_message = "Please fill in all fields"


class ConfirmationRequired(TrackingError):
    status_code = 428
    default_message = "This action cannot be undone and must be confirmed"


class LocationUnavailable(TrackingError):
    status_code = 503
    default_message = "Location is unavailable"


class UploadRejected(TrackingError):
    status_code = 400
    default_message = "Please select an image file"


class UploadTooLarge(UploadRejected):
    status_code = 413
    default_message = "Image must be less than 5MB"


class NotificationFailure(TrackingError):
    status_code = 502
    default_message = "Notification could not be sent"
