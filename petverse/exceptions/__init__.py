"""Custom exceptions for the PetVerse marketplace backend."""


class PetverseError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['success'] = False
        return rv


class ValidationError(PetverseError):
    """Malformed or missing input."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class EmptyCartError(ValidationError):
    """Raised when checking out an empty cart."""
    def __init__(self):
        super().__init__('Cart is empty')


class NoItemsAvailableError(ValidationError):
    """Raised when every cart line was dropped during stock reservation."""
    def __init__(self, out_of_stock_items):
        super().__init__(
            'No items available for purchase. All items in your cart are out of stock.',
            payload={'outOfStockItems': out_of_stock_items}
        )


class NotFoundError(PetverseError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class UnauthorizedError(PetverseError):
    """Raised when no caller identity is attached to the request."""
    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class ForbiddenError(PetverseError):
    """Raised when the caller does not own the resource or lacks the role."""
    def __init__(self, message="Access denied"):
        super().__init__(message, 403)


class ConflictError(PetverseError):
    """Raised when the requested transition conflicts with current state."""
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)


class AmbiguousReferenceError(ConflictError):
    """A payment must reference exactly one order, appointment or advertisement."""
    def __init__(self, count):
        super().__init__(
            'Exactly one of orderID, appointmentID or adId must be provided',
            payload={'referenceCount': count}
        )


class OtpStillValidError(PetverseError):
    """Raised on resend while an unexpired code exists."""
    def __init__(self):
        super().__init__('OTP is still valid, please use the existing OTP', 400)


class UpstreamUnavailableError(PetverseError):
    """Notification sink is down. Logged by the caller, never surfaced."""
    def __init__(self, message="Notification service unavailable"):
        super().__init__(message, 503)


class OtpStoreUnavailableError(PetverseError):
    """OTP storage backend could not be reached."""
    def __init__(self, message="OTP service unavailable"):
        super().__init__(message, 503)
