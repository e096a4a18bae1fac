"""Service-level error taxonomy.

Services raise these; the API layer turns them into HTTP responses using
``status_code``. ``NotificationUndelivered`` never leaves the notification
layer.
"""


class ServiceError(Exception):
    """Base class for errors reported back to the caller."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ServiceError):
    """Referenced team, user, notification or booking does not exist."""
    status_code = 404


class ForbiddenError(ServiceError):
    """Requester is not allowed to perform the operation."""
    status_code = 403


class ConflictError(ServiceError):
    """Duplicate membership or user already in a team."""
    status_code = 409


class InvalidStateError(ServiceError):
    """Transition attempted from a state that does not permit it."""
    status_code = 400


class InvalidOperationError(ServiceError):
    """Structurally disallowed operation, e.g. removing the team owner."""
    status_code = 400


class InvalidRequestError(ServiceError):
    """Request failed input validation."""
    status_code = 400


class NoPaymentMethodError(ServiceError):
    """No usable payment method for the user, their team owner or teammates."""
    status_code = 402


class PaymentFailedError(ServiceError):
    """Payment provider rejected or failed the charge."""

    status_code = 402

    def __init__(self, provider_message: str):
        self.provider_message = provider_message
        super().__init__(f"Payment failed: {provider_message}")


class DeliveryFailedError(ServiceError):
    """An out-of-band message that was the whole point of the call could not be sent."""
    status_code = 502


class NotificationUndelivered(Exception):
    """Live delivery of a stored notification did not happen."""
