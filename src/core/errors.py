# error taxonomy shared by every component; status is what the boundary reports


class ShopError(Exception):
    """Base error. `message` is safe to show to a caller."""

    status = 500
    message = "Internal error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ShopError):
    """A required field is missing or malformed."""

    status = 400
    message = "Invalid input"


class AuthError(ShopError):
    """Credentials did not match. Never says which half was wrong."""

    status = 401
    message = "Invalid ID or PIN"


class NotFoundError(ShopError):
    status = 404
    message = "Not found"


class ConflictError(ShopError):
    """A unique key could not be satisfied."""

    status = 409
    message = "Conflict"


class StoreError(ShopError):
    """The document store failed. Details are logged, not returned."""

    status = 500
    message = "Storage unavailable"


class StoreTimeoutError(StoreError):
    status = 503
    message = "Storage timed out"


class NotifyError(ShopError):
    """Email delivery failed. Only ever logged."""

    message = "Notification delivery failed"
