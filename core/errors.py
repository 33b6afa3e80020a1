"""Exceptions raised by the service layer and their HTTP rendering."""


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message, status_code=None, **extra):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self):
        payload = {"message": self.message}
        payload.update(self.extra)
        return payload


class NotFoundError(ApiError):
    status_code = 404


class ForbiddenError(ApiError):
    status_code = 403


class UnauthorizedError(ApiError):
    status_code = 401


class ValidationError(ApiError):
    status_code = 400


class InsufficientStockError(ValidationError):
    """Raised when a deduction needs more units than are available."""

    def __init__(self, product_id, available, required):
        self.product_id = product_id
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient stock for product {product_id}. Available: {available}, Required: {required}",
            productId=product_id,
            available=available,
            required=required,
        )


class ConflictError(ApiError):
    status_code = 409


class UpstreamError(ApiError):
    """The payment provider (or another remote collaborator) failed."""

    status_code = 500
