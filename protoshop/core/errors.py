# protoshop/core/errors.py
"""
Application error taxonomy.

Every error is an HTTPException subclass, so services can raise them the
same way they raise HTTPException and FastAPI maps them to a status code.
The handlers in `protoshop.main` render all of them as `{"error": message}`.
"""
from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code, detail=message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidRequest(ValidationError):
    pass


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ProductNotFound(NotFoundError):
    pass


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class InsufficientStock(ConflictError):
    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f"Not enough stock for {product_name}. "
            f"Available: {available}, requested: {requested}"
        )
        self.product_name = product_name


class PaymentMethodNotAllowed(ConflictError):
    pass


class InvalidStateTransition(ConflictError):
    def __init__(self, current: str, new: str):
        super().__init__(f"Invalid status transition: {current} -> {new}")
        self.current = current
        self.new = new


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# ---- Payment gateway ----


class GatewayError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY


class GatewayAuthError(GatewayError):
    pass


class GatewayInitiationError(GatewayError):
    pass


class GatewayHTTPError(GatewayError):
    def __init__(self, message: str, upstream_status: int):
        super().__init__(message)
        self.upstream_status = upstream_status


class GatewayTimeoutError(GatewayError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
