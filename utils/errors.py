"""
Error taxonomy shared by services and routers.

Services raise these typed errors; the FastAPI handler registered in main.py maps
them to HTTP responses so routers stay thin.
"""
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthenticated(AppError):
    """Missing, malformed, expired or badly signed credential."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"

    def __init__(self, detail: Optional[str] = None, reason: str = "invalid"):
        super().__init__(detail)
        self.reason = reason


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class Conflict(AppError):
    """Unique-constraint violation. Counters and fan-out turn it into a no-op."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class DeliveryFailure(AppError):
    """Push or broadcast failure for one target. Never propagated past the fan-out engine."""
    default_detail = "Delivery failed"

    def __init__(self, target: str, detail: Optional[str] = None, permanent: bool = False):
        super().__init__(detail)
        self.target = target
        self.permanent = permanent


class PersistenceFailure(AppError):
    """A notification row could not be stored for one recipient."""
    default_detail = "Persistence failed"

    def __init__(self, recipient_id: int, detail: Optional[str] = None):
        super().__init__(detail)
        self.recipient_id = recipient_id


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = None
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers
    )
