"""
Central error handling for Personnel Admin Backend
"""
import logging
import traceback
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

logger = logging.getLogger(__name__)


class DataAccessError(Exception):
    """A single data-access call failed and its transaction was rolled back

    ``str()`` names only the operation; the driver text (which carries SQL
    and bound parameters) is kept on ``detail`` for logging.
    """

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed")


class CascadeDeletionError(Exception):
    """Base class for failures raised while removing an employee"""


class PreconditionError(CascadeDeletionError):
    """Request rejected before any mutation ran"""


class DeletionInProgressError(PreconditionError):
    """Another deletion for the same employee id is still running"""

    def __init__(self, employee_id: int, message: Optional[str] = None):
        self.employee_id = employee_id
        super().__init__(message or f"A deletion for employee {employee_id} is already in progress")


class AdminRemovalInProgressError(DeletionInProgressError):
    """Another admin is being removed; admin removals run one at a time"""

    def __init__(self, employee_id: int, other_admin_id: int):
        self.other_admin_id = other_admin_id
        super().__init__(
            employee_id,
            f"Admin {other_admin_id} is already being removed; retry once it finishes",
        )


class StepFailedError(CascadeDeletionError):
    """A forward step of the cascade failed"""

    def __init__(self, step: str, message: str, cause: Optional[BaseException] = None):
        self.step = step
        self.cause = cause
        super().__init__(message)


class VerificationError(StepFailedError):
    """The employee row is still readable after a delete call reported success"""

    def __init__(self, employee_id: int):
        self.employee_id = employee_id
        super().__init__(
            "verifying",
            "Employee still exists in database after deletion attempt",
        )


def describe_failure(exc: BaseException) -> str:
    """Caller-safe reason for a failed step; anything else stays in the log"""
    if isinstance(exc, (DataAccessError, CascadeDeletionError)):
        return str(exc)
    return "unexpected error"


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException with consistent JSON response format

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        JSONResponse with error details
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "status_code": exc.status_code,
            "detail": exc.detail,
            "path": str(request.url.path)
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from personnel_admin.core.config import settings

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "status_code": 422,
                "detail": "Validation error: Invalid request data",
                "path": str(request.url.path)
            }
        )

    # ctx may carry exception instances (e.g. ValueError from model validators)
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": True,
            "status_code": 422,
            "detail": "Validation error",
            "errors": errors,
            "path": str(request.url.path)
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    from personnel_admin.core.config import settings

    logger.error("Unhandled exception: %s", exc, exc_info=True)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "status_code": 500,
                "detail": "Internal server error",
                "path": str(request.url.path)
            }
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "status_code": 500,
            "detail": str(exc),
            "path": str(request.url.path),
            "traceback": traceback.format_exc() if settings.APP_ENV == "local" else None
        }
    )
