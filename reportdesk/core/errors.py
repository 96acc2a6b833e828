"""
Central error handling for Report Desk Backend

Domain errors are HTTPException subclasses so services can raise them directly
(the same way the rest of the codebase raises HTTPException) while still
carrying a stable machine-readable ``code`` that callers use to tell the error
classes apart.
"""
import logging
import traceback
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

CORS_ERROR_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


class ServiceError(HTTPException):
    """Base class for errors raised by the service layer"""
    code = "ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, headers: Optional[dict] = None):
        super().__init__(status_code=type(self).status_code, detail=detail, headers=headers)


class Unauthenticated(ServiceError):
    """No credential, or the credential did not verify. Caller must log in again."""
    code = "UNAUTHENTICATED"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Invalid authentication credentials"):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class AccountInactive(ServiceError):
    """Credential verified but the account is deactivated"""
    code = "ACCOUNT_INACTIVE"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str = "Account is inactive"):
        super().__init__(detail)


class Forbidden(ServiceError):
    """Authenticated, but the authorization gate denied the action"""
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class ValidationFailed(ServiceError):
    """Missing field, wrong file type, oversized file..."""
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(detail)
        self.field = field


class InvalidTransition(ServiceError):
    """The requested lifecycle move is not legal from the report's current status"""
    code = "INVALID_TRANSITION"
    status_code = status.HTTP_409_CONFLICT


class AlreadyFinalized(ServiceError):
    """The report is already APPROVED or REJECTED"""
    code = "ALREADY_FINALIZED"
    status_code = status.HTTP_409_CONFLICT


class Conflict(ServiceError):
    """Duplicate unique key or a second department for the same HOD"""
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class HasDependentReports(ServiceError):
    """User deletion blocked because the user owns reports"""
    code = "HAS_DEPENDENT_REPORTS"
    status_code = status.HTTP_409_CONFLICT


class NotFound(ServiceError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class UpstreamTimeout(ServiceError):
    """Persistence or credential verification did not answer in time"""
    code = "UPSTREAM_TIMEOUT"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT

    def __init__(self, detail: str = "Upstream timeout"):
        super().__init__(detail)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException (and ServiceError subclasses) with consistent JSON response format

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        JSONResponse with error details
    """
    content = {
        "error": True,
        "status_code": exc.status_code,
        "code": getattr(exc, "code", None),
        "detail": exc.detail,
        "path": str(request.url.path)
    }
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field

    headers = dict(CORS_ERROR_HEADERS)
    if exc.headers:
        headers.update(exc.headers)

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=headers
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from reportdesk.core.config import settings

    # In production, return generic error message
    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "status_code": 422,
                "code": ValidationFailed.code,
                "detail": "Validation error: Invalid request data",
                "path": str(request.url.path)
            }
        )

    # In development/staging, return detailed errors (sanitize for JSON: e.g. ctx.error ValueError -> str)
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            ctx = {k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v) for k, v in err["ctx"].items()}
            err["ctx"] = ctx
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": True,
            "status_code": 422,
            "code": ValidationFailed.code,
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
    from reportdesk.core.config import settings

    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "status_code": 500,
                "detail": "Internal server error",
                "path": str(request.url.path)
            },
            headers=CORS_ERROR_HEADERS
        )

    # In development/staging, return error details
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "status_code": 500,
            "detail": str(exc),
            "path": str(request.url.path),
            "traceback": traceback.format_exc() if settings.APP_ENV == "local" else None
        },
        headers=CORS_ERROR_HEADERS
    )


def is_timeout_error(exc: BaseException) -> bool:
    """True for pool checkout timeouts, lock waits and statement timeouts"""
    from sqlalchemy.exc import TimeoutError as PoolTimeoutError

    if isinstance(exc, PoolTimeoutError):
        return True
    msg = str(exc).lower()
    return "database is locked" in msg or "timeout" in msg or "canceling statement" in msg


async def database_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Surface persistence timeouts as 504 instead of a generic 500"""
    if is_timeout_error(exc):
        logger.warning("Persistence timeout on %s: %s", request.url.path, exc)
        return await http_exception_handler(request, UpstreamTimeout())
    return await generic_exception_handler(request, exc)


@contextmanager
def conflict_on_integrity_error(db: Session, detail: str) -> Iterator[None]:
    """
    Turn a unique-constraint violation raised inside the block into Conflict.

    The read-before-write uniqueness checks in the services can lose to a
    concurrent commit; the constraint then fires at flush/commit time.
    """
    try:
        yield
    except IntegrityError as e:
        db.rollback()
        logger.info("Integrity conflict: %s", e.orig)
        raise Conflict(detail) from e


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Constraint violations that escaped a service still answer 409, not 500"""
    logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
    return await http_exception_handler(request, Conflict("Conflicts with existing data"))
