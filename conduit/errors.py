"""
Error taxonomy shared by the data access layer, the credential subsystem
and the auth guard.

Every error the API deliberately returns is a ``RequestError`` subclass
carrying its HTTP status and a message that is safe to show the client.
One exception handler (installed by ``install_error_handlers``) renders
them all as ``{"errors": {"body": [message]}}``.
"""
import logging
from contextlib import contextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class RequestError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(RequestError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class NotAuthorizedError(RequestError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized"


class ForbiddenError(RequestError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class ConflictError(RequestError):
    """Business-rule violation: duplicates, or undoing something never done."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class ServerError(RequestError):
    """Credential subsystem failure (hashing / verification)."""


class StorageError(RequestError):
    """Data-engine failure. The driver detail is logged, never echoed."""


class ServiceUnavailableError(RequestError):
    """A storage or credential call exceeded its time limit; safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable, please retry"


# ---------------------------------------------------------------------------
# Integrity error classification
# ---------------------------------------------------------------------------

_UNIQUE_SQLSTATE = "23505"
_UNIQUE_MARKERS = ("unique constraint failed", "duplicate key", "uniqueviolation")


def is_unique_violation(exc: IntegrityError) -> bool:
    """Return True when *exc* reports a UNIQUE / primary key collision."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == _UNIQUE_SQLSTATE:
        return True
    text = f"{type(orig).__name__} {orig}".lower()
    return any(marker in text for marker in _UNIQUE_MARKERS)


@contextmanager
def unique_violation_as_conflict(message: str):
    """
    Re-raise unique-constraint violations inside the block as
    ``ConflictError(message)``.  Any other integrity failure is a storage
    error.
    """
    try:
        yield
    except IntegrityError as exc:
        if is_unique_violation(exc):
            raise ConflictError(message) from exc
        logger.exception("Integrity error outside of a uniqueness check")
        raise StorageError() from exc


# ---------------------------------------------------------------------------
# FastAPI wiring
# ---------------------------------------------------------------------------

def _error_body(*messages: str) -> dict:
    return {"errors": {"body": list(messages)}}


async def request_error_handler(request: Request, exc: RequestError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed with %s: %s",
            request.method, request.url.path, type(exc).__name__, exc.__cause__ or exc,
        )
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown routes and disallowed methods raised by the router itself
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=_error_body(*messages),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestError, request_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
