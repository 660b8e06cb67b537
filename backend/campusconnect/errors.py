"""Error taxonomy shared by the HTTP routes and the socket gateway.

Every operation raises one of the ``CampusConnectError`` subclasses below;
``register_error_handlers`` renders them as ``{"message": ..., "error": ...}``
with the matching status code. Clients should rely on the status code and the
``error`` kind, never on the message text.
"""
import logging
from contextlib import contextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class CampusConnectError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "internal"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"message": self.message, "error": self.kind}


class InvalidInput(CampusConnectError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "invalid_input"
    default_message = "Missing or malformed fields"


class Conflict(CampusConnectError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "conflict"
    default_message = "Resource already exists"


class NotFound(CampusConnectError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"
    default_message = "Resource not found"


class Unauthorized(CampusConnectError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "unauthorized"
    default_message = "Invalid credentials"


class Internal(CampusConnectError):
    pass


@contextmanager
def store_operation(db: Session, operation: str):
    """Map store failures raised inside the block to ``Internal``.

    The session is rolled back so it can be reused by the caller.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Store failure during %s", operation)
        raise Internal(f"Store failure during {operation}") from exc


async def _campusconnect_error_handler(request: Request, exc: CampusConnectError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted(
        {str(err["loc"][-1]) for err in exc.errors() if err.get("loc")}
    )
    message = "Missing or invalid fields: " + ", ".join(fields) if fields else None
    err = InvalidInput(message)
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


async def _store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Unhandled store failure on %s %s", request.method, request.url.path)
    err = Internal()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled failure on %s %s", request.method, request.url.path)
    err = Internal()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CampusConnectError, _campusconnect_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, _store_error_handler)
    # anything else still answers in the error shape, not as plain text
    app.add_exception_handler(Exception, _unhandled_error_handler)
