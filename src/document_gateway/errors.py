"""
Error taxonomy for the document gateway and the FastAPI handlers that render it.

Every failure that can reach a client is one of three kinds:

* ``ValidationError`` -- the request itself is wrong (4xx, descriptive message).
* ``NotFoundError`` -- the addressed document or item does not exist (404).
* ``BackendError`` -- the object store failed (5xx, opaque message).

``error_result`` is the single mapping from an exception to the wire shape
``{"error": {"code", "message"}}``; both the action dispatcher and the HTTP
exception handlers go through it.
"""

import logging
from enum import Enum
from typing import List, Optional

import pydantic
from fastapi import Request, status
from fastapi.responses import JSONResponse

from document_gateway.normalizer import normalize
from document_gateway.schemas import ActionResponse, ErrorDetails

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Operation failed"


class GatewayError(Exception):
    """Base class for every error the gateway reports to a client."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        return str(self.status_code)


class ValidationError(GatewayError):
    """Client-caused failure: missing field, unsafe path, unsupported action."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidActionError(ValidationError):
    """The action value is not one of the supported directory actions."""

    def __init__(self, action: object):
        super().__init__(f"Invalid file operation: {action!r}")
        self.action = action


class RootProtectionError(ValidationError):
    """A mutating action would operate on the storage root."""

    def __init__(self, message: str = "Restricted to modify the root folder."):
        super().__init__(message)


class InvalidPathError(ValidationError):
    """A path or item name would escape the root prefix or is malformed."""


class ItemExistsError(ValidationError):
    """The target name of a create or rename is already taken."""

    def __init__(self, name: str):
        super().__init__(f"A file or folder with the name {name} already exists.")
        self.name = name


class ItemsExistError(ValidationError):
    """Copy or move would overwrite items that already exist at the target."""

    def __init__(self, names: List[str]):
        super().__init__("File Already Exists")
        self.names = names


class NotFoundError(GatewayError):
    """The requested document or item does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class BackendErrorKind(str, Enum):
    """Why a backend call failed."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    PARTIAL_FAILURE = "partial_failure"
    UNKNOWN = "unknown"


class BackendError(GatewayError):
    """
    The object store failed.

    ``message`` is internal and only ever logged; clients see
    ``GENERIC_FAILURE_MESSAGE``.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        kind: BackendErrorKind = BackendErrorKind.UNKNOWN,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.cause = cause


def error_body(code: str, message: str, file_exists: Optional[List[str]] = None) -> dict:
    """The `{"error": {...}}` wire shape of a failed request."""
    return normalize(ActionResponse(error=ErrorDetails(code=code, message=message, file_exists=file_exists)))


def error_result(exc: BaseException) -> tuple[int, dict]:
    """
    Map an exception to ``(http_status, body)``.

    Validation and not-found errors keep their message. Everything else is
    logged with its traceback and collapsed to a generic 500 body.
    """
    if isinstance(exc, (ValidationError, NotFoundError)):
        logger.info(f"Request rejected ({exc.code}): {exc.message}")
        file_exists = exc.names if isinstance(exc, ItemsExistError) else None
        return exc.status_code, error_body(exc.code, exc.message, file_exists)

    if isinstance(exc, BackendError):
        logger.error(f"Backend failure [{exc.kind.value}]: {exc.message}", exc_info=exc.cause or exc)
    else:
        logger.error("Unexpected failure while handling request", exc_info=exc)
    return status.HTTP_500_INTERNAL_SERVER_ERROR, error_body("500", GENERIC_FAILURE_MESSAGE)


async def handle_gateway_errors(request: Request, exc: GatewayError) -> JSONResponse:
    """Render a ``GatewayError`` raised outside the action dispatcher."""
    status_code, body = error_result(exc)
    return JSONResponse(status_code=status_code, content=body)


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    errors = exc.errors()
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": [
                {
                    "msg": error["msg"],
                    "input": error.get("input"),
                }
                for error in errors
            ]
        },
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Last line of defense: never leak a traceback to the client."""
    try:
        return await call_next(request)
    except Exception as err:
        logger.exception(err)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("500", GENERIC_FAILURE_MESSAGE),
        )
