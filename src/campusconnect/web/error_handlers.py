import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from campusconnect.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    SessionError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def create_json_error_response(status_code: int, message: str, error_type: str) -> JSONResponse:
    """Create JSON error response with a type for machine parsing."""
    content = {"success": False, "message": message, "type": error_type}
    return JSONResponse(status_code=status_code, content=content)


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    match exc:
        case SessionError(kind=kind):
            status_code, error_type = kind.status_code, str(kind)
        case AuthenticationError():
            status_code, error_type = 401, "authentication_error"
        case NotFoundError():
            status_code, error_type = 404, "not_found"
        case ValidationError():
            status_code, error_type = 400, "validation_error"
        case ConflictError():
            status_code, error_type = 409, "conflict"
        case _:
            # Default for any other UserError subclass
            status_code, error_type = 400, "bad_request"

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)


async def request_validation_error_handler(_: Request, exc: Exception) -> Response:
    """Report malformed request bodies in the same shape as other errors."""
    message = "Invalid request."
    if isinstance(exc, RequestValidationError) and exc.errors():
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else str(first.get("msg", message))
    return create_json_error_response(status_code=400, message=message, error_type="validation_error")


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("Unexpected error: %s", exc)
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
