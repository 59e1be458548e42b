import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response
from pymongo.errors import PyMongoError

from gatekeep.errors import (
    AccessDeniedError,
    AuthenticationError,
    ConflictError,
    FileTooLargeError,
    NotFoundError,
    RangeNotSatisfiableError,
    UserError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def create_json_error_response(
    status_code: int,
    message: str,
    error_type: str | None = None,
    code: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Create JSON error response with optional type and code for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    if code:
        content["code"] = code
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    headers = None
    if isinstance(exc, AuthenticationError):
        status_code = 401
        error_type = "authentication_error"
    elif isinstance(exc, AccessDeniedError):
        status_code = 403
        error_type = "access_denied"
    elif isinstance(exc, NotFoundError):
        status_code = 404
        error_type = "not_found"
    elif isinstance(exc, ConflictError):
        status_code = 409
        error_type = "conflict"
    elif isinstance(exc, FileTooLargeError):
        status_code = 413
        error_type = "payload_too_large"
    elif isinstance(exc, RangeNotSatisfiableError):
        status_code = 416
        error_type = "range_not_satisfiable"
        headers = {"Content-Range": f"bytes */{exc.size}"}
    elif isinstance(exc, ValidationError):
        status_code = 400
        error_type = "validation_error"
    else:
        # Default for any other UserError subclass
        status_code = 400
        error_type = "bad_request"

    code = exc.code if isinstance(exc, UserError) else None
    return create_json_error_response(
        status_code=status_code, message=str(exc), error_type=error_type, code=code, headers=headers
    )


async def transient_error_handler(request: Request, exc: Exception) -> Response:
    """Handle upstream timeouts and unreachable dependencies (503)."""
    logger.warning("transient_error", path=request.url.path, error=str(exc))
    return create_json_error_response(
        status_code=503, message="Service temporarily unavailable, retry later.", error_type="service_unavailable"
    )


async def database_error_handler(request: Request, exc: Exception) -> Response:
    """Handle MongoDB errors: timeouts are transient (503), anything else is unexpected (500)."""
    if isinstance(exc, PyMongoError) and exc.timeout:
        return await transient_error_handler(request, exc)
    return await general_exception_handler(request, exc)


async def general_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("unexpected_error", path=request.url.path, exc_info=exc)
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
