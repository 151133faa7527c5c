from typing import Dict, List, Optional
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

VALIDATION_MESSAGE = "The given data was invalid."


class UserError(Exception):
    """Base class for errors raised by the user-management layer."""

    default_message = "User operation failed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UserNotFoundError(UserError):
    default_message = "User not found."
    error_code = "USER_NOT_FOUND"


class UserOperationError(UserError):
    default_message = "User operation failed."
    error_code = "USER_OPERATION_FAILED"


class ValidationFailedError(UserError):
    default_message = VALIDATION_MESSAGE

    def __init__(self, errors: Dict[str, List[str]], message: Optional[str] = None):
        self.errors = errors
        super().__init__(message)


def create_error_response(message: str, error: Optional[str] = None, **extra) -> dict:
    """Create the standard error envelope"""
    body = {"message": message}
    if error is not None:
        body["error"] = error
    body.update(extra)
    return body


async def user_not_found_handler(request: Request, exc: UserNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content=create_error_response(UserNotFoundError.default_message, exc.error_code),
    )


async def user_operation_handler(request: Request, exc: UserOperationError) -> JSONResponse:
    logger.error(f"User operation failed on {request.method} {request.url.path}: {exc.message}")
    debug = getattr(request.app.state.settings, "DEBUG", False)
    message = exc.message if debug else UserOperationError.default_message
    return JSONResponse(status_code=500, content=create_error_response(message, exc.error_code))


async def validation_failed_handler(request: Request, exc: ValidationFailedError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=create_error_response(exc.message, errors=exc.errors),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reshape FastAPI's own validation errors into the field-keyed envelope"""
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "request"
        errors.setdefault(field, []).append(err.get("msg", "Invalid value."))
    return JSONResponse(
        status_code=422,
        content=create_error_response(VALIDATION_MESSAGE, errors=errors),
    )
