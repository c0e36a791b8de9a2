"""
API error taxonomy and its JSON rendering
"""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Base class for errors surfaced to HTTP clients."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": {"message": self.message, "code": self.code}}


class UnauthorizedError(ApiError):
    """No engine credentials are available."""

    status_code = 401
    code = "NOT_LOGGED_IN"


class BadRequestError(ApiError):
    """Malformed client input or an unknown model."""

    status_code = 400
    code = "BAD_REQUEST"


class InternalError(ApiError):
    """Engine invocation or serialization failure."""

    status_code = 500
    code = "INTERNAL_ERROR"


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    detail = first.get("msg", "invalid request body")
    message = f"Invalid request body: {location}: {detail}" if location else f"Invalid request body: {detail}"
    return await api_error_handler(request, BadRequestError(message))
