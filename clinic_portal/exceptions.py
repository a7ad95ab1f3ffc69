"""
Error taxonomy, service results and global exception handlers.

Every API response uses the same JSON envelope:
``{"success": bool, "data"?: ..., "error"?: str, "code"?: str}``.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

# Set up logging
logger = logging.getLogger(__name__)


class PortalError(Exception):
    """
    Base class for application errors.

    Attributes:
        status_code: HTTP status the error maps to
        code: Stable machine-readable error code
        message: Human-readable message, safe to show to the caller
    """
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.message
        self.code = code or self.code
        super().__init__(self.message)


class ValidationError(PortalError):
    """Bad input shape or format."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    message = "Invalid request"


class AuthenticationRequired(PortalError):
    """No valid session."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_REQUIRED"
    message = "Authentication required"


class AuthorizationDenied(PortalError):
    """Authenticated, but the role may not perform the operation."""
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    message = "Access denied"


class NotFound(PortalError):
    """Unknown identity or profile."""
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Resource not found"


class ConflictError(PortalError):
    """Duplicate email or already-provisioned account."""
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    message = "Resource already exists"


class InternalError(PortalError):
    """Storage or transaction failure. The message never carries internal detail."""


@dataclass
class ServiceResult:
    """
    Outcome of a service operation.

    Expected failures are returned, not raised, so handlers can render them
    without try/except blocks.
    """
    success: bool
    data: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    error: Optional[PortalError] = None
    status_code: int = status.HTTP_200_OK

    @classmethod
    def ok(cls, data: Optional[Dict[str, Any]] = None, message: Optional[str] = None,
           status_code: int = status.HTTP_200_OK) -> "ServiceResult":
        return cls(success=True, data=data, message=message, status_code=status_code)

    @classmethod
    def fail(cls, error: PortalError) -> "ServiceResult":
        return cls(success=False, error=error, status_code=error.status_code)

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def to_response(self) -> JSONResponse:
        """Render the result as the standard JSON envelope."""
        if not self.success:
            return error_response(self.error)
        content: Dict[str, Any] = {"success": True}
        if self.data is not None:
            content["data"] = jsonable_encoder(self.data)
        if self.message:
            content["message"] = self.message
        return JSONResponse(status_code=self.status_code, content=content)


def error_response(error: PortalError) -> JSONResponse:
    """
    Build the failure envelope for an error.

    Args:
        error: The error to render

    Returns:
        JSONResponse: Envelope with success=false, error and code
    """
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "error": error.message, "code": error.code},
    )


async def portal_exception_handler(request: Request, exc: PortalError):
    """
    Handler for application errors raised outside of service results
    (authentication and authorization dependencies, mostly).

    Args:
        request: The request that caused the exception
        exc: The exception instance

    Returns:
        JSONResponse: Standardized error response
    """
    if exc.status_code >= 500:
        logger.error(f"Application error on {request.url.path}: {exc.code}")
    else:
        logger.warning(f"Request to {request.url.path} rejected: {exc.code}")
    return error_response(exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for request validation exceptions.

    Args:
        request: The request that caused the exception
        exc: The validation exception instance

    Returns:
        JSONResponse: Standardized error response naming the first invalid field
    """
    errors = exc.errors()
    logger.error(f"Validation error: {len(errors)} invalid field(s) on {request.url.path}")
    message = "Invalid request body"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return error_response(ValidationError(message))


# Register exception handlers with FastAPI app
def register_exception_handlers(app):
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(PortalError, portal_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
