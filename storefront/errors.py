from __future__ import annotations
import logging
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    status_code = 400
    code = "error"
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def payload(self) -> dict:
        return {"message": self.message, "detail": self.code}


class InvalidField(StorefrontError):
    code = "invalid_field"
    default_message = "Invalid input"

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Invalid value for {field}")

    def payload(self) -> dict:
        return {**super().payload(), "field": self.field}


class DuplicateKey(StorefrontError):
    code = "duplicate_key"
    default_message = "Record already exists"


class ConstraintViolation(StorefrontError):
    code = "constraint_violation"
    default_message = "Constraint violated"


class NotFound(StorefrontError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class InvalidTransition(StorefrontError):
    status_code = 409
    code = "invalid_transition"
    default_message = "Invalid status transition"


class Unauthorized(StorefrontError):
    status_code = 401
    code = "unauthorized"
    default_message = "Not authenticated"


class Forbidden(StorefrontError):
    status_code = 403
    code = "forbidden"
    default_message = "Admin access required"


class UploadTooLarge(StorefrontError):
    code = "upload_too_large"
    default_message = "Image too large. Max 5MB allowed."


class UploadTypeRejected(StorefrontError):
    code = "upload_type_rejected"
    default_message = "Invalid image type. Only PNG, JPEG, WebP allowed."


class StoreUnavailable(StorefrontError):
    status_code = 500
    code = "store_unavailable"
    default_message = "Storage backend unavailable"


async def _handle_storefront_error(request: Request, exc: StorefrontError):
    content = exc.payload()
    if exc.status_code >= 500:
        # backend detail stays in the log
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        content = {"message": exc.default_message, "detail": exc.code}
    return JSONResponse(status_code=exc.status_code, content=content)


async def _handle_request_validation(request: Request, exc: RequestValidationError):
    """Malformed bodies, queries or path parameters render like any InvalidField."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    names = [p for p in first.get("loc", ()) if isinstance(p, str)]
    field = names[-1] if names else "body"
    err = InvalidField(field, first.get("msg"))
    return JSONResponse(status_code=err.status_code, content=err.payload())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, _handle_storefront_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
