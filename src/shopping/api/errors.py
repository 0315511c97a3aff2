"""Maps domain failures to HTTP status codes and the response envelope.

Handlers translate; they never re-check business rules.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError

from shopping.api.security import AuthenticationError, AuthorizationError

logger = structlog.get_logger(__name__)


def envelope_response(status_code: int, message: str, errors=None, code=None, context=None) -> JSONResponse:
    """Failure envelope. Each error carries the machine ``code``; ``context`` goes under ``data``."""
    errors = [dict(error) for error in errors] if errors else [{"field": None, "message": message}]
    if code:
        for error in errors:
            error.setdefault("code", code)

    content = {"success": False, "message": message, "errors": errors}
    if context:
        content["data"] = context
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def _field_errors(messages) -> list[dict]:
    if isinstance(messages, dict):
        return [
            {"field": field, "message": message}
            for field, field_messages in messages.items()
            for message in (field_messages if isinstance(field_messages, list) else [field_messages])
        ]
    return [{"field": None, "message": str(messages)}]


def _first_message(errors: list[dict], default: str) -> str:
    return errors[0]["message"] if errors else default


async def _handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    errors = _field_errors(exc.messages)
    issues = getattr(exc, "issues", None)
    if issues:
        errors = [{"field": "items", "code": issue["issue"], **issue} for issue in issues]

    code = getattr(exc, "code", "validation_error")
    logger.warning("Request rejected", path=request.url.path, code=code, errors=errors)
    return envelope_response(
        400,
        _first_message(errors, "Validation failed"),
        errors=errors,
        code=code,
        context=getattr(exc, "context", None),
    )


async def _handle_not_found(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    messages = getattr(exc, "messages", None) or str(exc)
    errors = _field_errors(messages)
    code = getattr(exc, "code", "not_found")
    logger.warning("Resource not found", path=request.url.path, code=code)
    return envelope_response(
        404,
        _first_message(errors, "Not found"),
        errors=errors,
        code=code,
        context=getattr(exc, "context", None),
    )


async def _handle_invalid_operation(request: Request, exc: InvalidOperationError) -> JSONResponse:
    logger.warning("Invalid operation", path=request.url.path, error=str(exc))
    return envelope_response(400, str(exc), code="invalid_operation")


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in error["loc"][1:]) or None, "message": error["msg"]}
        for error in exc.errors()
    ]
    logger.warning("Malformed request", path=request.url.path, errors=errors)
    return envelope_response(400, "Invalid request", errors=errors, code="validation_error")


async def _handle_authentication(request: Request, exc: AuthenticationError) -> JSONResponse:
    return envelope_response(401, str(exc), code="unauthenticated")


async def _handle_authorization(request: Request, exc: AuthorizationError) -> JSONResponse:
    logger.warning("Access denied", path=request.url.path)
    return envelope_response(403, str(exc), code="forbidden")


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path)
    return envelope_response(500, "Internal server error", code="internal_error")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _handle_validation_error)
    app.add_exception_handler(ObjectNotFoundError, _handle_not_found)
    app.add_exception_handler(InvalidOperationError, _handle_invalid_operation)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(AuthenticationError, _handle_authentication)
    app.add_exception_handler(AuthorizationError, _handle_authorization)
    app.add_exception_handler(Exception, _handle_unexpected)
