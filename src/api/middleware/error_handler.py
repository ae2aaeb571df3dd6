"""Terminal error handling for the FastAPI application.

This module is the last step of the request pipeline. Every error that
escapes a route or middleware is reduced to an ``ErrorDescriptor``, logged
in full, and classified into a client-safe response:

1. ``describe_error`` maps any exception onto the closed error taxonomy
2. ``classify_error`` resolves status code and public message
3. ``build_error_response`` renders ``{"success": false, "error": ...}``

Unmatched routes are turned into 404 descriptors by ``not_found_handler``
before they reach the classifier. Exceptions no handler claims are answered
by ``UnhandledErrorMiddleware``, which sits inside the CORS and security
header layers so crash responses carry the same headers as any other.
"""

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.api.constants import GENERIC_ERROR_MESSAGE
from src.api.schemas.errors import ErrorResponse
from src.api.utils.request_info import get_client_ip, get_original_url, get_user_agent
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings
from src.core.context import get_request_context
from src.core.error_context import sanitize_dict, sanitize_value
from src.core.exceptions import AppError, ErrorDescriptor, ErrorKind
from src.core.logging import AppLogger
from src.core.types import ErrorDetails

# Fixed status/message overrides per error kind. UNKNOWN keeps its defaults.
KIND_OVERRIDES: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.VALIDATION: (status.HTTP_400_BAD_REQUEST, "Validation Error"),
    ErrorKind.UNAUTHORIZED: (status.HTTP_401_UNAUTHORIZED, "Unauthorized"),
    ErrorKind.MALFORMED_IDENTIFIER: (status.HTTP_400_BAD_REQUEST, "Invalid ID format"),
    ErrorKind.CONFLICT: (status.HTTP_409_CONFLICT, "Duplicate Entry"),
}

REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}
ROUTING_STATUS_CODES = {status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED}


@dataclass(frozen=True)
class ErrorClassification:
    """Client-facing result of classifying an error."""

    status_code: int
    message: str
    details: ErrorDetails | None = None


def _group_field_errors(errors: Any) -> dict[str, list[str]]:  # noqa: ANN401
    """Group pydantic/FastAPI error entries by dotted field path."""
    field_errors: dict[str, list[str]] = {}
    for error in errors:
        field_path = error.get("loc", ())
        # FastAPI prefixes the location with body/query/path
        if field_path and field_path[0] in REQUEST_LOCATIONS:
            field_path = field_path[1:]
        field_name = ".".join(str(loc) for loc in field_path if loc != "__root__")
        field_errors.setdefault(field_name or "root", []).append(
            error.get("msg", "Invalid value")
        )
    return field_errors


def describe_error(exc: BaseException) -> ErrorDescriptor:
    """Map an arbitrary exception onto the error taxonomy.

    Args:
        exc: The exception that reached the error handler.

    Returns:
        ErrorDescriptor: The descriptor consumed by ``classify_error``.
    """
    if isinstance(exc, AppError):
        return ErrorDescriptor.from_exception(
            exc,
            kind=exc.kind,
            message=exc.message,
            status_code=exc.status_code,
            details=exc.details,
        )

    if isinstance(exc, RequestValidationError | PydanticValidationError):
        return ErrorDescriptor.from_exception(
            exc,
            kind=ErrorKind.VALIDATION,
            message="Request validation failed",
            details={"validation_errors": _group_field_errors(exc.errors())},
        )

    if isinstance(exc, HTTPException):
        return ErrorDescriptor.from_exception(
            exc,
            message=str(exc.detail),
            status_code=exc.status_code,
        )

    return ErrorDescriptor.from_exception(exc, trusted_message=False)


def classify_error(
    descriptor: ErrorDescriptor, *, hide_internal_messages: bool = False
) -> ErrorClassification:
    """Resolve the status code and public message for an error.

    Args:
        descriptor: The error to classify.
        hide_internal_messages: Replace messages of unexpected exceptions
            with a generic one.

    Returns:
        ErrorClassification: Status, message and optional details.
    """
    status_code = descriptor.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
    message = descriptor.message or GENERIC_ERROR_MESSAGE
    if hide_internal_messages and not descriptor.trusted_message:
        message = GENERIC_ERROR_MESSAGE

    override = KIND_OVERRIDES.get(descriptor.kind)
    if override is not None:
        status_code, message = override

    return ErrorClassification(
        status_code=status_code,
        message=message,
        details=descriptor.details,
    )


def build_error_response(
    classification: ErrorClassification,
    descriptor: ErrorDescriptor,
    *,
    expose_stack_trace: bool,
    headers: dict[str, str] | None = None,
) -> Response:
    """Render the client-facing error body.

    Args:
        classification: Result of ``classify_error``.
        descriptor: The classified error, used for the optional stack.
        expose_stack_trace: Include the internal stack trace.
        headers: Extra response headers.

    Returns:
        Response: ORJSONResponse with the error body.
    """
    error_response = ErrorResponse(
        error=classification.message,
        details=classification.details or None,
        stack=descriptor.stack if expose_stack_trace else None,
    )
    return ORJSONResponse(
        status_code=classification.status_code,
        content=error_response,
        headers=headers,
    )


def get_app_logger(request: Request) -> AppLogger:
    """Logger injected into the application at startup."""
    app_logger: AppLogger = request.app.state.logger
    return app_logger


def get_app_settings(request: Request) -> Settings:
    """Settings the application was built with."""
    settings: Settings = request.app.state.settings
    return settings


def log_api_error(
    logger: AppLogger, request: Request, descriptor: ErrorDescriptor
) -> None:
    """Log the full error with its request context.

    Args:
        logger: Logger receiving the record.
        request: The request that failed.
        descriptor: The error being handled.
    """
    settings = get_app_settings(request)
    context = get_request_context(request.scope)
    query = context.query if context else dict(request.query_params)

    logger.error(
        "API Error",
        {
            "message": descriptor.message,
            "error_type": descriptor.error_type,
            "stack": descriptor.stack,
            "url": context.url if context else get_original_url(request.scope),
            "method": request.method,
            "body": sanitize_value(context.body) if context else None,
            "params": sanitize_dict(dict(request.path_params)),
            "query": sanitize_dict(query),
            "ip": context.client_ip
            if context
            else get_client_ip(request, trust_proxy_headers=settings.is_production),
            "user_agent": context.user_agent if context else get_user_agent(request),
        },
    )


def handle_error_descriptor(
    request: Request,
    descriptor: ErrorDescriptor,
    *,
    headers: dict[str, str] | None = None,
) -> Response:
    """Log, classify and render one error descriptor.

    Args:
        request: The request that failed.
        descriptor: The error to surface.
        headers: Extra response headers.

    Returns:
        Response: The client-facing error response.
    """
    settings = get_app_settings(request)
    log_api_error(get_app_logger(request), request, descriptor)

    classification = classify_error(
        descriptor, hide_internal_messages=settings.is_production
    )
    return build_error_response(
        classification,
        descriptor,
        expose_stack_trace=settings.expose_stack_trace,
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle any exception that reaches the end of the pipeline.

    Args:
        request: The request that caused the exception
        exc: The exception to handle

    Returns:
        Response: ORJSONResponse with the error body
    """
    headers = None
    if isinstance(exc, HTTPException) and exc.headers:
        headers = dict(exc.headers)
    return handle_error_descriptor(request, describe_error(exc), headers=headers)


def _is_unmatched_route(exc: HTTPException) -> bool:
    return (
        exc.status_code in ROUTING_STATUS_CODES
        and exc.detail == HTTPStatus(exc.status_code).phrase
    )


async def not_found_handler(request: Request, exc: Exception) -> Response:
    """Turn unmatched routes into a "Route <url> not found" descriptor.

    A known path requested with the wrong method keeps its 405 status and
    Allow header. HTTP exceptions raised by routes with their own detail
    message are passed to the classifier unchanged.

    Args:
        request: The request that did not match any route
        exc: The routing HTTPException

    Returns:
        Response: ORJSONResponse with the routing error body
    """
    if not isinstance(exc, HTTPException) or not _is_unmatched_route(exc):
        return await app_exception_handler(request, exc)

    descriptor = ErrorDescriptor.from_exception(
        exc,
        message=f"Route {get_original_url(request.scope)} not found",
        status_code=exc.status_code,
    )
    headers = dict(exc.headers) if exc.headers else None
    return handle_error_descriptor(request, descriptor, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Register the terminal error handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(status.HTTP_404_NOT_FOUND, not_found_handler)
    app.add_exception_handler(status.HTTP_405_METHOD_NOT_ALLOWED, not_found_handler)
    app.add_exception_handler(AppError, app_exception_handler)
    app.add_exception_handler(RequestValidationError, app_exception_handler)
    app.add_exception_handler(PydanticValidationError, app_exception_handler)
    app.add_exception_handler(HTTPException, app_exception_handler)


class UnhandledErrorMiddleware:
    """Answer exceptions that escape the routes with the classified response.

    Starlette hands ``Exception`` handlers to its outermost error middleware,
    which responds outside every user middleware. This layer is registered
    inside CORS and the security headers instead, and the error is not
    re-raised once answered. If the response has already started the error
    is re-raised for the server to deal with.

    Args:
        app: The ASGI application to wrap.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process one ASGI connection."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                raise
            response = await app_exception_handler(Request(scope, receive), exc)
            await response(scope, receive, send)
