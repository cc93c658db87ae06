# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Failure taxonomy for the chat and case API and its RFC 7807 rendering.

Services raise the exceptions below; nothing is retried server-side. The
client decides from the status code whether repeating the action can help
(only 503 says yes).
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, Tuple
from opentelemetry import trace
import logging

from ..services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

# Framework-level rejections, keyed by status code
HTTP_PROBLEMS = {
    400: ("bad-request", "Bad Request"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    415: ("unsupported-media-type", "Unsupported Media Type")
}


class CustomException(Exception):
    """An expected failure with its HTTP status and problem type."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Missing or malformed input; terminal for the current action."""

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class AuthenticationException(CustomException):
    """No usable bearer token on an endpoint that needs a signed-in user."""

    def __init__(self, message: str):
        super().__init__(message, 401, "authentication-required")


class AuthorizationException(CustomException):
    """Actor lacks the role or ownership the operation requires."""

    def __init__(self, message: str):
        super().__init__(message, 403, "insufficient-permissions")


class NotFoundException(CustomException):
    """Conversation, case or user absent; the client view is stale."""

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class ConflictException(CustomException):
    """Illegal status edge or a write that lost a race."""

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")


class RateLimitException(CustomException):
    """Daily report quota used up for this reporter."""

    def __init__(self, message: str):
        super().__init__(message, 429, "rate-limit-exceeded")


class ServiceUnavailableException(CustomException):
    """Storage temporarily unavailable; the client may retry manually."""

    def __init__(self, message: str):
        super().__init__(message, 503, "service-unavailable")


def _request_scope() -> Dict[str, Any]:
    """Route, verb and any conversation or case the request addressed."""
    scope = {"path": request.path, "method": request.method}
    for key, value in (request.view_args or {}).items():
        scope[key] = value
    return scope


class ErrorHandlerMiddleware:
    """Renders framework errors and unhandled crashes as problem documents."""

    def __init__(self, app: Flask, hal_formatter: HalFormatter):
        self.app = app
        self.hal_formatter = hal_formatter
        self.register_error_handlers()

    def register_error_handlers(self):
        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error):
            if error.code is not None and error.code >= 500:
                return self.render_server_failure(error)
            return self.render_rejection(error)

        @self.app.errorhandler(Exception)
        def handle_crash(error):
            return self.render_crash(error)

    def render_rejection(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """Unknown route, wrong verb or body the framework refused."""
        error_type, title = HTTP_PROBLEMS.get(error.code, ("http-error", error.name))
        detail = str(error.description) if error.description else title

        with tracer.start_as_current_span("errors.rejected") as span:
            span.set_attributes({"error.type": error_type, "error.status": error.code})
            logger.warning(
                "Request rejected before reaching a handler",
                extra={"error_type": error_type, "status_code": error.code, "detail": detail, **_request_scope()}
            )

        if error_type == "resource-not-found":
            body = self.hal_formatter.format_not_found_error(detail, request.path)
        else:
            body = self.hal_formatter.builder.build_error_response(
                error_type, title, error.code, detail, request.path
            )
        return body, error.code

    def render_server_failure(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        detail = str(error.description) if error.description else error.name

        with tracer.start_as_current_span("errors.server_failure") as span:
            span.set_attributes({"error.type": "internal-server-error", "error.status": error.code})
            logger.error(
                "Request aborted with a server failure",
                extra={"status_code": error.code, "detail": detail, **_request_scope()},
                exc_info=True
            )

        if self.app.config.get('ENVIRONMENT') == 'production':
            detail = "The request could not be completed"
        return self.hal_formatter.format_server_error(detail, request.path), error.code

    def render_crash(self, error: Exception) -> Tuple[Dict[str, Any], int]:
        """Anything no service translated; the message is hidden in production."""
        with tracer.start_as_current_span("errors.crash") as span:
            span.record_exception(error)
            span.set_attribute("error.class", error.__class__.__name__)
            logger.error(
                f"Unhandled {error.__class__.__name__} while serving request",
                extra={"error_class": error.__class__.__name__, **_request_scope()},
                exc_info=True
            )

        if self.app.config.get('ENVIRONMENT') == 'production':
            detail = "The request could not be completed"
        else:
            detail = f"{error.__class__.__name__}: {error}"
        return self.hal_formatter.format_server_error(detail, request.path), 500


def _problem_for(hal_formatter: HalFormatter, error: CustomException, instance: str) -> Dict[str, Any]:
    if isinstance(error, ValidationException):
        return hal_formatter.format_validation_error(error.message, instance, error.validation_errors)

    formatters = (
        (AuthenticationException, hal_formatter.format_authentication_error),
        (AuthorizationException, hal_formatter.format_authorization_error),
        (NotFoundException, hal_formatter.format_not_found_error),
        (ConflictException, hal_formatter.format_conflict_error),
        (RateLimitException, hal_formatter.format_rate_limit_error),
        (ServiceUnavailableException, hal_formatter.format_unavailable_error)
    )
    for exception_class, formatter in formatters:
        if isinstance(error, exception_class):
            return formatter(error.message, instance)

    return hal_formatter.builder.build_error_response(
        error.error_type, "Application Error", error.status_code, error.message, instance
    )


def register_custom_error_handlers(app: Flask, hal_formatter: HalFormatter):
    """Render the service-level failures above with their own status codes."""

    @app.errorhandler(CustomException)
    def handle_custom_exception(error: CustomException):
        with tracer.start_as_current_span("errors.expected") as span:
            span.set_attributes({"error.type": error.error_type, "error.status": error.status_code})
            log = logger.error if error.status_code >= 500 else logger.info
            log(
                f"Request failed: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "detail": error.message,
                    **_request_scope()
                }
            )

        return jsonify(_problem_for(hal_formatter, error, request.path)), error.status_code
