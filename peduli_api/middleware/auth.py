# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and user context extraction.

This module provides Flask decorators that verify the bearer token and store
the verified principal on `flask.g` for request processing.
"""

from functools import wraps
from flask import current_app, request, g
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from ..models.entities import UserContext
from ..services.auth import AuthService, TokenValidationError
from .error_handler import AuthenticationException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation and user context building for
    protected endpoints.
    """

    def __init__(self, auth_service: AuthService):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
        """
        self.auth_service = auth_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from request headers.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')

        if not auth_header:
            return None

        # Handle "Bearer <token>" format
        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None

        return auth_header

    def build_user_context(self, token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> UserContext:
        """
        Build user context from validated token payload and request information.

        Args:
            token_payload: Decoded JWT payload
            request_info: Request metadata (IP, user agent)

        Returns:
            UserContext object for request processing
        """
        return UserContext(
            user_id=str(token_payload["sub"]),
            role=token_payload["role"],
            name=token_payload.get("name"),
            token_payload=token_payload,
            ip_address=request_info.get("ip_address"),
            user_agent=request_info.get("user_agent")
        )

    def get_request_info(self) -> Dict[str, Any]:
        """Extract request metadata for user context."""
        return {
            "ip_address": request.remote_addr,
            "user_agent": request.headers.get('User-Agent', '')
        }

    def authenticate(self, token: str) -> UserContext:
        """
        Validate a token and return the verified principal.

        Raises:
            AuthenticationException: If the token is invalid
        """
        try:
            token_payload = self.auth_service.validate_token(token)
        except TokenValidationError as e:
            raise AuthenticationException(str(e))

        return self.build_user_context(token_payload, self.get_request_info())


def require_auth(auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator to require JWT authentication for Flask routes.

    The verified principal is stored in `g.user_context`.

    Args:
        auth_middleware: Configured AuthMiddleware instance

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.validate_request") as span:
                span.set_attribute("auth.operation", "validate_request")

                token = auth_middleware.extract_token_from_request()
                if not token:
                    span.set_attribute("auth.result", "missing_token")
                    logger.warning("Authentication failed: missing token")
                    raise AuthenticationException("Missing authorization token")

                try:
                    user_context = auth_middleware.authenticate(token)
                except AuthenticationException:
                    span.set_attribute("auth.result", "invalid_token")
                    raise

                g.user_context = user_context

                span.set_attributes({
                    "auth.result": "success",
                    "user.id": user_context.user_id,
                    "user.role": user_context.role
                })

                logger.debug(
                    "Authentication successful",
                    extra={
                        "user_id": user_context.user_id,
                        "role": user_context.role,
                        "ip_address": user_context.ip_address
                    }
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def optional_auth(auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator for optional authentication (user context if token present).

    A missing token yields `g.user_context = None`; a present but invalid
    token is still rejected.

    Args:
        auth_middleware: Configured AuthMiddleware instance

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            g.user_context = None

            token = auth_middleware.extract_token_from_request()
            if token:
                g.user_context = auth_middleware.authenticate(token)

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_jwt(f: Callable) -> Callable:
    """Require authentication using the application's AuthMiddleware."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return require_auth(current_app.auth_middleware)(f)(*args, **kwargs)
    return decorated_function


def optional_jwt(f: Callable) -> Callable:
    """Optional authentication using the application's AuthMiddleware."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return optional_auth(current_app.auth_middleware)(f)(*args, **kwargs)
    return decorated_function
