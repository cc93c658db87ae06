# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for JWT token verification.

Tokens are issued by the identity provider and signed with a shared secret.
This module only verifies them and exposes the principal claims (`sub` and
`role`); login, registration and password handling live elsewhere.
"""

import os
import jwt
from typing import Optional, Dict, Any
from opentelemetry import trace
import logging

from ..models.enums import UserRole

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT verification service with HS256 shared-secret signing.
    """

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        """
        Initialize the authentication service.

        Args:
            secret: Shared signing secret (defaults to JWT_SECRET)
            algorithm: Signing algorithm (defaults to JWT_ALGORITHM or HS256)
        """
        self.secret = secret or self._get_secret()
        self.algorithm = algorithm or os.getenv("JWT_ALGORITHM", "HS256")

    def _get_secret(self) -> str:
        """Get signing secret from environment."""
        secret = os.getenv("JWT_SECRET")
        if secret:
            return secret

        logger.warning("No JWT_SECRET found, using development secret")
        return "peduli-kucing-dev-secret"

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate

        Returns:
            Decoded token payload carrying `sub` and `role`

        Raises:
            TokenValidationError: If token is invalid, expired or lacks claims
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attribute("auth.operation", "validate_token")

            try:
                payload = jwt.decode(
                    token,
                    self.secret,
                    algorithms=[self.algorithm],
                    options={"require": ["sub"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            role = payload.get("role")
            if role not in {r.value for r in UserRole}:
                span.set_attribute("auth.validation_result", "invalid_role")
                logger.warning(
                    "Token validation failed: unknown role",
                    extra={"user_id": payload.get("sub"), "role": role}
                )
                raise TokenValidationError(f"Invalid token: unknown role {role!r}")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": str(payload["sub"]),
                "user.role": role
            })

            logger.debug(
                "Token validated successfully",
                extra={"user_id": payload["sub"], "role": role}
            )

            return payload
