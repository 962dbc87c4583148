# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/middleware/auth_middleware.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Service account authentication middleware.

Every request to a protected path must carry
``Authorization: Bearer <base64 service account key>``. The key is decoded
and validated before the request reaches the MCP router; on success a
``RequestContext`` holding the credentials is stored on
``request.state.request_context``. Failures are answered with 401 and never
reach the session layer.

Examples:
    >>> from mcpsheets.middleware.auth_middleware import ServiceAccountAuthMiddleware  # doctest: +SKIP
    >>> app.add_middleware(ServiceAccountAuthMiddleware)  # doctest: +SKIP
"""

# Standard
import logging
from typing import Callable, Iterable, Optional

# Third-Party
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

# First-Party
from mcpsheets.services.google_auth_service import CredentialError, decode_service_account
from mcpsheets.utils.orjson_response import ORJSONResponse
from mcpsheets.utils.request_context import RequestContext

logger = logging.getLogger(__name__)

PUBLIC_PATHS = ("/health",)


def _unauthorized(error: str, message: str) -> ORJSONResponse:
    """Build a 401 response body.

    Args:
        error: Short error label
        message: Explanation for the caller

    Returns:
        ORJSONResponse: 401 response
    """
    return ORJSONResponse(status_code=401, content={"error": error, "message": message}, headers={"WWW-Authenticate": "Bearer"})


class ServiceAccountAuthMiddleware(BaseHTTPMiddleware):
    """Reject requests without a valid service account key; attach the request context otherwise."""

    def __init__(self, app: ASGIApp, public_paths: Optional[Iterable[str]] = None):
        """Create the middleware.

        Args:
            app: Wrapped ASGI application
            public_paths: Paths served without authentication
        """
        super().__init__(app)
        self.public_paths = frozenset(public_paths if public_paths is not None else PUBLIC_PATHS)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Authenticate the request and continue down the chain.

        Args:
            request: Incoming HTTP request
            call_next: Next middleware/handler in chain

        Returns:
            HTTP response
        """
        # Skip for health checks and CORS preflight
        if request.url.path in self.public_paths or request.method == "OPTIONS":
            return await call_next(request)

        try:
            auth_header = request.headers.get("authorization")
            if not auth_header:
                logger.info(f"Rejected {request.method} {request.url.path}: missing Authorization header")
                return _unauthorized("Authorization header is required", "Please provide the service account key in the Authorization header")

            parts = auth_header.split(" ")
            if len(parts) != 2 or parts[0] != "Bearer":
                logger.info(f"Rejected {request.method} {request.url.path}: malformed Authorization header")
                return _unauthorized("Invalid authorization format", "Authorization header must be in format: Bearer <base64_service_account_json>")

            try:
                credentials = decode_service_account(parts[1])
            except CredentialError as e:
                logger.info(f"Rejected {request.method} {request.url.path}: {e}")
                return _unauthorized("Invalid service account key", str(e))

            request.state.request_context = RequestContext(credentials=credentials)
            logger.debug(f"Authenticated request as {credentials.client_email}")
        except Exception as e:
            logger.error(f"Authentication failed unexpectedly: {e}", exc_info=True)
            return ORJSONResponse(status_code=500, content={"error": "Authentication failed", "message": "An error occurred during authentication"})

        return await call_next(request)
