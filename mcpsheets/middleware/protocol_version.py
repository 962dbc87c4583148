# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/middleware/protocol_version.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Middleware to validate the MCP-Protocol-Version header on the MCP endpoint.
"""

# Standard
import logging
from typing import Callable

# Third-Party
from fastapi import Request, Response
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# First-Party
from mcpsheets.transports.streamable_http import MCP_PROTOCOL_VERSION_HEADER
from mcpsheets.utils.orjson_response import ORJSONResponse

logger = logging.getLogger(__name__)

DEFAULT_PROTOCOL_VERSION = "2025-03-26"  # Assumed when the header is absent


class MCPProtocolVersionMiddleware(BaseHTTPMiddleware):
    """
    Validates the MCP-Protocol-Version header.

    - Clients send the negotiated version on every request after initialize
    - If not provided, the server assumes 2025-03-26 for backwards compatibility
    - If an unsupported version is provided, the server responds with 400 Bad Request
    """

    def __init__(self, app: ASGIApp, mcp_path: str = "/mcp"):
        """Create the middleware.

        Args:
            app: Wrapped ASGI application
            mcp_path: Path of the MCP endpoint
        """
        super().__init__(app)
        self.mcp_path = mcp_path

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Validate MCP-Protocol-Version header for the MCP endpoint.

        Args:
            request: The incoming HTTP request
            call_next: The next middleware or route handler in the chain

        Returns:
            Response: Either a 400 error for invalid protocol versions or the result of call_next
        """
        if request.url.path.rstrip("/") != self.mcp_path:
            return await call_next(request)

        protocol_version = request.headers.get(MCP_PROTOCOL_VERSION_HEADER)
        if protocol_version is None:
            protocol_version = DEFAULT_PROTOCOL_VERSION
            logger.debug(f"No MCP-Protocol-Version header, assuming {DEFAULT_PROTOCOL_VERSION}")

        if protocol_version not in SUPPORTED_PROTOCOL_VERSIONS:
            supported = ", ".join(SUPPORTED_PROTOCOL_VERSIONS)
            logger.warning(f"Unsupported protocol version: {protocol_version}")
            return ORJSONResponse(
                status_code=400,
                content={"error": "Bad Request", "message": f"Unsupported protocol version: {protocol_version}. Supported versions: {supported}"},
            )

        request.state.mcp_protocol_version = protocol_version
        return await call_next(request)
