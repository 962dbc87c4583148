# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/main.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Google Sheets MCP server application.

``create_app`` wires the pieces together:

- a ``SheetsService`` owning the shared HTTP client and token cache,
- the tool registry,
- the ``SessionStore`` (``app.state.session_store``) and its ``SessionReaper``,
- the authentication and protocol-version middleware,
- the MCP endpoint at ``settings.mcp_path`` and an unauthenticated ``/health``.

Run with ``mcpsheets`` (see ``mcpsheets.cli``) or ``uvicorn mcpsheets.main:app``.
"""

# Standard
from contextlib import asynccontextmanager
from functools import partial
import logging
from typing import AsyncIterator, Optional

# Third-Party
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from mcp.types import Implementation

# First-Party
from mcpsheets import __version__
from mcpsheets.config import get_settings, Settings
from mcpsheets.middleware.auth_middleware import ServiceAccountAuthMiddleware
from mcpsheets.middleware.protocol_version import MCPProtocolVersionMiddleware
from mcpsheets.routers.mcp_router import mcp_endpoint
from mcpsheets.services.session_service import SessionReaper, SessionStore
from mcpsheets.services.sheets_service import SheetsService
from mcpsheets.tools import build_registry
from mcpsheets.transports.streamable_http import MCP_SESSION_ID_HEADER, SessionTransport
from mcpsheets.utils.orjson_response import ORJSONResponse

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Send log records to stderr at ``level``.

    Args:
        level: Logging level name
    """
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def create_app(settings: Optional[Settings] = None, sheets_service: Optional[SheetsService] = None) -> FastAPI:
    """Build the ASGI application.

    Args:
        settings: Settings to use; defaults to the cached global settings
        sheets_service: Pre-built Sheets service (tests inject one with a mock HTTP transport)

    Returns:
        FastAPI: Configured application

    Examples:
        >>> app = create_app(Settings(_env_file=None))
        >>> len(app.state.session_store)
        0
        >>> len(app.state.tool_registry)
        24
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    sheets = sheets_service or SheetsService(settings)
    registry = build_registry(sheets)
    server_info = Implementation(name=settings.server_name, version=settings.server_version)
    store = SessionStore(
        transport_factory=partial(
            SessionTransport,
            registry,
            server_info,
            instructions=settings.server_instructions,
            json_response=settings.mcp_json_response,
        ),
        idle_timeout=settings.session_idle_timeout,
    )
    reaper = SessionReaper(store, interval=settings.session_cleanup_interval)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        """Start the reaper; on exit close every session and the HTTP client."""
        logger.info(f"Starting {settings.app_name} {__version__} (MCP endpoint {settings.mcp_path}, {len(registry)} tools)")
        await reaper.start()
        try:
            yield
        finally:
            logger.info("Shutting down")
            await reaper.shutdown()
            await sheets.shutdown()

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan, default_response_class=ORJSONResponse)
    app.state.settings = settings
    app.state.session_store = store
    app.state.session_reaper = reaper
    app.state.tool_registry = registry
    app.state.sheets_service = sheets

    # Added innermost first: CORS wraps auth so preflight requests are answered without credentials
    app.add_middleware(MCPProtocolVersionMiddleware, mcp_path=settings.mcp_path)
    app.add_middleware(ServiceAccountAuthMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[MCP_SESSION_ID_HEADER],
    )

    app.router.add_route(settings.mcp_path, mcp_endpoint, methods=["GET", "POST", "DELETE"], include_in_schema=False)

    @app.get("/health")
    async def health(request: Request) -> dict:
        """Liveness check; no authentication required."""
        return {"status": "healthy", "version": __version__, "sessions": len(request.app.state.session_store)}

    return app


app = create_app()
