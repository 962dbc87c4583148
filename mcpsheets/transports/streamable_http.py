# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/transports/streamable_http.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Per-session MCP protocol handler for the streamable HTTP transport.

Each session owns exactly one ``SessionTransport``: an SDK
``StreamableHTTPServerTransport`` bound to the session id, and an SDK
low-level ``Server`` running in a background task that answers the MCP
lifecycle, ``tools/list`` and ``tools/call``. The transport does not decide
which session a request belongs to; the endpoint in
``mcpsheets.routers.mcp_router`` does that and hands the raw ASGI request
over with ``handle_request``.

A transport reports itself initialised (``on_initialized``) the moment the
response to its opening request starts with a success status, so the session
is registered before the client can read the session id header. Tool calls
on one session are serialised; different sessions run concurrently.

Examples:
    >>> jsonrpc_error(None, SESSION_ERROR, "Bad Request: No valid session ID provided")
    {'jsonrpc': '2.0', 'error': {'code': -32000, 'message': 'Bad Request: No valid session ID provided'}, 'id': None}
    >>> is_initialize_request({"jsonrpc": "2.0", "id": 1, "method": "initialize"})
    True
    >>> is_initialize_request({"jsonrpc": "2.0", "method": "notifications/initialized"})
    False
    >>> is_initialize_request([{"jsonrpc": "2.0", "id": 1, "method": "initialize"}])
    False
"""

# Standard
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional
import uuid

# Third-Party
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import MCP_PROTOCOL_VERSION_HEADER, MCP_SESSION_ID_HEADER, StreamableHTTPServerTransport
from mcp.types import CallToolResult, Implementation, JSONRPCMessage, JSONRPCRequest, Tool
from pydantic import ValidationError
from starlette.types import Message, Receive, Scope, Send

# First-Party
from mcpsheets.tools.registry import ToolRegistry
from mcpsheets.utils.request_context import RequestContext

logger = logging.getLogger(__name__)

# Server-defined JSON-RPC error code used for session failures
SESSION_ERROR = -32000


def generate_session_id() -> str:
    """Return a new random session id.

    Returns:
        str: UUID4 string

    Examples:
        >>> a, b = generate_session_id(), generate_session_id()
        >>> a != b and len(a) == 36
        True
    """
    return str(uuid.uuid4())


def jsonrpc_error(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    """Build a JSON-RPC error envelope.

    Args:
        request_id: Id of the failed request, or None when unknown
        code: JSON-RPC error code
        message: Error message

    Returns:
        Dict[str, Any]: Error envelope
    """
    return {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": request_id}


def is_initialize_request(payload: Any) -> bool:
    """Tell whether a decoded body is a JSON-RPC ``initialize`` request.

    Args:
        payload: Decoded request body

    Returns:
        bool: True for a single JSON-RPC request whose method is ``initialize``
    """
    try:
        message = JSONRPCMessage.model_validate(payload)
    except ValidationError:
        return False
    return isinstance(message.root, JSONRPCRequest) and message.root.method == "initialize"


def context_from_request(request: Any) -> RequestContext:
    """Return the context the authentication middleware stored on an HTTP request.

    Args:
        request: Starlette request the SDK attached to the MCP request, if any

    Returns:
        RequestContext: Stored context, or an empty one
    """
    if request is None:
        return RequestContext()
    context = getattr(request.state, "request_context", None)
    return context if context is not None else RequestContext()


class SessionTransportError(Exception):
    """Raised when a session transport cannot be started."""


class SessionTransport:
    """One MCP session: SDK transport plus the server task driving it."""

    def __init__(
        self,
        registry: ToolRegistry,
        server_info: Implementation,
        on_initialized: Optional[Callable[["SessionTransport"], None]] = None,
        instructions: Optional[str] = None,
        json_response: bool = False,
        session_id_generator: Callable[[], str] = generate_session_id,
    ):
        """Create an idle transport; call ``start`` before handling requests.

        Args:
            registry: Tool registry shared by all sessions
            server_info: Name and version reported to clients
            on_initialized: Called once the opening request has succeeded
            instructions: Optional server instructions returned on initialize
            json_response: Answer POSTs with plain JSON instead of an SSE stream
            session_id_generator: Produces the session id
        """
        self.registry = registry
        self.http_transport = StreamableHTTPServerTransport(mcp_session_id=session_id_generator(), is_json_response_enabled=json_response)
        self.server = self._create_server(server_info, instructions)
        self._on_initialized = on_initialized
        self._initialized = False
        self._closed = False
        self._close_callbacks: List[Callable[["SessionTransport"], None]] = []
        self._call_lock = asyncio.Lock()
        self._ready = asyncio.Event()
        self._task: Optional["asyncio.Task[None]"] = None

    @property
    def session_id(self) -> str:
        """Id sent to the client in the ``mcp-session-id`` header."""
        return self.http_transport.mcp_session_id

    @property
    def is_initialized(self) -> bool:
        """Whether the opening request has succeeded."""
        return self._initialized

    @property
    def closed(self) -> bool:
        """Whether ``close`` has been called."""
        return self._closed

    def add_close_callback(self, callback: Callable[["SessionTransport"], None]) -> None:
        """Register a callback fired once when the transport closes.

        Args:
            callback: Receives this transport
        """
        self._close_callbacks.append(callback)

    def _create_server(self, server_info: Implementation, instructions: Optional[str]) -> Server:
        """Build the MCP server answering this session.

        Args:
            server_info: Name and version reported to clients
            instructions: Optional server instructions

        Returns:
            Server: Server with tool handlers delegating to the registry
        """
        server: Server = Server(server_info.name, version=server_info.version, instructions=instructions)

        @server.list_tools()
        async def list_tools() -> List[Tool]:
            return self.registry.list_tools()

        @server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: Dict[str, Any]) -> CallToolResult:
            context = context_from_request(server.request_context.request)
            async with self._call_lock:
                return await self.registry.call(name, arguments, context)

        return server

    async def start(self) -> None:
        """Start the server task and wait until it is connected to the transport.

        Raises:
            SessionTransportError: If the server task ends before connecting
        """
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run_server())
        await self._ready.wait()
        if self._task.done():
            raise SessionTransportError(f"MCP server for session {self.session_id} exited during startup")

    async def _run_server(self) -> None:
        """Run the MCP server over the transport streams until the transport closes."""
        try:
            async with self.http_transport.connect() as (read_stream, write_stream):
                self._ready.set()
                await self.server.run(read_stream, write_stream, self.server.create_initialization_options(), stateless=False)
        except Exception as e:
            logger.error(f"MCP server for session {self.session_id} crashed: {e}", exc_info=True)
        finally:
            self._ready.set()
            await self.close()

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> Optional[int]:
        """Serve one HTTP request on this session.

        Args:
            scope: ASGI scope
            receive: ASGI receive callable
            send: ASGI send callable

        Returns:
            Optional[int]: HTTP status sent, or None if no response started
        """
        status: Optional[int] = None

        async def send_with_status(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                if status < 400:
                    self._mark_initialized()
            await send(message)

        await self.http_transport.handle_request(scope, receive, send_with_status)
        return status

    def _mark_initialized(self) -> None:
        """Fire ``on_initialized`` once."""
        if self._initialized or self._closed:
            return
        self._initialized = True
        logger.info(f"Session {self.session_id} initialized")
        if self._on_initialized is not None:
            self._on_initialized(self)

    async def close(self) -> None:
        """Terminate the transport, stop the server task and fire close callbacks once."""
        if self._closed:
            return
        self._closed = True
        await self.http_transport.terminate()
        for callback in self._close_callbacks:
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Close callback failed for session {self.session_id}: {e}", exc_info=True)
        self._close_callbacks.clear()

        task = self._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.debug(f"Transport for session {self.session_id} closed")


__all__ = [
    "context_from_request",
    "generate_session_id",
    "is_initialize_request",
    "jsonrpc_error",
    "MCP_PROTOCOL_VERSION_HEADER",
    "MCP_SESSION_ID_HEADER",
    "SESSION_ERROR",
    "SessionTransport",
    "SessionTransportError",
]
