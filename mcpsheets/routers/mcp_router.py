# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/routers/mcp_router.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

MCP streamable HTTP endpoint.

One path, three methods:

- ``POST``: deliver a JSON-RPC message. Without an ``mcp-session-id`` header
  only an ``initialize`` request is accepted; it creates a session whose id is
  returned in the response header. With a header the request is handed to
  that session's transport.
- ``GET``: open the session's server-to-client SSE stream.
- ``DELETE``: request termination of the session. The record stays in the
  table until the reaper completes the deletion.

The endpoint decides which session a request belongs to and keeps the session
table current; the MCP SDK transport owned by the session writes the
response. ``MCPEndpoint`` is a plain ASGI application so the transport
receives the untouched request; ``mcpsheets.main`` routes ``settings.mcp_path``
to it.
"""

# Standard
import logging
from typing import Awaitable, Callable, Dict, Optional

# Third-Party
from mcp.types import PARSE_ERROR
import orjson
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import Message, Receive, Scope, Send

# First-Party
from mcpsheets.services.session_service import SessionStore
from mcpsheets.transports.streamable_http import is_initialize_request, jsonrpc_error, MCP_SESSION_ID_HEADER, SESSION_ERROR
from mcpsheets.utils.orjson_response import ORJSONResponse

logger = logging.getLogger(__name__)

NO_VALID_SESSION = "Bad Request: No valid session ID provided"
TERMINATION_REQUESTED = "Bad Request: Session termination requested"

MethodHandler = Callable[[Request, Send], Awaitable[Optional[Response]]]


class _SendTracker:
    """ASGI ``send`` wrapper remembering whether a response has started."""

    def __init__(self, send: Send):
        self._send = send
        self.started = False

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.started = True
        await self._send(message)


def _replay_body(body: bytes, receive: Receive) -> Receive:
    """Return a ``receive`` that yields an already read body once.

    Args:
        body: Request body read by the endpoint
        receive: Original ASGI receive callable, used afterwards

    Returns:
        Receive: Replaying receive callable
    """
    sent = False

    async def replay() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


def _store(request: Request) -> SessionStore:
    """Return the session store of the running app."""
    return request.app.state.session_store


def _session_error(message: str) -> ORJSONResponse:
    """Build the 400 JSON-RPC error used for session failures.

    Args:
        message: Error message

    Returns:
        ORJSONResponse: 400 response

    Examples:
        >>> r = _session_error(NO_VALID_SESSION)
        >>> r.status_code, r.body
        (400, b'{"jsonrpc":"2.0","error":{"code":-32000,"message":"Bad Request: No valid session ID provided"},"id":null}')
    """
    return ORJSONResponse(status_code=400, content=jsonrpc_error(None, SESSION_ERROR, message))


async def handle_post(request: Request, send: Send) -> Optional[Response]:
    """Deliver one JSON-RPC message to its session.

    Args:
        request: Incoming HTTP request
        send: ASGI send callable, used by the session transport

    Returns:
        Optional[Response]: Error response, or None when the transport answered
    """
    store = _store(request)
    session_id = request.headers.get(MCP_SESSION_ID_HEADER)

    body = await request.body()
    try:
        payload = orjson.loads(body)
    except orjson.JSONDecodeError:
        return ORJSONResponse(status_code=400, content=jsonrpc_error(None, PARSE_ERROR, "Parse error: Invalid JSON"))
    receive = _replay_body(body, request.receive)
    tracker = _SendTracker(send)

    if session_id:
        record = store.get(session_id)
        if record is None:
            logger.info(f"POST rejected: unknown session {session_id}")
            return _session_error(NO_VALID_SESSION)
        if record.delete_requested:
            return _session_error(TERMINATION_REQUESTED)
        try:
            with store.track_request(session_id):
                await record.transport.handle_request(request.scope, receive, tracker)
        except Exception as e:
            logger.error(f"Error handling MCP request on session {session_id}: {e}", exc_info=True)
            if not tracker.started:
                return ORJSONResponse(status_code=500, content={"error": "Failed to handle request"})
        return None

    if not is_initialize_request(payload):
        logger.info("POST rejected: no session id and not an initialize request")
        return _session_error(NO_VALID_SESSION)

    try:
        transport = store.get_or_create()
        await transport.start()
    except Exception as e:
        logger.error(f"Error creating MCP transport: {e}", exc_info=True)
        return ORJSONResponse(status_code=500, content={"error": "Failed to create transport"})

    try:
        await transport.handle_request(request.scope, receive, tracker)
    except Exception as e:
        logger.error(f"Error initializing MCP session: {e}", exc_info=True)
        await transport.close()
        return None if tracker.started else ORJSONResponse(status_code=500, content={"error": "Failed to handle request"})

    if transport.is_initialized and transport.session_id in store:
        store.touch(transport.session_id)
    else:
        # opening request refused; nothing was registered
        await transport.close()
    return None


async def handle_get(request: Request, send: Send) -> Optional[Response]:
    """Open the server-to-client SSE stream of a session.

    Args:
        request: Incoming HTTP request
        send: ASGI send callable, used by the session transport

    Returns:
        Optional[Response]: Error response, or None when the transport answered
    """
    store = _store(request)
    session_id = request.headers.get(MCP_SESSION_ID_HEADER)
    record = store.get(session_id) if session_id else None
    if record is None:
        return PlainTextResponse("Invalid or missing session ID", status_code=400)
    if record.delete_requested:
        return _session_error(TERMINATION_REQUESTED)

    store.touch(session_id)
    tracker = _SendTracker(send)
    try:
        await record.transport.handle_request(request.scope, request.receive, tracker)
    except Exception as e:
        logger.error(f"Error serving stream for session {session_id}: {e}", exc_info=True)
        if not tracker.started:
            return ORJSONResponse(status_code=500, content={"error": "Failed to handle session request"})
    store.touch(session_id)
    return None


async def handle_delete(request: Request, send: Send) -> Optional[Response]:
    """Request termination of a session.

    Args:
        request: Incoming HTTP request
        send: ASGI send callable (unused)

    Returns:
        Optional[Response]: 200 when the session is known, 400 otherwise
    """
    store = _store(request)
    session_id = request.headers.get(MCP_SESSION_ID_HEADER)
    if not session_id or not store.mark_delete_requested(session_id):
        return PlainTextResponse("Invalid session ID", status_code=400)
    store.touch(session_id)
    return PlainTextResponse("Session deleted", status_code=200)


class MCPEndpoint:
    """ASGI application serving ``POST``, ``GET`` and ``DELETE`` on the MCP path."""

    handlers: Dict[str, MethodHandler] = {"POST": handle_post, "GET": handle_get, "DELETE": handle_delete}

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        handler = self.handlers.get(request.method)
        if handler is None:
            response: Optional[Response] = PlainTextResponse("Method Not Allowed", status_code=405, headers={"Allow": "GET, POST, DELETE"})
        else:
            response = await handler(request, send)
        if response is not None:
            await response(scope, receive, send)


mcp_endpoint = MCPEndpoint()
