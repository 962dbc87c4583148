# -*- coding: utf-8 -*-
"""Location: ./tests/unit/mcpsheets/routers/test_mcp_router.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

End-to-end tests of the /mcp endpoint through the full application stack.
"""

# Standard
import itertools
import json

# Third-Party
import httpx
import pytest
from starlette.testclient import TestClient

# First-Party
from mcpsheets.main import create_app
from mcpsheets.transports.streamable_http import MCP_SESSION_ID_HEADER

ACCEPT = {"Accept": "application/json, text/event-stream"}

INITIALIZE = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {"protocolVersion": "2025-03-26", "capabilities": {}, "clientInfo": {"name": "test-client", "version": "0.1"}},
}


@pytest.fixture
def auth_headers(auth_headers):
    return {**auth_headers, **ACCEPT}


@pytest.fixture
def json_settings(settings):
    return settings.model_copy(update={"mcp_json_response": True})


@pytest.fixture
def app(json_settings, sheets_service):
    application = create_app(json_settings, sheets_service=sheets_service)
    application.state.session_store.clock = itertools.count(1000).__next__
    return application


@pytest.fixture
def store(app):
    return app.state.session_store


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def _initialize(client, headers):
    response = client.post("/mcp", json=INITIALIZE, headers=headers)
    assert response.status_code == 200
    return response.headers[MCP_SESSION_ID_HEADER]


def _call(client, headers, session_id, name, arguments, request_id=2):
    body = {"jsonrpc": "2.0", "id": request_id, "method": "tools/call", "params": {"name": name, "arguments": arguments}}
    return client.post("/mcp", json=body, headers={**headers, MCP_SESSION_ID_HEADER: session_id})


def test_health_needs_no_credentials(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_initialize_creates_session(client, store, auth_headers):
    response = client.post("/mcp", json=INITIALIZE, headers=auth_headers)

    session_id = response.headers[MCP_SESSION_ID_HEADER]
    assert response.json()["result"]["serverInfo"]["name"] == "google-sheets-mcp"
    assert session_id in store
    assert len(store) == 1


def test_known_session_reused(client, store, auth_headers):
    session_id = _initialize(client, auth_headers)

    for i in range(5):
        response = client.post("/mcp", json={"jsonrpc": "2.0", "id": i + 10, "method": "ping"}, headers={**auth_headers, MCP_SESSION_ID_HEADER: session_id})
        assert response.status_code == 200
        assert response.headers[MCP_SESSION_ID_HEADER] == session_id

    assert len(store) == 1


def test_tool_call_reaches_sheets_api(client, store, auth_headers, sheets_api):
    sheets_api.handler = lambda request: httpx.Response(200, json={"range": "Sheet1!A1:B2", "values": [["a", "b"], ["c", "d"]]})
    session_id = _initialize(client, auth_headers)

    response = _call(client, auth_headers, session_id, "sheets_get_values", {"spreadsheetId": "abc", "range": "Sheet1!A1:B2"})

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["isError"] is False
    assert json.loads(result["content"][0]["text"])["values"] == [["a", "b"], ["c", "d"]]
    assert sheets_api.requests[0].url.path == "/v4/spreadsheets/abc/values/Sheet1!A1:B2"

    record = store.get(session_id)
    assert len(store) == 1
    assert record.updated_at > record.created_at


def test_api_failure_is_tool_error(client, auth_headers, sheets_api):
    sheets_api.handler = lambda request: httpx.Response(403, json={"error": {"code": 403, "message": "The caller does not have permission"}})
    session_id = _initialize(client, auth_headers)

    response = _call(client, auth_headers, session_id, "sheets_get_metadata", {"spreadsheetId": "abc"})

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"].startswith("Error: Permission denied")


def test_unknown_tool_is_tool_error(client, auth_headers):
    session_id = _initialize(client, auth_headers)
    response = _call(client, auth_headers, session_id, "sheets_sort_range", {})
    result = response.json()["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"] == "Unknown tool: sheets_sort_range"


def test_unknown_session_rejected(client, store, auth_headers):
    _initialize(client, auth_headers)

    response = _call(client, auth_headers, "S2-unknown", "sheets_get_values", {"spreadsheetId": "abc", "range": "A1"})

    assert response.status_code == 400
    assert response.json() == {"jsonrpc": "2.0", "error": {"code": -32000, "message": "Bad Request: No valid session ID provided"}, "id": None}
    assert len(store) == 1
    assert "S2-unknown" not in store


def test_non_initialize_without_session_rejected(client, store, auth_headers):
    response = client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32000
    assert len(store) == 0


def test_invalid_json_is_parse_error(client, store, auth_headers):
    response = client.post("/mcp", content=b"{not json", headers={**auth_headers, "content-type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32700
    assert len(store) == 0

def test_notification_accepted(client, auth_headers):
    session_id = _initialize(client, auth_headers)
    response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"}, headers={**auth_headers, MCP_SESSION_ID_HEADER: session_id})
    assert response.status_code == 202
    assert response.content == b""


def test_bad_credentials_never_reach_dispatcher(client, store, auth_headers):
    session_id = _initialize(client, auth_headers)
    before = store.get(session_id).updated_at

    for headers in ({}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer %%%"}):
        response = client.post("/mcp", json=INITIALIZE, headers={**headers, MCP_SESSION_ID_HEADER: session_id})
        assert response.status_code == 401

    assert len(store) == 1
    assert store.get(session_id).updated_at == before


def test_delete_flags_and_keeps_record(client, store, auth_headers):
    session_id = _initialize(client, auth_headers)

    response = client.delete("/mcp", headers={**auth_headers, MCP_SESSION_ID_HEADER: session_id})

    assert response.status_code == 200
    assert response.text == "Session deleted"
    assert session_id in store
    assert store.get(session_id).delete_requested

    followup = client.post("/mcp", json={"jsonrpc": "2.0", "id": 3, "method": "ping"}, headers={**auth_headers, MCP_SESSION_ID_HEADER: session_id})
    assert followup.status_code == 400
    assert followup.json()["error"]["message"] == "Bad Request: Session termination requested"

    assert client.portal.call(store.sweep) == [session_id]
    assert session_id not in store


def test_delete_unknown_session(client, store, auth_headers):
    for headers in (auth_headers, {**auth_headers, MCP_SESSION_ID_HEADER: "nope"}):
        response = client.delete("/mcp", headers=headers)
        assert response.status_code == 400
        assert response.text == "Invalid session ID"
    assert len(store) == 0


def test_get_requires_known_session(client, auth_headers):
    for headers in (auth_headers, {**auth_headers, MCP_SESSION_ID_HEADER: "nope"}):
        response = client.get("/mcp", headers=headers)
        assert response.status_code == 400
        assert response.text == "Invalid or missing session ID"

def test_unsupported_protocol_version(client, auth_headers):
    response = client.post("/mcp", json=INITIALIZE, headers={**auth_headers, "mcp-protocol-version": "1999-01-01"})
    assert response.status_code == 400


def test_shutdown_closes_sessions(settings, sheets_service, auth_headers):
    app = create_app(settings, sheets_service=sheets_service)
    with TestClient(app) as client:
        session_id = _initialize(client, auth_headers)
        transport = app.state.session_store.get(session_id).transport
    assert transport.closed
    assert len(app.state.session_store) == 0


def test_opening_request_without_accept_registers_nothing(client, store, encoded_key):
    response = client.post("/mcp", json=INITIALIZE, headers={"Authorization": f"Bearer {encoded_key}", "Accept": "text/html"})

    assert response.status_code == 406
    assert len(store) == 0


def test_sse_response_by_default(settings, sheets_service, auth_headers):
    app = create_app(settings, sheets_service=sheets_service)
    with TestClient(app) as client:
        response = client.post("/mcp", json=INITIALIZE, headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = [json.loads(line[len("data:") :]) for line in response.text.splitlines() if line.startswith("data:")]
        assert events[0]["result"]["serverInfo"]["name"] == "google-sheets-mcp"
        assert response.headers[MCP_SESSION_ID_HEADER] in app.state.session_store
