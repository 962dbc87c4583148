# -*- coding: utf-8 -*-
"""Location: ./tests/unit/mcpsheets/middleware/test_auth_middleware.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Unit tests for the service account authentication middleware.
"""

# Standard
import base64
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

# Third-Party
import pytest
from starlette.requests import Request
from starlette.responses import Response

# First-Party
from mcpsheets.middleware.auth_middleware import ServiceAccountAuthMiddleware
from mcpsheets.utils.request_context import RequestContext


def _request(path="/mcp", method="POST", headers=None):
    request = MagicMock(spec=Request)
    request.url.path = path
    request.method = method
    request.headers = headers or {}
    request.state = SimpleNamespace()
    return request


@pytest.mark.asyncio
async def test_health_and_preflight_skipped():
    middleware = ServiceAccountAuthMiddleware(app=AsyncMock())
    call_next = AsyncMock(return_value=Response("ok"))

    for request in (_request(path="/health", method="GET"), _request(method="OPTIONS")):
        response = await middleware.dispatch(request, call_next)
        call_next.assert_awaited_once_with(request)
        assert response.status_code == 200
        call_next.reset_mock()


@pytest.mark.asyncio
async def test_missing_header():
    middleware = ServiceAccountAuthMiddleware(app=AsyncMock())
    call_next = AsyncMock()

    response = await middleware.dispatch(_request(), call_next)

    assert response.status_code == 401
    assert json.loads(response.body)["error"] == "Authorization header is required"
    call_next.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Bearer a b", "bearer abc"])
async def test_malformed_header(header):
    middleware = ServiceAccountAuthMiddleware(app=AsyncMock())
    call_next = AsyncMock()

    response = await middleware.dispatch(_request(headers={"authorization": header}), call_next)

    assert response.status_code == 401
    assert json.loads(response.body)["error"] == "Invalid authorization format"
    call_next.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "token",
    [
        "%%%",
        base64.b64encode(b"not json").decode(),
        base64.b64encode(json.dumps({"type": "service_account"}).encode()).decode(),
    ],
)
async def test_invalid_key(token):
    middleware = ServiceAccountAuthMiddleware(app=AsyncMock())
    call_next = AsyncMock()

    response = await middleware.dispatch(_request(headers={"authorization": f"Bearer {token}"}), call_next)

    assert response.status_code == 401
    assert json.loads(response.body)["error"] == "Invalid service account key"
    call_next.assert_not_awaited()


@pytest.mark.asyncio
async def test_valid_key_attaches_context(encoded_key, service_account_info):
    middleware = ServiceAccountAuthMiddleware(app=AsyncMock())
    call_next = AsyncMock(return_value=Response("ok"))
    request = _request(headers={"authorization": f"Bearer {encoded_key}"})

    response = await middleware.dispatch(request, call_next)

    assert response.status_code == 200
    call_next.assert_awaited_once_with(request)
    assert isinstance(request.state.request_context, RequestContext)
    assert request.state.request_context.credentials.client_email == service_account_info["client_email"]


@pytest.mark.asyncio
async def test_unexpected_error_returns_500(encoded_key):
    middleware = ServiceAccountAuthMiddleware(app=AsyncMock())
    call_next = AsyncMock()

    with patch("mcpsheets.middleware.auth_middleware.decode_service_account", side_effect=RuntimeError("boom")):
        response = await middleware.dispatch(_request(headers={"authorization": f"Bearer {encoded_key}"}), call_next)

    assert response.status_code == 500
    assert json.loads(response.body)["error"] == "Authentication failed"
    call_next.assert_not_awaited()
