# -*- coding: utf-8 -*-
"""Location: ./tests/unit/mcpsheets/conftest.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Shared fixtures: a throwaway RSA service account key, settings without
retry delays, and a Sheets service backed by an httpx mock transport.
"""

# Standard
import base64
import json
from unittest.mock import AsyncMock, MagicMock

# Third-Party
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
import httpx
import pytest

# First-Party
from mcpsheets.config import Settings
from mcpsheets.services.google_auth_service import ServiceAccountCredentials
from mcpsheets.services.sheets_service import SheetsService


@pytest.fixture(scope="session")
def rsa_private_key():
    """RSA key used to sign test assertions."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def service_account_info(rsa_private_key):
    """Contents of a service account key file."""
    pem = rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    return {
        "type": "service_account",
        "project_id": "test-project",
        "private_key_id": "key-1",
        "private_key": pem,
        "client_email": "sheets-bot@test-project.iam.gserviceaccount.com",
        "client_id": "1234567890",
        "token_uri": "https://oauth2.googleapis.com/token",
    }


@pytest.fixture
def credentials(service_account_info):
    """Validated credentials."""
    return ServiceAccountCredentials.model_validate(service_account_info)


@pytest.fixture
def encoded_key(service_account_info):
    """Base64 bearer token for the test key."""
    return base64.b64encode(json.dumps(service_account_info).encode()).decode()


@pytest.fixture
def auth_headers(encoded_key):
    """Authorization header for the test key."""
    return {"Authorization": f"Bearer {encoded_key}"}


@pytest.fixture
def settings():
    """Settings with retries that do not wait."""
    return Settings(_env_file=None, retry_initial_delay=0.0, retry_max_delay=0.0)


@pytest.fixture
def token_provider():
    """Token provider that always returns the same token."""
    provider = MagicMock()
    provider.get_access_token = AsyncMock(return_value="test-token")
    return provider


@pytest.fixture
def sheets_api():
    """Recorder of Sheets API calls; assign ``handler`` to control replies."""

    class FakeSheetsApi:
        def __init__(self):
            self.requests = []
            self.handler = lambda request: httpx.Response(200, json={})

        def __call__(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.handler(request)

    return FakeSheetsApi()


@pytest.fixture
def sheets_service(settings, token_provider, sheets_api):
    """Sheets service whose HTTP client talks to ``sheets_api``."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(sheets_api))
    return SheetsService(settings, http_client=client, token_provider=token_provider)
