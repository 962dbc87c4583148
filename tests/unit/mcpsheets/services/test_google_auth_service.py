# -*- coding: utf-8 -*-
"""Location: ./tests/unit/mcpsheets/services/test_google_auth_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Unit tests for service account decoding and token exchange.
"""

# Standard
import asyncio
import base64
import json
from urllib.parse import parse_qs

# Third-Party
import httpx
import jwt
import orjson
import pytest

# First-Party
from mcpsheets.services.google_auth_service import (
    CachedToken,
    CredentialError,
    decode_service_account,
    GoogleTokenProvider,
    JWT_BEARER_GRANT_TYPE,
    ServiceAccountCredentials,
    TOKEN_EXPIRY_MARGIN_SECONDS,
)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def _encode(data) -> str:
    return base64.b64encode(json.dumps(data).encode()).decode()


class TestDecodeServiceAccount:
    def test_valid_key(self, service_account_info, encoded_key):
        creds = decode_service_account(encoded_key)
        assert creds.client_email == service_account_info["client_email"]
        assert creds.project_id == "test-project"

    def test_missing_padding_tolerated(self, encoded_key):
        creds = decode_service_account(encoded_key.rstrip("="))
        assert creds.type == "service_account"

    def test_extra_fields_ignored(self, service_account_info):
        creds = decode_service_account(_encode({**service_account_info, "universe_domain": "googleapis.com"}))
        assert not hasattr(creds, "universe_domain")

    def test_not_base64(self):
        with pytest.raises(CredentialError, match="not valid base64"):
            decode_service_account("%%%not-base64%%%")

    def test_not_json(self):
        with pytest.raises(CredentialError, match="not valid JSON"):
            decode_service_account(base64.b64encode(b"{not json").decode())

    def test_not_utf8(self):
        with pytest.raises(CredentialError, match="not valid JSON"):
            decode_service_account(base64.b64encode(b"\xff\xfe\xfd").decode())

    def test_json_error_is_chained(self):
        with pytest.raises(CredentialError) as exc_info:
            decode_service_account(base64.b64encode(b"{\"type\": ").decode())
        assert isinstance(exc_info.value.__cause__, orjson.JSONDecodeError)

    def test_wrong_type(self, service_account_info):
        with pytest.raises(CredentialError, match="type"):
            decode_service_account(_encode({**service_account_info, "type": "authorized_user"}))

    def test_missing_private_key(self, service_account_info):
        data = dict(service_account_info)
        del data["private_key"]
        with pytest.raises(CredentialError, match="private_key"):
            decode_service_account(_encode(data))

    def test_blank_client_email(self, service_account_info):
        with pytest.raises(CredentialError, match="client_email"):
            decode_service_account(_encode({**service_account_info, "client_email": "  "}))


class TestGoogleTokenProvider:
    def test_assertion_is_signed_with_key(self, credentials, rsa_private_key):
        provider = GoogleTokenProvider(SCOPES, clock=lambda: 1_000_000.0)
        assertion = provider.build_assertion(credentials)

        claims = jwt.decode(
            assertion,
            rsa_private_key.public_key(),
            algorithms=["RS256"],
            audience=credentials.token_uri,
            options={"verify_exp": False, "verify_iat": False},
        )
        assert claims["iss"] == credentials.client_email
        assert claims["scope"] == SCOPES[0]
        assert claims["exp"] - claims["iat"] == 3600
        assert jwt.get_unverified_header(assertion)["kid"] == "key-1"

    def test_unusable_private_key(self, service_account_info):
        creds = decode_service_account(_encode({**service_account_info, "private_key": "not a pem"}))
        with pytest.raises(CredentialError) as exc_info:
            GoogleTokenProvider(SCOPES).build_assertion(creds)
        assert exc_info.value.code == 401

    @pytest.mark.asyncio
    async def test_token_exchanged_once_and_cached(self, credentials):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"access_token": "ya29.token", "expires_in": 3600})

        now = [1000.0]
        provider = GoogleTokenProvider(SCOPES, clock=lambda: now[0])
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            assert await provider.get_access_token(credentials, client) == "ya29.token"
            assert await provider.get_access_token(credentials, client) == "ya29.token"

        assert len(calls) == 1
        form = parse_qs(calls[0].content.decode())
        assert form["grant_type"] == [JWT_BEARER_GRANT_TYPE]
        assert str(calls[0].url) == credentials.token_uri

    @pytest.mark.asyncio
    async def test_token_refreshed_before_expiry(self, credentials):
        tokens = iter(["first", "second"])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"access_token": next(tokens), "expires_in": 3600})

        now = [1000.0]
        provider = GoogleTokenProvider(SCOPES, clock=lambda: now[0])
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            assert await provider.get_access_token(credentials, client) == "first"
            now[0] += 3600 - TOKEN_EXPIRY_MARGIN_SECONDS + 1
            assert await provider.get_access_token(credentials, client) == "second"

    @pytest.mark.asyncio
    async def test_invalidate_forces_new_exchange(self, credentials):
        tokens = iter(["first", "second"])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"access_token": next(tokens), "expires_in": 3600})

        provider = GoogleTokenProvider(SCOPES)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await provider.get_access_token(credentials, client)
            provider.invalidate(credentials)
            assert await provider.get_access_token(credentials, client) == "second"

    @pytest.mark.asyncio
    async def test_rejected_exchange_raises(self, credentials):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid JWT Signature."})

        provider = GoogleTokenProvider(SCOPES)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(CredentialError, match="Invalid JWT Signature") as exc_info:
                await provider.get_access_token(credentials, client)
        assert exc_info.value.code == 401

    @pytest.mark.asyncio
    async def test_failed_exchanges_leave_no_locks(self):
        provider = GoogleTokenProvider(SCOPES)
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500))) as client:
            for i in range(500):
                bogus = ServiceAccountCredentials(type="service_account", private_key=f"not-a-key-{i}", client_email=f"bot{i}@p.iam.gserviceaccount.com")
                with pytest.raises(CredentialError):
                    await provider.get_access_token(bogus, client)

        assert provider._locks == {}
        assert provider._lock_users == {}
        assert provider._cache == {}

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_lock_then_release_it(self, credentials):
        calls = []

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            await asyncio.sleep(0.01)
            return httpx.Response(200, json={"access_token": "ya29.shared", "expires_in": 3600})

        provider = GoogleTokenProvider(SCOPES)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            tokens = await asyncio.gather(*(provider.get_access_token(credentials, client) for _ in range(5)))

        assert tokens == ["ya29.shared"] * 5
        assert len(calls) == 1
        assert provider._locks == {}

    @pytest.mark.asyncio
    async def test_expired_tokens_pruned_on_miss(self, credentials):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"access_token": "ya29.token", "expires_in": 3600})

        now = [1000.0]
        other = credentials.model_copy(update={"client_email": "other@test-project.iam.gserviceaccount.com"})
        provider = GoogleTokenProvider(SCOPES, clock=lambda: now[0])
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await provider.get_access_token(credentials, client)
            now[0] += 3600
            await provider.get_access_token(other, client)

        assert list(provider._cache) == [other.cache_key()]
        assert isinstance(provider._cache[other.cache_key()], CachedToken)
