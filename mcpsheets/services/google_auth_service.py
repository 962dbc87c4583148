# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/services/google_auth_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Google service account credentials and OAuth2 token exchange.

Callers authenticate every request with ``Authorization: Bearer <token>``
where ``<token>`` is the base64 encoding of a Google service account key
(the JSON file downloaded from the Cloud console). This module:

- decodes and structurally validates that key (``decode_service_account``)
- exchanges it for a short-lived access token using the JWT bearer grant
  (``GoogleTokenProvider``), caching tokens per key until shortly before
  they expire.

Examples:
    >>> import base64, json
    >>> key = {"type": "service_account", "private_key": "pk", "client_email": "bot@p.iam.gserviceaccount.com"}
    >>> token = base64.b64encode(json.dumps(key).encode()).decode()
    >>> decode_service_account(token).client_email
    'bot@p.iam.gserviceaccount.com'
"""

# Standard
import asyncio
import base64
import binascii
from dataclasses import dataclass
import hashlib
import logging
import time
from typing import Callable, Dict, List, Optional

# Third-Party
import httpx
import jwt
import orjson
from pydantic import BaseModel, ConfigDict, field_validator, ValidationError

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_TYPE = "service_account"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
TOKEN_LIFETIME_SECONDS = 3600
# Tokens are refreshed this many seconds before Google says they expire
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class CredentialError(Exception):
    """Raised when service account credentials are unusable.

    Examples:
        >>> err = CredentialError("bad key", code=401)
        >>> str(err), err.code
        ('bad key', 401)
    """

    def __init__(self, message: str, code: Optional[int] = None):
        """Create the error.

        Args:
            message: Human readable description
            code: HTTP-like status code, when one applies
        """
        super().__init__(message)
        self.code = code


class ServiceAccountCredentials(BaseModel):
    """Structurally validated Google service account key.

    Only the fields needed to mint access tokens are modelled; everything else
    in the key file is ignored.

    Examples:
        >>> creds = ServiceAccountCredentials(type="service_account", private_key="k", client_email="a@b.c")
        >>> creds.token_uri
        'https://oauth2.googleapis.com/token'
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: str
    private_key: str
    client_email: str
    project_id: Optional[str] = None
    private_key_id: Optional[str] = None
    client_id: Optional[str] = None
    token_uri: str = DEFAULT_TOKEN_URI

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Require the service account discriminator.

        Args:
            v: Value of the ``type`` field

        Returns:
            str: The validated value

        Raises:
            ValueError: If the key is not a service account key
        """
        if v != SERVICE_ACCOUNT_TYPE:
            raise ValueError(f'type must be "{SERVICE_ACCOUNT_TYPE}"')
        return v

    @field_validator("private_key", "client_email")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Reject blank secret and identity fields.

        Args:
            v: Field value

        Returns:
            str: The validated value

        Raises:
            ValueError: If the value is blank
        """
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    def cache_key(self) -> str:
        """Return a stable, non-reversible key identifying this credential.

        Returns:
            str: SHA-256 hex digest of identity and secret

        Examples:
            >>> a = ServiceAccountCredentials(type="service_account", private_key="k", client_email="a@b.c")
            >>> len(a.cache_key())
            64
        """
        return hashlib.sha256(f"{self.client_email}\n{self.private_key}".encode("utf-8")).hexdigest()


def decode_service_account(encoded: str) -> ServiceAccountCredentials:
    """Decode a base64 encoded service account key.

    Missing base64 padding is tolerated.

    Args:
        encoded: Base64 text of the JSON key

    Returns:
        ServiceAccountCredentials: Validated credentials

    Raises:
        CredentialError: If the value is not base64, not UTF-8 JSON, or not a service account key

    Examples:
        >>> decode_service_account("not base64!")
        Traceback (most recent call last):
        ...
        mcpsheets.services.google_auth_service.CredentialError: Service account key is not valid base64
        >>> decode_service_account(base64.b64encode(b"[1, 2]").decode())
        Traceback (most recent call last):
        ...
        mcpsheets.services.google_auth_service.CredentialError: Service account key must be a JSON object
    """
    padded = encoded.strip() + "=" * (-len(encoded.strip()) % 4)
    try:
        raw = base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CredentialError("Service account key is not valid base64") from exc

    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise CredentialError("Service account key is not valid JSON") from exc

    if not isinstance(data, dict):
        raise CredentialError("Service account key must be a JSON object")

    try:
        return ServiceAccountCredentials.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise CredentialError(f"Invalid service account key: check {fields}") from exc


@dataclass
class CachedToken:
    """An access token and the epoch time it stops being usable."""

    access_token: str
    expires_at: float


class GoogleTokenProvider:
    """Mint and cache OAuth2 access tokens for service account keys.

    Tokens are cached per credential (see ``ServiceAccountCredentials.cache_key``)
    and concurrent requests for the same credential share one exchange. Expired
    tokens are pruned on every cache miss, and a credential's exchange lock is
    dropped as soon as no request holds or waits for it, so keys that never
    yield a token leave nothing behind.
    """

    def __init__(self, scopes: List[str], clock: Callable[[], float] = time.time):
        """Create a provider.

        Args:
            scopes: OAuth scopes requested for every token
            clock: Time source returning epoch seconds
        """
        self.scopes = list(scopes)
        self._clock = clock
        self._cache: Dict[str, CachedToken] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def build_assertion(self, credentials: ServiceAccountCredentials, now: Optional[float] = None) -> str:
        """Build the signed JWT assertion for the JWT bearer grant.

        Args:
            credentials: Service account credentials
            now: Issue time, defaults to the provider clock

        Returns:
            str: RS256 signed JWT

        Raises:
            CredentialError: If the private key cannot sign
        """
        issued_at = int(self._clock() if now is None else now)
        payload = {
            "iss": credentials.client_email,
            "scope": " ".join(self.scopes),
            "aud": credentials.token_uri,
            "iat": issued_at,
            "exp": issued_at + TOKEN_LIFETIME_SECONDS,
        }
        headers = {"kid": credentials.private_key_id} if credentials.private_key_id else None
        try:
            return jwt.encode(payload, credentials.private_key, algorithm="RS256", headers=headers)
        except (ValueError, TypeError, jwt.PyJWTError) as exc:
            raise CredentialError(f"Unable to sign token request with service account key: {exc}", code=401) from exc

    async def get_access_token(self, credentials: ServiceAccountCredentials, client: httpx.AsyncClient) -> str:
        """Return a valid access token, exchanging the key if needed.

        Args:
            credentials: Service account credentials of the current request
            client: HTTP client used for the token exchange

        Returns:
            str: Bearer access token
        """
        key = credentials.cache_key()
        cached = self._cache.get(key)
        if cached and cached.expires_at > self._clock():
            return cached.access_token

        self._prune_expired()
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                cached = self._cache.get(key)
                if cached and cached.expires_at > self._clock():
                    return cached.access_token
                token = await self._exchange(credentials, client)
                self._cache[key] = token
                return token.access_token
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def _prune_expired(self) -> None:
        """Drop cached tokens that are no longer usable."""
        now = self._clock()
        for key in [k for k, token in self._cache.items() if token.expires_at <= now]:
            del self._cache[key]

    def invalidate(self, credentials: ServiceAccountCredentials) -> None:
        """Drop any cached token for ``credentials``.

        Args:
            credentials: Credentials whose token should be discarded
        """
        self._cache.pop(credentials.cache_key(), None)

    async def _exchange(self, credentials: ServiceAccountCredentials, client: httpx.AsyncClient) -> CachedToken:
        """Exchange a signed assertion for an access token.

        Args:
            credentials: Service account credentials
            client: HTTP client

        Returns:
            CachedToken: The new token

        Raises:
            CredentialError: If Google rejects the assertion or the request fails
        """
        now = self._clock()
        assertion = self.build_assertion(credentials, now)
        try:
            response = await client.post(credentials.token_uri, data={"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion})
        except httpx.HTTPError as exc:
            raise CredentialError(f"Token exchange request failed: {exc}") from exc

        if response.status_code != 200:
            try:
                body = response.json()
                detail = body.get("error_description") or body.get("error") or response.text
            except ValueError:
                detail = response.text
            logger.warning(f"Token exchange rejected for {credentials.client_email}: HTTP {response.status_code}")
            raise CredentialError(f"Token exchange failed: {detail}", code=401)

        body = response.json()
        access_token = body.get("access_token")
        if not access_token:
            raise CredentialError("Token exchange response did not include an access token", code=401)
        expires_in = int(body.get("expires_in", TOKEN_LIFETIME_SECONDS))
        logger.debug(f"Obtained access token for {credentials.client_email}, expires in {expires_in}s")
        return CachedToken(access_token=access_token, expires_at=now + expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
