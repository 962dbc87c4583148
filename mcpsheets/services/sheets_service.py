# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/services/sheets_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Google Sheets REST API client.

``SheetsService`` owns the process-wide resources (one ``httpx.AsyncClient``
and one ``GoogleTokenProvider``). Tool handlers never touch those directly;
they receive a ``SheetsClient`` bound to the credentials of the request being
served, obtained with ``SheetsService.client_for``.

Transient upstream failures (HTTP 429, 500, 502, 503, 504 and transport
errors) are retried with exponential backoff. Any other non-2xx response
raises ``SheetsApiError`` carrying Google's status code and message.
"""

# Standard
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

# Third-Party
import httpx

# First-Party
from mcpsheets.config import Settings
from mcpsheets.services.google_auth_service import GoogleTokenProvider, ServiceAccountCredentials

logger = logging.getLogger(__name__)

RETRIABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class SheetsApiError(Exception):
    """Raised when the Sheets API returns a non-success response.

    Examples:
        >>> err = SheetsApiError("Requested entity was not found.", code=404)
        >>> err.code, err.retriable
        (404, False)
        >>> SheetsApiError("busy", code=503).retriable
        True
    """

    def __init__(self, message: str, code: Optional[int] = None, details: Any = None):
        """Create the error.

        Args:
            message: Error message reported by Google
            code: HTTP status code
            details: Raw error payload, if any
        """
        super().__init__(message)
        self.code = code
        self.details = details

    @property
    def retriable(self) -> bool:
        """Whether the failure is worth retrying.

        Returns:
            bool: True for rate limiting and transient server errors
        """
        return self.code in RETRIABLE_STATUS_CODES


def backoff_delay(attempt: int, initial: float, maximum: float, factor: float) -> float:
    """Return the delay before retry number ``attempt`` (0-based).

    Args:
        attempt: Retry index
        initial: First delay in seconds
        maximum: Upper bound in seconds
        factor: Multiplier applied per attempt

    Returns:
        float: Delay in seconds

    Examples:
        >>> [backoff_delay(i, 1.0, 10.0, 2.0) for i in range(5)]
        [1.0, 2.0, 4.0, 8.0, 10.0]
    """
    return min(initial * (factor**attempt), maximum)


def _error_from_response(response: httpx.Response) -> SheetsApiError:
    """Build a ``SheetsApiError`` from an error response.

    Args:
        response: Non-success HTTP response

    Returns:
        SheetsApiError: Error with Google's message when available
    """
    try:
        payload = response.json()
    except ValueError:
        return SheetsApiError(response.text or f"HTTP {response.status_code}", code=response.status_code)
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return SheetsApiError(error.get("message") or f"HTTP {response.status_code}", code=response.status_code, details=error)
    return SheetsApiError(f"HTTP {response.status_code}", code=response.status_code, details=payload)


class SheetsClient:
    """Sheets API calls made on behalf of one set of credentials."""

    def __init__(
        self,
        credentials: ServiceAccountCredentials,
        http_client: httpx.AsyncClient,
        token_provider: GoogleTokenProvider,
        settings: Settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Create a client bound to ``credentials``.

        Args:
            credentials: Service account of the current request
            http_client: Shared HTTP client
            token_provider: Shared token provider
            settings: Server settings (base URL, retry policy)
            sleep: Awaitable sleep used between retries
        """
        self.credentials = credentials
        self._http = http_client
        self._tokens = token_provider
        self.settings = settings
        self._sleep = sleep

    async def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Perform an authenticated API request with retries.

        Args:
            method: HTTP method
            path: Path relative to the Sheets API base URL
            params: Query parameters; ``None`` values are dropped
            json: JSON request body

        Returns:
            Dict[str, Any]: Decoded JSON response body (empty dict for empty bodies)

        Raises:
            SheetsApiError: On non-retriable failures or once retries are exhausted
        """
        url = f"{self.settings.sheets_api_base_url}{path}"
        query = {k: v for k, v in (params or {}).items() if v is not None}
        retries = self.settings.retry_max_retries

        for attempt in range(retries + 1):
            token = await self._tokens.get_access_token(self.credentials, self._http)
            try:
                response = await self._http.request(method, url, params=query, json=json, headers={"Authorization": f"Bearer {token}"})
            except httpx.TransportError as exc:
                error = SheetsApiError(f"Request to Sheets API failed: {exc}", code=503)
            else:
                if response.is_success:
                    return response.json() if response.content else {}
                error = _error_from_response(response)
                if response.status_code == 401:
                    # Cached token may have been revoked; mint a new one next time.
                    self._tokens.invalidate(self.credentials)

            if not error.retriable or attempt == retries:
                raise error

            delay = backoff_delay(attempt, self.settings.retry_initial_delay, self.settings.retry_max_delay, self.settings.retry_factor)
            logger.warning(f"Sheets API {method} {path} failed with {error.code}, retrying in {delay:.1f}s ({attempt + 1}/{retries})")
            await self._sleep(delay)

        raise SheetsApiError("Retries exhausted")  # pragma: no cover

    # ------------------------------------------------------------------ #
    # spreadsheets.values
    # ------------------------------------------------------------------ #

    async def get_values(self, spreadsheet_id: str, range_: str, major_dimension: Optional[str] = None, value_render_option: Optional[str] = None) -> Dict[str, Any]:
        """``spreadsheets.values.get``."""
        return await self._request(
            "GET",
            f"/spreadsheets/{quote(spreadsheet_id, safe='')}/values/{quote(range_, safe='')}",
            params={"majorDimension": major_dimension, "valueRenderOption": value_render_option},
        )

    async def batch_get_values(self, spreadsheet_id: str, ranges: List[str], major_dimension: Optional[str] = None, value_render_option: Optional[str] = None) -> Dict[str, Any]:
        """``spreadsheets.values.batchGet``."""
        return await self._request(
            "GET",
            f"/spreadsheets/{quote(spreadsheet_id, safe='')}/values:batchGet",
            params={"ranges": list(ranges), "majorDimension": major_dimension, "valueRenderOption": value_render_option},
        )

    async def update_values(self, spreadsheet_id: str, range_: str, values: List[List[Any]], value_input_option: str) -> Dict[str, Any]:
        """``spreadsheets.values.update``."""
        return await self._request(
            "PUT",
            f"/spreadsheets/{quote(spreadsheet_id, safe='')}/values/{quote(range_, safe='')}",
            params={"valueInputOption": value_input_option},
            json={"range": range_, "values": values},
        )

    async def batch_update_values(self, spreadsheet_id: str, data: List[Dict[str, Any]], value_input_option: str) -> Dict[str, Any]:
        """``spreadsheets.values.batchUpdate``."""
        return await self._request(
            "POST",
            f"/spreadsheets/{quote(spreadsheet_id, safe='')}/values:batchUpdate",
            json={"valueInputOption": value_input_option, "data": data},
        )

    async def append_values(self, spreadsheet_id: str, range_: str, values: List[List[Any]], value_input_option: str, insert_data_option: str) -> Dict[str, Any]:
        """``spreadsheets.values.append``."""
        return await self._request(
            "POST",
            f"/spreadsheets/{quote(spreadsheet_id, safe='')}/values/{quote(range_, safe='')}:append",
            params={"valueInputOption": value_input_option, "insertDataOption": insert_data_option},
            json={"values": values},
        )

    async def clear_values(self, spreadsheet_id: str, range_: str) -> Dict[str, Any]:
        """``spreadsheets.values.clear``."""
        return await self._request("POST", f"/spreadsheets/{quote(spreadsheet_id, safe='')}/values/{quote(range_, safe='')}:clear", json={})

    # ------------------------------------------------------------------ #
    # spreadsheets
    # ------------------------------------------------------------------ #

    async def get_spreadsheet(self, spreadsheet_id: str, fields: Optional[str] = None) -> Dict[str, Any]:
        """``spreadsheets.get`` without grid data."""
        return await self._request("GET", f"/spreadsheets/{quote(spreadsheet_id, safe='')}", params={"includeGridData": "false", "fields": fields})

    async def create_spreadsheet(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """``spreadsheets.create``."""
        return await self._request("POST", "/spreadsheets", json=body)

    async def batch_update(self, spreadsheet_id: str, requests: List[Dict[str, Any]]) -> Dict[str, Any]:
        """``spreadsheets.batchUpdate``."""
        return await self._request("POST", f"/spreadsheets/{quote(spreadsheet_id, safe='')}:batchUpdate", json={"requests": requests})

    async def copy_sheet_to(self, spreadsheet_id: str, sheet_id: int, destination_spreadsheet_id: str) -> Dict[str, Any]:
        """``spreadsheets.sheets.copyTo``."""
        return await self._request(
            "POST",
            f"/spreadsheets/{quote(spreadsheet_id, safe='')}/sheets/{sheet_id}:copyTo",
            json={"destinationSpreadsheetId": destination_spreadsheet_id},
        )


class SheetsService:
    """Process-wide owner of the HTTP client and token cache."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None, token_provider: Optional[GoogleTokenProvider] = None):
        """Create the service.

        Args:
            settings: Server settings
            http_client: Optional pre-built HTTP client (tests inject a mock transport)
            token_provider: Optional token provider
        """
        self.settings = settings
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=settings.http_timeout)
        self.token_provider = token_provider or GoogleTokenProvider(settings.google_scopes)

    def client_for(self, credentials: ServiceAccountCredentials) -> SheetsClient:
        """Return a client acting as ``credentials``.

        Args:
            credentials: Credentials of the request being served

        Returns:
            SheetsClient: Bound client
        """
        return SheetsClient(credentials, self.http_client, self.token_provider, self.settings)

    async def shutdown(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._owns_client:
            await self.http_client.aclose()
            logger.info("Sheets HTTP client closed")
