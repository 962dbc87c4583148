# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/tools/formatters.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Builders for tool results.

Every tool returns an MCP ``CallToolResult`` holding a single text block.
Structured payloads are rendered as indented JSON, optionally preceded by a
short human readable message. Failures become ``isError`` results produced by
``handle_error`` so that the agent sees an actionable explanation instead of a
protocol error.

Examples:
    >>> text_response("done").content[0].text
    'done'
    >>> json_response({"a": 1}, "Saved").content[0].text
    'Saved\\n\\n{\\n  "a": 1\\n}'
"""

# Standard
import json
import logging
from typing import Any, Dict, List, Optional

# Third-Party
from mcp.types import CallToolResult, TextContent

# First-Party
from mcpsheets.services.google_auth_service import CredentialError
from mcpsheets.services.sheets_service import SheetsApiError

logger = logging.getLogger(__name__)

SPREADSHEET_URL_HINT = "https://docs.google.com/spreadsheets/d/[SPREADSHEET_ID]/edit"


def text_response(text: str, is_error: bool = False) -> CallToolResult:
    """Wrap ``text`` in a tool result.

    Args:
        text: Text content
        is_error: Mark the result as a tool failure

    Returns:
        CallToolResult: Single text block result
    """
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


def json_response(data: Any, message: Optional[str] = None) -> CallToolResult:
    """Render ``data`` as indented JSON, optionally prefixed by ``message``.

    Args:
        data: JSON serialisable payload
        message: Optional leading message

    Returns:
        CallToolResult: Text result
    """
    body = json.dumps(data, indent=2, ensure_ascii=False)
    return text_response(f"{message}\n\n{body}" if message else body)


def error_response(message: str) -> CallToolResult:
    """Build an ``isError`` result with the conventional ``Error:`` prefix.

    Args:
        message: Error description

    Returns:
        CallToolResult: Error result

    Examples:
        >>> r = error_response("boom")
        >>> r.isError, r.content[0].text
        (True, 'Error: boom')
    """
    return text_response(f"Error: {message}", is_error=True)


def values_response(values: List[List[Any]], range_: Optional[str] = None) -> CallToolResult:
    """Format a single value range.

    Args:
        values: 2D array of cell values
        range_: Range that was read

    Returns:
        CallToolResult: JSON summary, or a "No data found" message when empty

    Examples:
        >>> values_response([], "Sheet1!A1:B2").content[0].text
        'No data found in range: Sheet1!A1:B2'
    """
    if not values:
        return text_response(f"No data found in range: {range_}" if range_ else "No data found")
    return json_response({"range": range_, "rowCount": len(values), "columnCount": len(values[0]) if values[0] else 0, "values": values})


def batch_values_response(value_ranges: List[Dict[str, Any]]) -> CallToolResult:
    """Format the ``valueRanges`` of a batch read.

    Args:
        value_ranges: ``valueRanges`` array from the API

    Returns:
        CallToolResult: JSON summary of every range
    """
    formatted = []
    for vr in value_ranges:
        values = vr.get("values") or []
        formatted.append({"range": vr.get("range"), "rowCount": len(values), "columnCount": len(values[0]) if values and values[0] else 0, "values": values})
    return json_response({"totalRanges": len(value_ranges), "valueRanges": formatted})


def metadata_response(metadata: Dict[str, Any]) -> CallToolResult:
    """Summarise spreadsheet metadata.

    Args:
        metadata: ``Spreadsheet`` resource

    Returns:
        CallToolResult: JSON with title, locale, time zone and per-sheet properties
    """
    properties = metadata.get("properties") or {}
    sheets = []
    for sheet in metadata.get("sheets") or []:
        sheet_props = sheet.get("properties") or {}
        grid = sheet_props.get("gridProperties") or {}
        sheets.append(
            {
                "sheetId": sheet_props.get("sheetId"),
                "title": sheet_props.get("title"),
                "index": sheet_props.get("index"),
                "rowCount": grid.get("rowCount"),
                "columnCount": grid.get("columnCount"),
                "tabColor": sheet_props.get("tabColor"),
                "charts": [chart.get("chartId") for chart in sheet.get("charts") or []],
            }
        )
    return json_response(
        {
            "spreadsheetId": metadata.get("spreadsheetId"),
            "title": properties.get("title"),
            "locale": properties.get("locale"),
            "timeZone": properties.get("timeZone"),
            "sheets": sheets,
        }
    )


def update_response(updated_cells: int, updated_range: Optional[str] = None) -> CallToolResult:
    """Describe a write.

    Args:
        updated_cells: Number of cells written
        updated_range: Range written, if reported

    Returns:
        CallToolResult: Text result

    Examples:
        >>> update_response(4, "Sheet1!A1:B2").content[0].text
        'Successfully updated 4 cells in range: Sheet1!A1:B2'
    """
    if updated_range:
        return text_response(f"Successfully updated {updated_cells} cells in range: {updated_range}")
    return text_response(f"Successfully updated {updated_cells} cells")


def operation_response(operation: str, details: Optional[Dict[str, Any]] = None) -> CallToolResult:
    """Describe a completed sheet operation.

    Args:
        operation: Operation label, e.g. ``"Sheet inserted"``
        details: Optional JSON details

    Returns:
        CallToolResult: Text result
    """
    message = f"{operation} completed successfully"
    return json_response(details, message) if details else text_response(message)


def handle_error(error: BaseException) -> CallToolResult:
    """Translate an exception raised by a tool into an ``isError`` result.

    Args:
        error: Exception raised while running the tool

    Returns:
        CallToolResult: Error result with remediation hints for common API failures

    Examples:
        >>> handle_error(SheetsApiError("nope", code=403)).content[0].text.splitlines()[0]
        'Error: Permission denied'
        >>> handle_error(ValueError("No properties to update")).content[0].text
        'Error: No properties to update'
    """
    code = getattr(error, "code", None) if isinstance(error, (SheetsApiError, CredentialError)) else None
    help_text = ""

    if code == 401:
        message = "Authentication failed"
        help_text = "Please check that your service account credentials are valid."
    elif code == 403:
        message = "Permission denied"
        help_text = "Please ensure the service account has access to the spreadsheet. Share the spreadsheet with the service account email address."
    elif code == 404:
        message = "Spreadsheet or range not found"
        help_text = f"Please check that the spreadsheet ID and range are correct. The spreadsheet ID can be found in the URL: {SPREADSHEET_URL_HINT}"
    elif code == 429:
        message = "Rate limit exceeded"
        help_text = "Too many requests. Please wait a moment and try again."
    elif code == 400:
        message = "Invalid request"
        help_text = str(error) or "Please check your input parameters."
    else:
        message = str(error) or "An unexpected error occurred"

    full_message = f"{message}\n\n{help_text}" if help_text else message
    if isinstance(error, (SheetsApiError, CredentialError, ValueError)):
        logger.info(f"Sheets operation failed: {message}")
    else:
        logger.error(f"Unexpected error in Sheets operation: {error}", exc_info=error)
    return error_response(full_message)
