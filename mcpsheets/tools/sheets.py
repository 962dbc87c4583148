# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/tools/sheets.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Spreadsheet and sheet management tools: access checks, metadata, creating
spreadsheets, and adding, removing, copying or renaming sheets.
"""

# Standard
import logging
from typing import Any, Dict, List, Optional

# Third-Party
from mcp.types import CallToolResult
from pydantic import BaseModel, Field

# First-Party
from mcpsheets.services.sheets_service import SheetsApiError, SheetsClient
from mcpsheets.tools.formatters import json_response, metadata_response, operation_response
from mcpsheets.tools.registry import ToolDefinition
from mcpsheets.tools.values import SpreadsheetInput

logger = logging.getLogger(__name__)

SHEET_ID_DESCRIPTION = "The ID of the sheet (use sheets_get_metadata to find sheet IDs)"


class CheckAccessInput(SpreadsheetInput):
    """Input for ``sheets_check_access``."""


class GetMetadataInput(SpreadsheetInput):
    """Input for ``sheets_get_metadata``."""


class NewSheet(BaseModel):
    """Initial sheet of a new spreadsheet."""

    title: Optional[str] = Field(None, description="Sheet title (default: SheetN)")
    row_count: int = Field(1000, alias="rowCount", gt=0, description="Number of rows (default: 1000)")
    column_count: int = Field(26, alias="columnCount", gt=0, description="Number of columns (default: 26)")


class CreateSpreadsheetInput(BaseModel):
    """Input for ``sheets_create_spreadsheet``."""

    title: str = Field(..., min_length=1, description="The title of the new spreadsheet")
    sheets: List[NewSheet] = Field(default_factory=list, description="Optional initial sheets")


class InsertSheetInput(SpreadsheetInput):
    """Input for ``sheets_insert_sheet``."""

    title: str = Field(..., min_length=1, description="The title of the new sheet")
    index: Optional[int] = Field(None, ge=0, description="The index where the sheet should be inserted (0-based)")
    row_count: int = Field(1000, alias="rowCount", gt=0, description="Number of rows in the sheet (default: 1000)")
    column_count: int = Field(26, alias="columnCount", gt=0, description="Number of columns in the sheet (default: 26)")


class DeleteSheetInput(SpreadsheetInput):
    """Input for ``sheets_delete_sheet``."""

    sheet_id: int = Field(..., alias="sheetId", description=SHEET_ID_DESCRIPTION)


class BatchDeleteSheetsInput(SpreadsheetInput):
    """Input for ``sheets_batch_delete_sheets``."""

    sheet_ids: List[int] = Field(..., alias="sheetIds", min_length=1, description="Array of sheet IDs to delete (use sheets_get_metadata to find sheet IDs)")


class DuplicateSheetInput(SpreadsheetInput):
    """Input for ``sheets_duplicate_sheet``."""

    sheet_id: int = Field(..., alias="sheetId", description=SHEET_ID_DESCRIPTION)
    insert_sheet_index: Optional[int] = Field(None, alias="insertSheetIndex", ge=0, description="The index where the new sheet should be inserted (0-based)")
    new_sheet_name: Optional[str] = Field(None, alias="newSheetName", description="The name for the duplicated sheet")


class CopyToInput(SpreadsheetInput):
    """Input for ``sheets_copy_to``."""

    sheet_id: int = Field(..., alias="sheetId", description=SHEET_ID_DESCRIPTION)
    destination_spreadsheet_id: str = Field(..., alias="destinationSpreadsheetId", min_length=1, description="The ID of the destination spreadsheet")


class GridProperties(BaseModel):
    """Grid properties that can be changed on a sheet."""

    row_count: Optional[int] = Field(None, alias="rowCount", gt=0, description="Number of rows")
    column_count: Optional[int] = Field(None, alias="columnCount", gt=0, description="Number of columns")
    frozen_row_count: Optional[int] = Field(None, alias="frozenRowCount", ge=0, description="Number of frozen rows")
    frozen_column_count: Optional[int] = Field(None, alias="frozenColumnCount", ge=0, description="Number of frozen columns")


class TabColor(BaseModel):
    """RGB tab colour with components between 0 and 1."""

    red: float = Field(..., ge=0, le=1, description="Red component (0.0-1.0)")
    green: float = Field(..., ge=0, le=1, description="Green component (0.0-1.0)")
    blue: float = Field(..., ge=0, le=1, description="Blue component (0.0-1.0)")


class UpdateSheetPropertiesInput(SpreadsheetInput):
    """Input for ``sheets_update_sheet_properties``."""

    sheet_id: int = Field(..., alias="sheetId", description=SHEET_ID_DESCRIPTION)
    title: Optional[str] = Field(None, description="New title for the sheet")
    grid_properties: Optional[GridProperties] = Field(None, alias="gridProperties", description="Grid properties to update")
    tab_color: Optional[TabColor] = Field(None, alias="tabColor", description="Tab color (RGB values from 0.0 to 1.0)")


class DeleteChartInput(SpreadsheetInput):
    """Input for ``sheets_delete_chart``."""

    chart_id: int = Field(..., alias="chartId", description="The ID of the chart to delete (use sheets_get_metadata to find chart IDs)")


def _first_reply(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Return ``replies[0][key].properties`` of a batchUpdate response, or ``{}``."""
    replies = data.get("replies") or [{}]
    return ((replies[0] or {}).get(key) or {}).get("properties") or {}


async def handle_check_access(params: CheckAccessInput, sheets: SheetsClient) -> CallToolResult:
    """Report whether the service account can read and write the spreadsheet.

    Write access is tested by re-applying the spreadsheet's current title,
    which needs editor permission but changes nothing. A 403 or 400 answer
    means read-only; any other failure is not a permission problem and
    counts as writable. Without a known title the write check is skipped.
    """
    permissions: Dict[str, Any] = {"canRead": False, "canWrite": False, "error": None}
    try:
        metadata = await sheets.get_spreadsheet(params.spreadsheet_id, fields="properties.title,sheets.properties.sheetId,sheets.properties.title")
    except SheetsApiError as exc:
        if exc.code == 404:
            permissions["error"] = "Spreadsheet not found. Check if the ID is correct."
        elif exc.code == 403:
            permissions["error"] = "Access denied. The spreadsheet needs to be shared with your service account."
        else:
            permissions["error"] = str(exc) or "Unknown error occurred"
        recommendation = f"Share the spreadsheet with {sheets.credentials.client_email} and grant appropriate permissions."
        return json_response({"spreadsheetId": params.spreadsheet_id, "permissions": permissions, "recommendation": recommendation}, permissions["error"])

    permissions["canRead"] = True
    title = (metadata.get("properties") or {}).get("title")
    if title is not None:
        try:
            await sheets.batch_update(params.spreadsheet_id, [{"updateSpreadsheetProperties": {"properties": {"title": title}, "fields": "title"}}])
            permissions["canWrite"] = True
        except SheetsApiError as exc:
            permissions["canWrite"] = exc.code not in (400, 403)
            logger.debug(f"Write check on {params.spreadsheet_id} failed with {exc.code}: canWrite={permissions['canWrite']}")

    recommendation = (
        "You have full read/write access to this spreadsheet."
        if permissions["canWrite"]
        else "You have read-only access to this spreadsheet. To write data, the spreadsheet owner needs to grant you Editor permissions."
    )
    return json_response(
        {
            "spreadsheetId": params.spreadsheet_id,
            "title": title or "Unknown",
            "permissions": permissions,
            "sheets": [{"sheetId": (s.get("properties") or {}).get("sheetId"), "title": (s.get("properties") or {}).get("title")} for s in metadata.get("sheets") or []],
            "recommendation": recommendation,
        },
        "Success",
    )


async def handle_get_metadata(params: GetMetadataInput, sheets: SheetsClient) -> CallToolResult:
    """Describe a spreadsheet and its sheets."""
    return metadata_response(await sheets.get_spreadsheet(params.spreadsheet_id))


async def handle_create_spreadsheet(params: CreateSpreadsheetInput, sheets: SheetsClient) -> CallToolResult:
    """Create a spreadsheet, optionally with named sheets."""
    body: Dict[str, Any] = {"properties": {"title": params.title}}
    if params.sheets:
        body["sheets"] = [
            {"properties": {"title": sheet.title or f"Sheet{index + 1}", "gridProperties": {"rowCount": sheet.row_count, "columnCount": sheet.column_count}}}
            for index, sheet in enumerate(params.sheets)
        ]
    data = await sheets.create_spreadsheet(body)
    return json_response(
        {"spreadsheetId": data.get("spreadsheetId"), "spreadsheetUrl": data.get("spreadsheetUrl"), "title": (data.get("properties") or {}).get("title")},
        "Spreadsheet created successfully",
    )


async def handle_insert_sheet(params: InsertSheetInput, sheets: SheetsClient) -> CallToolResult:
    """Add a sheet."""
    properties: Dict[str, Any] = {"title": params.title, "gridProperties": {"rowCount": params.row_count, "columnCount": params.column_count}}
    if params.index is not None:
        properties["index"] = params.index
    data = await sheets.batch_update(params.spreadsheet_id, [{"addSheet": {"properties": properties}}])
    added = _first_reply(data, "addSheet")
    return operation_response("Sheet inserted", {"sheetId": added.get("sheetId"), "title": added.get("title"), "index": added.get("index")})


async def handle_delete_sheet(params: DeleteSheetInput, sheets: SheetsClient) -> CallToolResult:
    """Remove one sheet."""
    await sheets.batch_update(params.spreadsheet_id, [{"deleteSheet": {"sheetId": params.sheet_id}}])
    return operation_response("Sheet deleted", {"sheetId": params.sheet_id})


async def handle_batch_delete_sheets(params: BatchDeleteSheetsInput, sheets: SheetsClient) -> CallToolResult:
    """Remove several sheets in one request."""
    data = await sheets.batch_update(params.spreadsheet_id, [{"deleteSheet": {"sheetId": sheet_id}} for sheet_id in params.sheet_ids])
    return json_response(
        {"spreadsheetId": data.get("spreadsheetId"), "deletedSheetIds": params.sheet_ids, "updatedReplies": data.get("replies") or []},
        f"Successfully deleted {len(params.sheet_ids)} sheets",
    )


async def handle_duplicate_sheet(params: DuplicateSheetInput, sheets: SheetsClient) -> CallToolResult:
    """Copy a sheet within the same spreadsheet."""
    request: Dict[str, Any] = {"sourceSheetId": params.sheet_id}
    if params.insert_sheet_index is not None:
        request["insertSheetIndex"] = params.insert_sheet_index
    if params.new_sheet_name:
        request["newSheetName"] = params.new_sheet_name
    data = await sheets.batch_update(params.spreadsheet_id, [{"duplicateSheet": request}])
    duplicated = _first_reply(data, "duplicateSheet")
    return operation_response("Sheet duplicated", {"newSheetId": duplicated.get("sheetId"), "title": duplicated.get("title"), "index": duplicated.get("index")})


async def handle_copy_to(params: CopyToInput, sheets: SheetsClient) -> CallToolResult:
    """Copy a sheet into another spreadsheet."""
    data = await sheets.copy_sheet_to(params.spreadsheet_id, params.sheet_id, params.destination_spreadsheet_id)
    return operation_response("Sheet copied", {"destinationSheetId": data.get("sheetId"), "title": data.get("title")})


async def handle_update_sheet_properties(params: UpdateSheetPropertiesInput, sheets: SheetsClient) -> CallToolResult:
    """Rename, resize, freeze or recolour a sheet."""
    properties: Dict[str, Any] = {"sheetId": params.sheet_id}
    fields: List[str] = []

    if params.title is not None:
        properties["title"] = params.title
        fields.append("title")

    if params.grid_properties is not None:
        grid = params.grid_properties.model_dump(by_alias=True, exclude_none=True)
        if grid:
            properties["gridProperties"] = grid
            fields.extend(f"gridProperties.{name}" for name in grid)

    if params.tab_color is not None:
        properties["tabColor"] = params.tab_color.model_dump()
        fields.append("tabColor")

    if not fields:
        raise ValueError("No properties to update")

    joined = ",".join(fields)
    await sheets.batch_update(params.spreadsheet_id, [{"updateSheetProperties": {"properties": properties, "fields": joined}}])
    return operation_response("Sheet properties updated", {"sheetId": params.sheet_id, "updatedFields": joined})


async def handle_delete_chart(params: DeleteChartInput, sheets: SheetsClient) -> CallToolResult:
    """Remove an embedded chart."""
    data = await sheets.batch_update(params.spreadsheet_id, [{"deleteEmbeddedObject": {"objectId": params.chart_id}}])
    return json_response(
        {"spreadsheetId": data.get("spreadsheetId"), "deletedChartId": params.chart_id, "updatedReplies": data.get("replies") or []},
        f"Successfully deleted chart {params.chart_id}",
    )


SHEET_TOOLS = [
    ToolDefinition("sheets_check_access", "Check access permissions for a spreadsheet. Returns information about what operations are allowed.", CheckAccessInput, handle_check_access),
    ToolDefinition("sheets_get_metadata", "Get metadata about a Google Sheets spreadsheet including sheet names, IDs, and properties", GetMetadataInput, handle_get_metadata),
    ToolDefinition("sheets_create_spreadsheet", "Create a new Google Sheets spreadsheet", CreateSpreadsheetInput, handle_create_spreadsheet),
    ToolDefinition("sheets_insert_sheet", "Add a new sheet to an existing Google Sheets spreadsheet", InsertSheetInput, handle_insert_sheet),
    ToolDefinition("sheets_delete_sheet", "Delete a sheet from a Google Sheets spreadsheet", DeleteSheetInput, handle_delete_sheet),
    ToolDefinition("sheets_batch_delete_sheets", "Delete multiple sheets from a Google Sheets spreadsheet in a single operation", BatchDeleteSheetsInput, handle_batch_delete_sheets),
    ToolDefinition("sheets_duplicate_sheet", "Duplicate a sheet within a Google Sheets spreadsheet", DuplicateSheetInput, handle_duplicate_sheet),
    ToolDefinition("sheets_copy_to", "Copy a sheet to another Google Sheets spreadsheet", CopyToInput, handle_copy_to),
    ToolDefinition("sheets_update_sheet_properties", "Update properties of a sheet in a Google Sheets spreadsheet", UpdateSheetPropertiesInput, handle_update_sheet_properties),
    ToolDefinition("sheets_delete_chart", "Delete a chart from a Google Sheets spreadsheet", DeleteChartInput, handle_delete_chart),
]
