# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/tools/values.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Cell value tools: read, write, append and clear ranges.
"""

# Standard
import re
from typing import Any, List, Literal, Optional, Union

# Third-Party
from mcp.types import CallToolResult
import orjson
from pydantic import BaseModel, ConfigDict, Field

# First-Party
from mcpsheets.services.sheets_service import SheetsClient
from mcpsheets.tools.formatters import batch_values_response, text_response, update_response, values_response
from mcpsheets.tools.registry import ToolDefinition

CellValue = Union[str, int, float, bool, None]
MajorDimension = Literal["ROWS", "COLUMNS"]
ValueRenderOption = Literal["FORMATTED_VALUE", "UNFORMATTED_VALUE", "FORMULA"]
ValueInputOption = Literal["RAW", "USER_ENTERED"]

SPREADSHEET_ID_DESCRIPTION = "The ID of the spreadsheet (found in the URL after /d/)"
BOUNDED_RANGE_PATTERN = re.compile(r"([A-Z]+)(\d+):([A-Z]+)(\d+)$")


class SpreadsheetInput(BaseModel):
    """Base input carrying the target spreadsheet id."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    spreadsheet_id: str = Field(..., alias="spreadsheetId", min_length=1, description=SPREADSHEET_ID_DESCRIPTION)


def parse_json_input(value: Any, name: str) -> Any:
    """Decode an object argument that a client sent as a JSON string.

    Args:
        value: Raw argument value
        name: Argument name used in the error message

    Returns:
        Any: Decoded value, or ``value`` unchanged when it is not a string

    Raises:
        ValueError: If the string is not valid JSON

    Examples:
        >>> parse_json_input('{"bold": true}', "format")
        {'bold': True}
        >>> parse_json_input({"bold": True}, "format")
        {'bold': True}
        >>> parse_json_input("{bold", "format")
        Traceback (most recent call last):
        ...
        ValueError: Invalid format: Expected object or valid JSON string
    """
    if isinstance(value, str):
        try:
            return orjson.loads(value)
        except orjson.JSONDecodeError:
            raise ValueError(f"Invalid {name}: Expected object or valid JSON string") from None
    return value


class GetValuesInput(SpreadsheetInput):
    """Input for ``sheets_get_values``."""

    range: str = Field(..., min_length=1, description='The A1 notation range to retrieve (e.g., "Sheet1!A1:B10")')
    major_dimension: MajorDimension = Field("ROWS", alias="majorDimension", description="The major dimension of the values (default: ROWS)")
    value_render_option: ValueRenderOption = Field("FORMATTED_VALUE", alias="valueRenderOption", description="How values should be represented (default: FORMATTED_VALUE)")


class BatchGetValuesInput(SpreadsheetInput):
    """Input for ``sheets_batch_get_values``."""

    ranges: List[str] = Field(..., min_length=1, description='Array of A1 notation ranges to retrieve (e.g., ["Sheet1!A1:B10", "Sheet2!C1:D5"])')
    major_dimension: Optional[MajorDimension] = Field(None, alias="majorDimension", description="The major dimension of the values (default: ROWS)")
    value_render_option: Optional[ValueRenderOption] = Field(None, alias="valueRenderOption", description="How values should be represented (default: FORMATTED_VALUE)")


class UpdateValuesInput(SpreadsheetInput):
    """Input for ``sheets_update_values``."""

    range: str = Field(..., min_length=1, description='The A1 notation range to update (e.g., "Sheet1!A1:B10" or "Sheet1!A1" to auto-expand)')
    values: List[List[CellValue]] = Field(..., description="A 2D array of values to write, where each inner array represents a row")
    value_input_option: ValueInputOption = Field("USER_ENTERED", alias="valueInputOption", description="How the input data should be interpreted (default: USER_ENTERED)")


class RangeValues(BaseModel):
    """One range/values pair of a batch update."""

    range: str = Field(..., min_length=1, description="The A1 notation range to update")
    values: List[List[CellValue]] = Field(..., description="A 2D array of values for this range")


class BatchUpdateValuesInput(SpreadsheetInput):
    """Input for ``sheets_batch_update_values``."""

    data: List[RangeValues] = Field(..., min_length=1, description="Array of range-value pairs to update")
    value_input_option: ValueInputOption = Field("USER_ENTERED", alias="valueInputOption", description="How the input data should be interpreted (default: USER_ENTERED)")


class AppendValuesInput(SpreadsheetInput):
    """Input for ``sheets_append_values``."""

    range: str = Field(..., min_length=1, description='The A1 notation range of the table to append to (e.g., "Sheet1!A:B")')
    values: List[List[CellValue]] = Field(..., description="A 2D array of values to append, where each inner array represents a row")
    value_input_option: ValueInputOption = Field("USER_ENTERED", alias="valueInputOption", description="How the input data should be interpreted (default: USER_ENTERED)")
    insert_data_option: Literal["OVERWRITE", "INSERT_ROWS"] = Field("OVERWRITE", alias="insertDataOption", description="How the input data should be inserted (default: OVERWRITE)")


class ClearValuesInput(SpreadsheetInput):
    """Input for ``sheets_clear_values``."""

    range: str = Field(..., min_length=1, description='The A1 notation range to clear (e.g., "Sheet1!A1:B10")')


def validate_range_row_count(range_: str, values: List[List[CellValue]]) -> None:
    """Check that a bounded range has exactly as many rows as ``values``.

    Open ranges such as ``Sheet1!A42`` are not checked; the API expands them.

    Args:
        range_: Target range
        values: Rows to write

    Raises:
        ValueError: If the range bounds a different number of rows

    Examples:
        >>> validate_range_row_count("Sheet1!A1", [[1], [2], [3]])
        >>> validate_range_row_count("Sheet1!A1:B2", [[1, 2], [3, 4]])
        >>> validate_range_row_count("A1:B3", [[1, 2]])
        Traceback (most recent call last):
        ...
        ValueError: Range mismatch: The range "A1:B3" expects exactly 3 rows, but you provided 1 rows (including any empty rows). To fix this, either provide exactly 3 rows, use a flexible range such as "A1", or use the range "A1:B1".
    """
    match = BOUNDED_RANGE_PATTERN.search(range_)
    if not match:
        return
    start_row, end_row = int(match.group(2)), int(match.group(4))
    expected = end_row - start_row + 1
    actual = len(values)
    if expected != actual:
        prefix = f"{range_.rsplit('!', 1)[0]}!" if "!" in range_ else ""
        adjusted = f"{prefix}{match.group(1)}{start_row}:{match.group(3)}{start_row + actual - 1}"
        raise ValueError(
            f'Range mismatch: The range "{range_}" expects exactly {expected} rows, but you provided {actual} rows (including any empty rows). '
            f'To fix this, either provide exactly {expected} rows, use a flexible range such as "{range_.split(":")[0]}", or use the range "{adjusted}".'
        )


async def handle_get_values(params: GetValuesInput, sheets: SheetsClient) -> CallToolResult:
    """Read one range."""
    data = await sheets.get_values(params.spreadsheet_id, params.range, params.major_dimension, params.value_render_option)
    return values_response(data.get("values") or [], data.get("range"))


async def handle_batch_get_values(params: BatchGetValuesInput, sheets: SheetsClient) -> CallToolResult:
    """Read several ranges in one call."""
    limit = sheets.settings.max_ranges_per_batch_get
    if len(params.ranges) > limit:
        raise ValueError(f"Too many ranges: {len(params.ranges)} requested, at most {limit} allowed per call")
    data = await sheets.batch_get_values(params.spreadsheet_id, params.ranges, params.major_dimension, params.value_render_option)
    return batch_values_response(data.get("valueRanges") or [])


async def handle_update_values(params: UpdateValuesInput, sheets: SheetsClient) -> CallToolResult:
    """Overwrite one range."""
    validate_range_row_count(params.range, params.values)
    data = await sheets.update_values(params.spreadsheet_id, params.range, params.values, params.value_input_option)
    return update_response(data.get("updatedCells") or 0, data.get("updatedRange"))


async def handle_batch_update_values(params: BatchUpdateValuesInput, sheets: SheetsClient) -> CallToolResult:
    """Overwrite several ranges in one call."""
    limit = sheets.settings.max_updates_per_batch
    if len(params.data) > limit:
        raise ValueError(f"Too many updates: {len(params.data)} requested, at most {limit} allowed per call")
    data = await sheets.batch_update_values(params.spreadsheet_id, [item.model_dump() for item in params.data], params.value_input_option)
    total = sum(resp.get("updatedCells") or 0 for resp in data.get("responses") or [])
    return update_response(total)


async def handle_append_values(params: AppendValuesInput, sheets: SheetsClient) -> CallToolResult:
    """Append rows after the last row of a table."""
    data = await sheets.append_values(params.spreadsheet_id, params.range, params.values, params.value_input_option, params.insert_data_option)
    updates = data.get("updates") or {}
    return text_response(f"Successfully appended {updates.get('updatedCells') or 0} cells to range: {updates.get('updatedRange')}")


async def handle_clear_values(params: ClearValuesInput, sheets: SheetsClient) -> CallToolResult:
    """Clear values (not formatting) in a range."""
    data = await sheets.clear_values(params.spreadsheet_id, params.range)
    return text_response(f"Successfully cleared range: {data.get('clearedRange') or params.range}")


VALUE_TOOLS = [
    ToolDefinition("sheets_get_values", "Get values from a specified range in a Google Sheets spreadsheet", GetValuesInput, handle_get_values),
    ToolDefinition("sheets_batch_get_values", "Get values from multiple ranges in a Google Sheets spreadsheet", BatchGetValuesInput, handle_batch_get_values),
    ToolDefinition(
        "sheets_update_values",
        "Update values in a specified range of a Google Sheets spreadsheet. "
        'A fixed range such as "A1:C3" must receive exactly 3 rows; a single cell such as "A1" expands to fit all rows. '
        "Empty rows in the data still count as rows.",
        UpdateValuesInput,
        handle_update_values,
    ),
    ToolDefinition("sheets_batch_update_values", "Update values in multiple ranges of a Google Sheets spreadsheet", BatchUpdateValuesInput, handle_batch_update_values),
    ToolDefinition("sheets_append_values", "Append values to the end of a table in a Google Sheets spreadsheet", AppendValuesInput, handle_append_values),
    ToolDefinition("sheets_clear_values", "Clear values in a specified range of a Google Sheets spreadsheet", ClearValuesInput, handle_clear_values),
]
