# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/tools/formatting.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Cell presentation tools: formats, borders, merges and conditional formatting.

Every tool addresses cells with A1 ranges, converts them to ``GridRange``
objects (see ``mcpsheets.tools.ranges``) and sends a single
``spreadsheets.batchUpdate``. Object arguments may also arrive as JSON
strings, which some MCP clients send for nested parameters.
"""

# Standard
import logging
from typing import Any, Dict, List, Literal, Optional

# Third-Party
from mcp.types import CallToolResult
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# First-Party
from mcpsheets.services.sheets_service import SheetsClient
from mcpsheets.tools.formatters import json_response
from mcpsheets.tools.ranges import SheetIdResolver
from mcpsheets.tools.registry import ToolDefinition
from mcpsheets.tools.values import parse_json_input, SpreadsheetInput

logger = logging.getLogger(__name__)

HorizontalAlignment = Literal["LEFT", "CENTER", "RIGHT"]
VerticalAlignment = Literal["TOP", "MIDDLE", "BOTTOM"]
WrapStrategy = Literal["OVERFLOW_CELL", "LEGACY_WRAP", "CLIP", "WRAP"]
NumberFormatType = Literal["TEXT", "NUMBER", "PERCENT", "CURRENCY", "DATE", "TIME", "DATE_TIME", "SCIENTIFIC"]
BorderStyle = Literal["NONE", "SOLID", "DASHED", "DOTTED", "SOLID_MEDIUM", "SOLID_THICK", "DOUBLE"]
MergeType = Literal["MERGE_ALL", "MERGE_COLUMNS", "MERGE_ROWS"]
ConditionType = Literal[
    "NUMBER_GREATER",
    "NUMBER_GREATER_THAN_EQ",
    "NUMBER_LESS",
    "NUMBER_LESS_THAN_EQ",
    "NUMBER_EQ",
    "NUMBER_NOT_EQ",
    "NUMBER_BETWEEN",
    "NUMBER_NOT_BETWEEN",
    "TEXT_CONTAINS",
    "TEXT_NOT_CONTAINS",
    "TEXT_STARTS_WITH",
    "TEXT_ENDS_WITH",
    "TEXT_EQ",
    "BLANK",
    "NOT_BLANK",
    "CUSTOM_FORMULA",
]
InterpolationPointType = Literal["MIN", "MAX", "NUMBER", "PERCENT", "PERCENTILE"]

RANGE_DESCRIPTION = 'The A1 notation range (e.g., "Sheet1!A1:B10"); without a sheet name the first sheet is used'


class SheetsObject(BaseModel):
    """Base for nested Sheets API objects, accepting camelCase or snake_case keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_api(self) -> Dict[str, Any]:
        """Return the camelCase API representation without unset members."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Color(SheetsObject):
    """RGBA colour with components between 0 and 1."""

    red: Optional[float] = Field(None, ge=0, le=1)
    green: Optional[float] = Field(None, ge=0, le=1)
    blue: Optional[float] = Field(None, ge=0, le=1)
    alpha: Optional[float] = Field(None, ge=0, le=1)


class TextFormat(SheetsObject):
    """Font settings of a cell."""

    foreground_color: Optional[Color] = Field(None, alias="foregroundColor")
    font_family: Optional[str] = Field(None, alias="fontFamily")
    font_size: Optional[float] = Field(None, alias="fontSize", gt=0)
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    strikethrough: Optional[bool] = None
    underline: Optional[bool] = None


class NumberFormat(SheetsObject):
    """How numbers, dates and times are displayed."""

    type: NumberFormatType
    pattern: Optional[str] = None


class Padding(SheetsObject):
    """Cell padding in pixels."""

    top: Optional[int] = None
    right: Optional[int] = None
    bottom: Optional[int] = None
    left: Optional[int] = None


class CellFormat(SheetsObject):
    """Format applied to every cell of a range."""

    background_color: Optional[Color] = Field(None, alias="backgroundColor")
    text_format: Optional[TextFormat] = Field(None, alias="textFormat")
    horizontal_alignment: Optional[HorizontalAlignment] = Field(None, alias="horizontalAlignment")
    vertical_alignment: Optional[VerticalAlignment] = Field(None, alias="verticalAlignment")
    wrap_strategy: Optional[WrapStrategy] = Field(None, alias="wrapStrategy")
    number_format: Optional[NumberFormat] = Field(None, alias="numberFormat")
    padding: Optional[Padding] = None


class FormatCellsInput(SpreadsheetInput):
    """Input for ``sheets_format_cells``."""

    range: str = Field(..., min_length=1, description=RANGE_DESCRIPTION)
    format: CellFormat = Field(..., description="The format to apply to the cells")

    @field_validator("format", mode="before")
    @classmethod
    def decode_format(cls, v: Any) -> Any:
        """Accept the format as a JSON string."""
        return parse_json_input(v, "format")


class FormatRequest(SheetsObject):
    """One range and the format to apply to it."""

    range: str = Field(..., min_length=1, description=RANGE_DESCRIPTION)
    format: CellFormat = Field(..., description="Cell format settings (colors, fonts, alignment, etc.)")

    @field_validator("format", mode="before")
    @classmethod
    def decode_format(cls, v: Any) -> Any:
        """Accept the format as a JSON string."""
        return parse_json_input(v, "format")


class BatchFormatCellsInput(SpreadsheetInput):
    """Input for ``sheets_batch_format_cells``."""

    format_requests: List[FormatRequest] = Field(..., alias="formatRequests", min_length=1, description="Array of format requests, each containing a range and format object")

    @field_validator("format_requests", mode="before")
    @classmethod
    def decode_requests(cls, v: Any) -> Any:
        """Accept the request list as a JSON string."""
        return parse_json_input(v, "formatRequests")


class Border(SheetsObject):
    """One edge of a border update."""

    style: BorderStyle
    color: Optional[Color] = None
    width: Optional[int] = Field(None, gt=0)


class Borders(SheetsObject):
    """Borders to set; edges left out keep their current style."""

    top: Optional[Border] = None
    bottom: Optional[Border] = None
    left: Optional[Border] = None
    right: Optional[Border] = None
    inner_horizontal: Optional[Border] = Field(None, alias="innerHorizontal")
    inner_vertical: Optional[Border] = Field(None, alias="innerVertical")


class UpdateBordersInput(SpreadsheetInput):
    """Input for ``sheets_update_borders``."""

    range: str = Field(..., min_length=1, description=RANGE_DESCRIPTION)
    borders: Borders = Field(..., description="The border configuration to apply")

    @field_validator("borders", mode="before")
    @classmethod
    def decode_borders(cls, v: Any) -> Any:
        """Accept the borders as a JSON string."""
        return parse_json_input(v, "borders")


class MergeCellsInput(SpreadsheetInput):
    """Input for ``sheets_merge_cells``."""

    range: str = Field(..., min_length=1, description=RANGE_DESCRIPTION)
    merge_type: MergeType = Field(..., alias="mergeType", description="The type of merge to perform")


class UnmergeCellsInput(SpreadsheetInput):
    """Input for ``sheets_unmerge_cells``."""

    range: str = Field(..., min_length=1, description=RANGE_DESCRIPTION)


class ConditionValue(SheetsObject):
    """Value compared by a boolean condition."""

    user_entered_value: Optional[str] = Field(None, alias="userEnteredValue")
    relative_date: Optional[str] = Field(None, alias="relativeDate")


class BooleanCondition(SheetsObject):
    """Condition of a boolean rule."""

    type: ConditionType
    values: Optional[List[ConditionValue]] = None


class BooleanRule(SheetsObject):
    """Apply ``format`` where ``condition`` holds."""

    condition: BooleanCondition
    format: CellFormat


class InterpolationPoint(SheetsObject):
    """Colour stop of a gradient rule."""

    color: Color
    type: InterpolationPointType
    value: Optional[str] = None


class GradientRule(SheetsObject):
    """Colour scale between a minimum and a maximum point."""

    minpoint: InterpolationPoint
    maxpoint: InterpolationPoint
    midpoint: Optional[InterpolationPoint] = None


class ConditionalFormatRule(SheetsObject):
    """Ranges plus exactly one boolean or gradient rule."""

    ranges: List[str] = Field(..., min_length=1)
    boolean_rule: Optional[BooleanRule] = Field(None, alias="booleanRule")
    gradient_rule: Optional[GradientRule] = Field(None, alias="gradientRule")

    @model_validator(mode="after")
    def check_one_rule(self) -> "ConditionalFormatRule":
        """Require exactly one of ``booleanRule`` and ``gradientRule``.

        Returns:
            ConditionalFormatRule: The validated rule

        Raises:
            ValueError: If neither or both rules are given
        """
        if (self.boolean_rule is None) == (self.gradient_rule is None):
            raise ValueError("each rule needs exactly one of booleanRule or gradientRule")
        return self


class AddConditionalFormattingInput(SpreadsheetInput):
    """Input for ``sheets_add_conditional_formatting``."""

    rules: List[ConditionalFormatRule] = Field(..., min_length=1, description="Conditional formatting rules to add")

    @field_validator("rules", mode="before")
    @classmethod
    def decode_rules(cls, v: Any) -> Any:
        """Accept the rules, or individual rules, as JSON strings."""
        v = parse_json_input(v, "rules")
        if isinstance(v, list):
            return [parse_json_input(rule, "rules") for rule in v]
        return v


def repeat_format_request(grid_range: Dict[str, Any], cell_format: CellFormat) -> Dict[str, Any]:
    """Build a ``repeatCell`` request replacing the user-entered format of a range.

    Args:
        grid_range: Target ``GridRange``
        cell_format: Format to apply

    Returns:
        Dict[str, Any]: batchUpdate request

    Examples:
        >>> repeat_format_request({"sheetId": 0}, CellFormat(horizontalAlignment="CENTER"))
        {'repeatCell': {'range': {'sheetId': 0}, 'cell': {'userEnteredFormat': {'horizontalAlignment': 'CENTER'}}, 'fields': 'userEnteredFormat'}}
    """
    return {"repeatCell": {"range": grid_range, "cell": {"userEnteredFormat": cell_format.to_api()}, "fields": "userEnteredFormat"}}


async def handle_format_cells(params: FormatCellsInput, sheets: SheetsClient) -> CallToolResult:
    """Format one range."""
    grid_range = await SheetIdResolver(sheets, params.spreadsheet_id).grid_range(params.range)
    data = await sheets.batch_update(params.spreadsheet_id, [repeat_format_request(grid_range, params.format)])
    return json_response(
        {"spreadsheetId": data.get("spreadsheetId"), "updatedReplies": data.get("replies") or []},
        f"Successfully formatted cells in range {params.range}",
    )


async def handle_batch_format_cells(params: BatchFormatCellsInput, sheets: SheetsClient) -> CallToolResult:
    """Format several ranges in one request."""
    resolver = SheetIdResolver(sheets, params.spreadsheet_id)
    requests = [repeat_format_request(await resolver.grid_range(item.range), item.format) for item in params.format_requests]
    data = await sheets.batch_update(params.spreadsheet_id, requests)
    return json_response(
        {"spreadsheetId": data.get("spreadsheetId"), "formattedRanges": [item.range for item in params.format_requests], "updatedReplies": data.get("replies") or []},
        f"Successfully formatted {len(requests)} cell ranges",
    )


async def handle_update_borders(params: UpdateBordersInput, sheets: SheetsClient) -> CallToolResult:
    """Set the borders of a range."""
    borders = params.borders.to_api()
    if not borders:
        raise ValueError("No borders to update")
    grid_range = await SheetIdResolver(sheets, params.spreadsheet_id).grid_range(params.range)
    data = await sheets.batch_update(params.spreadsheet_id, [{"updateBorders": {"range": grid_range, **borders}}])
    return json_response({"spreadsheetId": data.get("spreadsheetId")}, f"Successfully updated borders for range {params.range}")


async def handle_merge_cells(params: MergeCellsInput, sheets: SheetsClient) -> CallToolResult:
    """Merge the cells of a range."""
    grid_range = await SheetIdResolver(sheets, params.spreadsheet_id).grid_range(params.range)
    data = await sheets.batch_update(params.spreadsheet_id, [{"mergeCells": {"range": grid_range, "mergeType": params.merge_type}}])
    return json_response({"spreadsheetId": data.get("spreadsheetId")}, f"Successfully merged cells in range {params.range} with merge type {params.merge_type}")


async def handle_unmerge_cells(params: UnmergeCellsInput, sheets: SheetsClient) -> CallToolResult:
    """Split every merged cell in a range."""
    grid_range = await SheetIdResolver(sheets, params.spreadsheet_id).grid_range(params.range)
    data = await sheets.batch_update(params.spreadsheet_id, [{"unmergeCells": {"range": grid_range}}])
    return json_response({"spreadsheetId": data.get("spreadsheetId")}, f"Successfully unmerged cells in range {params.range}")


async def handle_add_conditional_formatting(params: AddConditionalFormattingInput, sheets: SheetsClient) -> CallToolResult:
    """Add conditional formatting rules, one ``addConditionalFormatRule`` request per rule."""
    resolver = SheetIdResolver(sheets, params.spreadsheet_id)
    requests = []
    for rule in params.rules:
        api_rule: Dict[str, Any] = {"ranges": [await resolver.grid_range(a1_range) for a1_range in rule.ranges]}
        if rule.boolean_rule is not None:
            api_rule["booleanRule"] = rule.boolean_rule.to_api()
        else:
            api_rule["gradientRule"] = rule.gradient_rule.to_api()
        requests.append({"addConditionalFormatRule": {"rule": api_rule}})

    data = await sheets.batch_update(params.spreadsheet_id, requests)
    logger.debug(f"Added {len(requests)} conditional format rule(s) to {params.spreadsheet_id}")
    return json_response(
        {"spreadsheetId": data.get("spreadsheetId"), "rulesAdded": len(requests)},
        f"Successfully added {len(requests)} conditional formatting rule(s)",
    )


FORMATTING_TOOLS = [
    ToolDefinition("sheets_format_cells", "Format cells in a Google Sheet (colors, fonts, alignment, number formats)", FormatCellsInput, handle_format_cells),
    ToolDefinition("sheets_update_borders", "Update borders of cells in a Google Sheet", UpdateBordersInput, handle_update_borders),
    ToolDefinition("sheets_merge_cells", "Merge cells in a Google Sheet", MergeCellsInput, handle_merge_cells),
    ToolDefinition("sheets_unmerge_cells", "Unmerge cells in a Google Sheet", UnmergeCellsInput, handle_unmerge_cells),
    ToolDefinition("sheets_add_conditional_formatting", "Add conditional formatting rules to a Google Sheet", AddConditionalFormattingInput, handle_add_conditional_formatting),
    ToolDefinition("sheets_batch_format_cells", "Format multiple cell ranges in a Google Sheet in a single operation", BatchFormatCellsInput, handle_batch_format_cells),
]
