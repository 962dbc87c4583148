# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/tools/charts.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Embedded chart tools: create and update charts.

Series and domain ranges are given in A1 notation. A range without a sheet
name belongs to the sheet of the first series, or to the sheet the chart is
anchored on. When no domain range is given, the domain defaults to column A
over the rows of the first series.

Examples:
    >>> legend_position(None)
    'BOTTOM_LEGEND'
    >>> legend_position(Legend(position="RIGHT"))
    'RIGHT_LEGEND'
    >>> legend_position(Legend(position="NO_LEGEND"))
    'NO_LEGEND'
    >>> default_domain_range("B2:C10")
    'A2:A10'
    >>> default_domain_range("B2") is None
    True
"""

# Standard
import re
from typing import Any, Dict, List, Literal, Optional

# Third-Party
from mcp.types import CallToolResult
from pydantic import Field, field_validator, ValidationInfo

# First-Party
from mcpsheets.services.sheets_service import SheetsClient
from mcpsheets.tools.formatters import json_response
from mcpsheets.tools.formatting import Color, SheetsObject
from mcpsheets.tools.ranges import SheetIdResolver, split_sheet_name
from mcpsheets.tools.registry import ToolDefinition
from mcpsheets.tools.values import parse_json_input, SpreadsheetInput

ChartType = Literal["COLUMN", "BAR", "LINE", "AREA", "PIE", "SCATTER", "COMBO", "HISTOGRAM", "CANDLESTICK", "WATERFALL"]
SeriesType = Literal["COLUMN", "BAR", "LINE", "AREA", "PIE", "SCATTER"]
TargetAxis = Literal["LEFT_AXIS", "RIGHT_AXIS"]

DEFAULT_LEGEND_POSITION = "BOTTOM_LEGEND"
BOUNDED_ROWS_PATTERN = re.compile(r"[A-Z]+(\d+):[A-Z]+(\d+)", re.IGNORECASE)
JSON_OBJECT_FIELDS = ("position", "domain_axis", "left_axis", "right_axis", "legend", "background_color")


class AnchorCell(SheetsObject):
    """Cell the chart's top-left corner is anchored to."""

    sheet_id: int = Field(..., alias="sheetId", description="ID of the sheet where the chart will be placed")
    row_index: int = Field(..., alias="rowIndex", ge=0, description="Row index (0-based) for chart position")
    column_index: int = Field(..., alias="columnIndex", ge=0, description="Column index (0-based) for chart position")


class OverlayPosition(SheetsObject):
    """Chart floating over the grid."""

    anchor_cell: AnchorCell = Field(..., alias="anchorCell")
    offset_x_pixels: Optional[int] = Field(None, alias="offsetXPixels", description="Horizontal offset in pixels from anchor cell")
    offset_y_pixels: Optional[int] = Field(None, alias="offsetYPixels", description="Vertical offset in pixels from anchor cell")
    width_pixels: Optional[int] = Field(None, alias="widthPixels", gt=0, description="Chart width in pixels")
    height_pixels: Optional[int] = Field(None, alias="heightPixels", gt=0, description="Chart height in pixels")


class ChartPosition(SheetsObject):
    """``EmbeddedObjectPosition`` using an overlay position."""

    overlay_position: OverlayPosition = Field(..., alias="overlayPosition")


class ChartSeries(SheetsObject):
    """One data series."""

    source_range: str = Field(..., alias="sourceRange", min_length=1, description="Data range for this series in A1 notation")
    type: Optional[SeriesType] = Field(None, description="Chart type for this series (for combo charts)")
    target_axis: Optional[TargetAxis] = Field(None, alias="targetAxis", description="Which axis this series should use")


class Axis(SheetsObject):
    """Axis settings; only the title is applied."""

    title: Optional[str] = None


class Legend(SheetsObject):
    """Legend settings; ``position`` may omit the ``_LEGEND`` suffix."""

    position: Optional[str] = None


class ChartInput(SpreadsheetInput):
    """Arguments shared by chart creation and update."""

    title: Optional[str] = Field(None, description="Chart title")
    subtitle: Optional[str] = Field(None, description="Chart subtitle")
    domain_axis: Optional[Axis] = Field(None, alias="domainAxis", description="Domain (X) axis configuration")
    left_axis: Optional[Axis] = Field(None, alias="leftAxis", description="Left (Y) axis configuration")
    right_axis: Optional[Axis] = Field(None, alias="rightAxis", description="Right (Y) axis configuration")
    legend: Optional[Legend] = Field(None, description="Legend configuration")
    background_color: Optional[Color] = Field(None, alias="backgroundColor", description="Chart background color")
    alt_text: Optional[str] = Field(None, alias="altText", description="Alternative text for accessibility")

    @field_validator(*JSON_OBJECT_FIELDS, mode="before", check_fields=False)
    @classmethod
    def decode_objects(cls, v: Any, info: ValidationInfo) -> Any:
        """Accept object arguments as JSON strings."""
        return parse_json_input(v, info.field_name)


class CreateChartInput(ChartInput):
    """Input for ``sheets_create_chart``."""

    position: ChartPosition = Field(..., description="Chart position settings with overlay position")
    chart_type: ChartType = Field(..., alias="chartType", description="Type of chart to create")
    series: List[ChartSeries] = Field(..., min_length=1, description="Array of data series for the chart")
    domain_range: Optional[str] = Field(None, alias="domainRange", description="Optional domain range in A1 notation")


class UpdateChartInput(ChartInput):
    """Input for ``sheets_update_chart``."""

    chart_id: int = Field(..., alias="chartId", description="The ID of the chart to update (use sheets_get_metadata to find chart IDs)")
    position: Optional[ChartPosition] = Field(None, description="Updated chart position settings")
    chart_type: Optional[ChartType] = Field(None, alias="chartType", description="Updated chart type")
    series: Optional[List[ChartSeries]] = Field(None, min_length=1, description="Updated array of data series for the chart")


def legend_position(legend: Optional[Legend]) -> str:
    """Return the API legend position, adding the ``_LEGEND`` suffix when missing.

    Args:
        legend: Legend settings, if any

    Returns:
        str: Legend position
    """
    position = legend.position if legend is not None else None
    if not position:
        return DEFAULT_LEGEND_POSITION
    if position == "NO_LEGEND" or position.endswith("_LEGEND"):
        return position
    return f"{position}_LEGEND"


def default_domain_range(cell_range: str) -> Optional[str]:
    """Return column A over the rows of a bounded range, or None for a single cell.

    Args:
        cell_range: Cell range without a sheet title

    Returns:
        Optional[str]: Domain range
    """
    match = BOUNDED_ROWS_PATTERN.search(cell_range)
    return f"A{match.group(1)}:A{match.group(2)}" if match else None


def chart_axes(params: ChartInput) -> List[Dict[str, Any]]:
    """Build ``BasicChartAxis`` entries for the axes that have a title.

    Args:
        params: Chart arguments

    Returns:
        List[Dict[str, Any]]: Axis entries
    """
    axes = []
    for position, axis in (("BOTTOM_AXIS", params.domain_axis), ("LEFT_AXIS", params.left_axis), ("RIGHT_AXIS", params.right_axis)):
        if axis is not None and axis.title:
            axes.append({"position": position, "title": axis.title})
    return axes


def source_range(grid_range: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a ``GridRange`` as ``ChartData``."""
    return {"sourceRange": {"sources": [grid_range]}}


async def _series_sheet_id(resolver: SheetIdResolver, series: List[ChartSeries], anchor_sheet_id: Optional[int]) -> Optional[int]:
    """Return the sheet of the first series when it names one, else the anchor sheet."""
    title, _ = split_sheet_name(series[0].source_range)
    return await resolver.sheet_id(title) if title else anchor_sheet_id


async def _domain(resolver: SheetIdResolver, series: List[ChartSeries], domain_range: Optional[str], sheet_id: Optional[int]) -> Optional[Dict[str, Any]]:
    """Resolve the explicit domain range or derive one from the first series."""
    if domain_range:
        return source_range(await resolver.grid_range(domain_range, sheet_id))
    _, first_range = split_sheet_name(series[0].source_range)
    derived = default_domain_range(first_range)
    return source_range(await resolver.grid_range(derived, sheet_id)) if derived else None


async def _basic_series(resolver: SheetIdResolver, series: List[ChartSeries], chart_type: Optional[str], sheet_id: Optional[int]) -> List[Dict[str, Any]]:
    """Build ``BasicChartSeries`` entries."""
    entries = []
    for item in series:
        entry: Dict[str, Any] = {"series": source_range(await resolver.grid_range(item.source_range, sheet_id)), "targetAxis": item.target_axis or "LEFT_AXIS"}
        if item.type or chart_type:
            entry["type"] = item.type or chart_type
        entries.append(entry)
    return entries


def _apply_text_fields(spec: Dict[str, Any], params: ChartInput) -> None:
    """Copy title, subtitle, background colour and alt text into a chart spec."""
    if params.title is not None:
        spec["title"] = params.title
    if params.subtitle is not None:
        spec["subtitle"] = params.subtitle
    if params.background_color is not None:
        spec["backgroundColor"] = params.background_color.to_api()
    if params.alt_text is not None:
        spec["altText"] = params.alt_text


async def handle_create_chart(params: CreateChartInput, sheets: SheetsClient) -> CallToolResult:
    """Add an embedded chart."""
    resolver = SheetIdResolver(sheets, params.spreadsheet_id)
    anchor_sheet_id = params.position.overlay_position.anchor_cell.sheet_id
    sheet_id = await _series_sheet_id(resolver, params.series, anchor_sheet_id)

    spec: Dict[str, Any] = {}
    _apply_text_fields(spec, params)
    legend = legend_position(params.legend)

    if params.chart_type == "PIE":
        pie: Dict[str, Any] = {"legendPosition": legend, "series": source_range(await resolver.grid_range(params.series[0].source_range, sheet_id)), "domain": {}}
        domain = await _domain(resolver, params.series, params.domain_range, sheet_id)
        if domain is not None:
            pie["domain"] = domain
        spec["pieChart"] = pie
    else:
        domain = await _domain(resolver, params.series, params.domain_range, sheet_id)
        spec["basicChart"] = {
            "chartType": params.chart_type,
            "legendPosition": legend,
            "axis": chart_axes(params),
            "domains": [{"domain": domain}] if domain is not None else [],
            "series": await _basic_series(resolver, params.series, params.chart_type, sheet_id),
        }

    data = await sheets.batch_update(params.spreadsheet_id, [{"addChart": {"chart": {"spec": spec, "position": params.position.to_api()}}}])
    replies = data.get("replies") or []
    chart = ((replies[0] if replies else {}).get("addChart") or {}).get("chart") or {}
    return json_response(
        {"spreadsheetId": data.get("spreadsheetId"), "chartId": chart.get("chartId"), "chartType": params.chart_type, "title": params.title, "updatedReplies": replies},
        f"Successfully created {params.chart_type} chart",
    )


async def handle_update_chart(params: UpdateChartInput, sheets: SheetsClient) -> CallToolResult:
    """Change the position or spec of an existing chart.

    The current chart is read first; fields that are not given keep their
    current value.
    """
    metadata = await sheets.get_spreadsheet(params.spreadsheet_id, fields="sheets(properties,charts)")
    sheet_list = metadata.get("sheets") or []
    current = next((chart for sheet in sheet_list for chart in sheet.get("charts") or [] if chart.get("chartId") == params.chart_id), None)
    if current is None:
        raise ValueError(f"Chart with ID {params.chart_id} not found")

    resolver = SheetIdResolver(sheets, params.spreadsheet_id, [sheet.get("properties") or {} for sheet in sheet_list])
    current_spec = current.get("spec") or {}
    spec: Dict[str, Any] = dict(current_spec)
    _apply_text_fields(spec, params)

    if params.chart_type == "PIE":
        current_pie = current_spec.get("pieChart") or {}
        spec["pieChart"] = {"legendPosition": legend_position(params.legend), "domain": current_pie.get("domain") or {}, "series": current_pie.get("series") or {}}
        spec.pop("basicChart", None)
    elif params.chart_type is not None:
        current_basic = current_spec.get("basicChart") or {}
        spec["basicChart"] = {
            "chartType": params.chart_type,
            "legendPosition": legend_position(params.legend),
            "axis": current_basic.get("axis") or [],
            "domains": current_basic.get("domains") or [],
            "series": current_basic.get("series") or [],
        }
        spec.pop("pieChart", None)
    elif params.legend is not None:
        for key in ("basicChart", "pieChart"):
            if key in spec:
                spec[key] = {**spec[key], "legendPosition": legend_position(params.legend)}

    if "basicChart" in spec:
        basic = dict(spec["basicChart"])
        axes = chart_axes(params)
        if axes:
            replaced = {axis["position"] for axis in axes}
            basic["axis"] = [axis for axis in basic.get("axis") or [] if axis.get("position") not in replaced] + axes
        if params.series:
            position = params.position.to_api() if params.position is not None else current.get("position") or {}
            anchor_sheet_id = ((position.get("overlayPosition") or {}).get("anchorCell") or {}).get("sheetId")
            sheet_id = await _series_sheet_id(resolver, params.series, anchor_sheet_id)
            basic["series"] = await _basic_series(resolver, params.series, params.chart_type, sheet_id)
        spec["basicChart"] = basic

    requests: List[Dict[str, Any]] = []
    if params.position is not None:
        requests.append({"updateEmbeddedObjectPosition": {"objectId": params.chart_id, "newPosition": params.position.to_api(), "fields": "*"}})
    requests.append({"updateChartSpec": {"chartId": params.chart_id, "spec": spec}})

    data = await sheets.batch_update(params.spreadsheet_id, requests)
    updated = [name for name in params.model_dump(by_alias=True, exclude_unset=True) if name not in ("spreadsheetId", "chartId")]
    return json_response(
        {"spreadsheetId": data.get("spreadsheetId"), "chartId": params.chart_id, "updatedFields": updated, "updatedReplies": data.get("replies") or []},
        f"Successfully updated chart {params.chart_id}",
    )


CHART_TOOLS = [
    ToolDefinition(
        "sheets_create_chart",
        "Create a chart in a Google Sheets spreadsheet. Sheet names with spaces should be quoted in ranges (e.g., \"My Sheet\"!A1:B5). "
        "Position uses overlayPosition with anchorCell containing sheetId, rowIndex, and columnIndex.",
        CreateChartInput,
        handle_create_chart,
    ),
    ToolDefinition("sheets_update_chart", "Update an existing chart in a Google Sheets spreadsheet", UpdateChartInput, handle_update_chart),
]
