# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/tools/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Google Sheets tools exposed over MCP.

``ALL_TOOLS`` fixes the order in which ``tools/list`` reports the tools.

Examples:
    >>> registry = build_registry()
    >>> len(registry)
    24
    >>> [tool.name for tool in registry.list_tools()][:3]
    ['sheets_check_access', 'sheets_get_values', 'sheets_batch_get_values']
"""

# Standard
from typing import Optional

# First-Party
from mcpsheets.services.sheets_service import SheetsService
from mcpsheets.tools.charts import CHART_TOOLS
from mcpsheets.tools.formatting import FORMATTING_TOOLS
from mcpsheets.tools.registry import ToolDefinition, ToolNotFoundError, ToolRegistry
from mcpsheets.tools.sheets import SHEET_TOOLS
from mcpsheets.tools.values import VALUE_TOOLS

TOOL_ORDER = [
    "sheets_check_access",
    "sheets_get_values",
    "sheets_batch_get_values",
    "sheets_get_metadata",
    "sheets_update_values",
    "sheets_batch_update_values",
    "sheets_append_values",
    "sheets_clear_values",
    "sheets_create_spreadsheet",
    "sheets_insert_sheet",
    "sheets_delete_sheet",
    "sheets_duplicate_sheet",
    "sheets_copy_to",
    "sheets_update_sheet_properties",
    "sheets_format_cells",
    "sheets_update_borders",
    "sheets_merge_cells",
    "sheets_unmerge_cells",
    "sheets_add_conditional_formatting",
    "sheets_batch_delete_sheets",
    "sheets_batch_format_cells",
    "sheets_create_chart",
    "sheets_update_chart",
    "sheets_delete_chart",
]

_TOOLS_BY_NAME = {tool.name: tool for tool in [*SHEET_TOOLS, *VALUE_TOOLS, *FORMATTING_TOOLS, *CHART_TOOLS]}
ALL_TOOLS = [_TOOLS_BY_NAME[name] for name in TOOL_ORDER]

__all__ = ["ALL_TOOLS", "build_registry", "ToolDefinition", "ToolNotFoundError", "ToolRegistry"]


def build_registry(sheets_service: Optional[SheetsService] = None) -> ToolRegistry:
    """Create a registry holding every Sheets tool.

    Args:
        sheets_service: Service used to reach the Sheets API

    Returns:
        ToolRegistry: Populated registry
    """
    registry = ToolRegistry(sheets_service)
    for tool in ALL_TOOLS:
        registry.register(tool)
    return registry
