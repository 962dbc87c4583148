# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/tools/ranges.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

A1 notation helpers for the tools that address cells through ``GridRange``
objects (formatting, merges, borders, charts).

Examples:
    >>> split_sheet_name("'My Sheet'!A1:B2")
    ('My Sheet', 'A1:B2')
    >>> split_sheet_name("C3")
    (None, 'C3')
    >>> parse_grid_range("B2:C10", 7)
    {'sheetId': 7, 'startRowIndex': 1, 'endRowIndex': 10, 'startColumnIndex': 1, 'endColumnIndex': 3}
"""

# Standard
import re
from typing import Any, Dict, List, Optional, Tuple

# First-Party
from mcpsheets.services.sheets_service import SheetsClient

CELL_RANGE_PATTERN = re.compile(r"([A-Z]+)(\d+)(?::([A-Z]+)(\d+))?")


def column_to_index(column: str) -> int:
    """Convert column letters to a zero-based index.

    Args:
        column: Column letters such as ``A`` or ``AA``

    Returns:
        int: Zero-based column index

    Examples:
        >>> column_to_index("A"), column_to_index("Z"), column_to_index("AA")
        (0, 25, 26)
    """
    index = 0
    for letter in column.upper():
        index = index * 26 + ord(letter) - ord("A") + 1
    return index - 1


def split_sheet_name(a1_range: str) -> Tuple[Optional[str], str]:
    """Split ``Sheet!A1:B2`` into the sheet title and the cell range.

    Surrounding single or double quotes are removed from the title, and
    doubled single quotes inside a single-quoted title are unescaped.

    Args:
        a1_range: Range in A1 notation, with or without a sheet title

    Returns:
        Tuple[Optional[str], str]: Sheet title (None when absent) and cell range
    """
    if "!" not in a1_range:
        return None, a1_range
    title, cell_range = a1_range.rsplit("!", 1)
    if len(title) >= 2 and title[0] == title[-1] and title[0] in "'\"":
        title = title[1:-1]
        if a1_range[0] == "'":
            title = title.replace("''", "'")
    return title or None, cell_range


def parse_grid_range(cell_range: str, sheet_id: Optional[int]) -> Dict[str, Any]:
    """Convert a single cell or ``A1:B2`` style range to a ``GridRange``.

    Args:
        cell_range: Cell range without a sheet title
        sheet_id: Id of the sheet the range belongs to

    Returns:
        Dict[str, Any]: ``GridRange`` with half-open row and column bounds

    Raises:
        ValueError: If the range is not a cell or a bounded cell range

    Examples:
        >>> parse_grid_range("a1", 0)
        {'sheetId': 0, 'startRowIndex': 0, 'endRowIndex': 1, 'startColumnIndex': 0, 'endColumnIndex': 1}
        >>> parse_grid_range("A:B", 0)
        Traceback (most recent call last):
        ...
        ValueError: Invalid range format: A:B
    """
    match = CELL_RANGE_PATTERN.fullmatch(cell_range.strip().upper())
    if not match or int(match.group(2)) < 1 or (match.group(4) is not None and int(match.group(4)) < 1):
        raise ValueError(f"Invalid range format: {cell_range}")
    start_col, start_row, end_col, end_row = match.groups()
    end_col = end_col or start_col
    end_row = end_row or start_row
    return {
        "sheetId": sheet_id,
        "startRowIndex": int(start_row) - 1,
        "endRowIndex": int(end_row),
        "startColumnIndex": column_to_index(start_col),
        "endColumnIndex": column_to_index(end_col) + 1,
    }


class SheetIdResolver:
    """Resolve sheet titles to sheet ids, reading the sheet list at most once per tool call."""

    def __init__(self, sheets: SheetsClient, spreadsheet_id: str, sheet_properties: Optional[List[Dict[str, Any]]] = None):
        """Create a resolver.

        Args:
            sheets: Client bound to the caller's credentials
            spreadsheet_id: Spreadsheet the ranges belong to
            sheet_properties: Already fetched ``sheets[].properties``, if any
        """
        self.sheets = sheets
        self.spreadsheet_id = spreadsheet_id
        self._properties = sheet_properties

    async def _sheet_properties(self) -> List[Dict[str, Any]]:
        if self._properties is None:
            data = await self.sheets.get_spreadsheet(self.spreadsheet_id, fields="sheets.properties")
            self._properties = [sheet.get("properties") or {} for sheet in data.get("sheets") or []]
        return self._properties

    async def sheet_id(self, title: Optional[str] = None) -> int:
        """Return the id of the sheet called ``title``, or of the first sheet.

        Args:
            title: Sheet title; None selects the first sheet

        Returns:
            int: Sheet id

        Raises:
            ValueError: If the sheet does not exist or the spreadsheet has no sheets
        """
        properties = await self._sheet_properties()
        if title:
            for props in properties:
                if props.get("title") == title and props.get("sheetId") is not None:
                    return props["sheetId"]
            available = ", ".join(props["title"] for props in properties if props.get("title"))
            raise ValueError(f'Sheet "{title}" not found. Available sheets: {available}')
        if properties and properties[0].get("sheetId") is not None:
            return properties[0]["sheetId"]
        raise ValueError("No sheets found in spreadsheet")

    async def grid_range(self, a1_range: str, default_sheet_id: Optional[int] = None) -> Dict[str, Any]:
        """Convert an A1 range, optionally prefixed by a sheet title, to a ``GridRange``.

        Args:
            a1_range: Range in A1 notation
            default_sheet_id: Sheet used when the range names none; the first sheet otherwise

        Returns:
            Dict[str, Any]: ``GridRange``
        """
        title, cell_range = split_sheet_name(a1_range)
        if title is None and default_sheet_id is not None:
            sheet_id = default_sheet_id
        else:
            sheet_id = await self.sheet_id(title)
        return parse_grid_range(cell_range, sheet_id)
