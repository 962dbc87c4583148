# -*- coding: utf-8 -*-
"""Location: ./tests/unit/mcpsheets/tools/test_sheets.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Unit tests for the spreadsheet and sheet management tools.
"""

# Standard
import json
from unittest.mock import AsyncMock, MagicMock

# Third-Party
from pydantic import ValidationError
import pytest

# First-Party
from mcpsheets.services.sheets_service import SheetsApiError
from mcpsheets.tools.sheets import (
    BatchDeleteSheetsInput,
    CheckAccessInput,
    CopyToInput,
    CreateSpreadsheetInput,
    DeleteChartInput,
    DeleteSheetInput,
    DuplicateSheetInput,
    GetMetadataInput,
    handle_batch_delete_sheets,
    handle_check_access,
    handle_copy_to,
    handle_create_spreadsheet,
    handle_delete_chart,
    handle_delete_sheet,
    handle_duplicate_sheet,
    handle_get_metadata,
    handle_insert_sheet,
    handle_update_sheet_properties,
    InsertSheetInput,
    UpdateSheetPropertiesInput,
)

METADATA = {"spreadsheetId": "abc", "properties": {"title": "Budget"}, "sheets": [{"properties": {"sheetId": 0, "title": "Sheet1"}}]}


@pytest.fixture
def sheets(settings):
    client = MagicMock()
    client.settings = settings
    client.credentials.client_email = "bot@p.iam.gserviceaccount.com"
    client.batch_update = AsyncMock(return_value={"spreadsheetId": "abc", "replies": [{}]})
    return client


def _payload(result):
    return json.loads(result.content[0].text.split("\n\n", 1)[-1])


@pytest.mark.asyncio
async def test_check_access_read_write(sheets):
    sheets.get_spreadsheet = AsyncMock(return_value=METADATA)

    result = await handle_check_access(CheckAccessInput(spreadsheetId="abc"), sheets)

    data = _payload(result)
    assert data["permissions"] == {"canRead": True, "canWrite": True, "error": None}
    assert data["sheets"] == [{"sheetId": 0, "title": "Sheet1"}]
    request = sheets.batch_update.await_args.args[1][0]
    assert request == {"updateSpreadsheetProperties": {"properties": {"title": "Budget"}, "fields": "title"}}


@pytest.mark.asyncio
async def test_check_access_read_only(sheets):
    sheets.get_spreadsheet = AsyncMock(return_value=METADATA)
    sheets.batch_update = AsyncMock(side_effect=SheetsApiError("forbidden", code=403))

    data = _payload(await handle_check_access(CheckAccessInput(spreadsheetId="abc"), sheets))

    assert data["permissions"]["canRead"] is True
    assert data["permissions"]["canWrite"] is False
    assert "read-only" in data["recommendation"]


@pytest.mark.asyncio
async def test_check_access_bad_request_is_read_only(sheets):
    sheets.get_spreadsheet = AsyncMock(return_value=METADATA)
    sheets.batch_update = AsyncMock(side_effect=SheetsApiError("invalid", code=400))

    result = await handle_check_access(CheckAccessInput(spreadsheetId="abc"), sheets)

    assert not result.isError
    assert _payload(result)["permissions"] == {"canRead": True, "canWrite": False, "error": None}


@pytest.mark.asyncio
async def test_check_access_server_error_still_reports(sheets):
    sheets.get_spreadsheet = AsyncMock(return_value=METADATA)
    sheets.batch_update = AsyncMock(side_effect=SheetsApiError("backend error", code=500))

    result = await handle_check_access(CheckAccessInput(spreadsheetId="abc"), sheets)

    data = _payload(result)
    assert data["permissions"]["canWrite"] is True
    assert data["title"] == "Budget"


@pytest.mark.asyncio
async def test_check_access_without_title_skips_write_check(sheets):
    sheets.get_spreadsheet = AsyncMock(return_value={"spreadsheetId": "abc", "properties": {}, "sheets": []})

    data = _payload(await handle_check_access(CheckAccessInput(spreadsheetId="abc"), sheets))

    sheets.batch_update.assert_not_awaited()
    assert data["title"] == "Unknown"
    assert data["permissions"]["canWrite"] is False


@pytest.mark.asyncio
async def test_check_access_no_access(sheets):
    sheets.get_spreadsheet = AsyncMock(side_effect=SheetsApiError("forbidden", code=403))

    result = await handle_check_access(CheckAccessInput(spreadsheetId="abc"), sheets)

    data = _payload(result)
    assert data["permissions"]["canRead"] is False
    assert "bot@p.iam.gserviceaccount.com" in data["recommendation"]
    assert result.content[0].text.startswith("Access denied")


@pytest.mark.asyncio
async def test_get_metadata(sheets):
    sheets.get_spreadsheet = AsyncMock(return_value=METADATA)
    data = json.loads((await handle_get_metadata(GetMetadataInput(spreadsheetId="abc"), sheets)).content[0].text)
    assert data["title"] == "Budget"


@pytest.mark.asyncio
async def test_create_spreadsheet_with_sheets(sheets):
    sheets.create_spreadsheet = AsyncMock(return_value={"spreadsheetId": "new", "spreadsheetUrl": "https://docs.google.com/x", "properties": {"title": "Report"}})
    params = CreateSpreadsheetInput.model_validate({"title": "Report", "sheets": [{"title": "Data"}, {"rowCount": 10}]})

    result = await handle_create_spreadsheet(params, sheets)

    body = sheets.create_spreadsheet.await_args.args[0]
    assert body["properties"] == {"title": "Report"}
    assert body["sheets"][0]["properties"] == {"title": "Data", "gridProperties": {"rowCount": 1000, "columnCount": 26}}
    assert body["sheets"][1]["properties"]["title"] == "Sheet2"
    assert _payload(result)["spreadsheetId"] == "new"


@pytest.mark.asyncio
async def test_insert_sheet_defaults(sheets):
    sheets.batch_update = AsyncMock(return_value={"replies": [{"addSheet": {"properties": {"sheetId": 7, "title": "New", "index": 1}}}]})

    result = await handle_insert_sheet(InsertSheetInput.model_validate({"spreadsheetId": "abc", "title": "New"}), sheets)

    request = sheets.batch_update.await_args.args[1][0]
    assert request == {"addSheet": {"properties": {"title": "New", "gridProperties": {"rowCount": 1000, "columnCount": 26}}}}
    assert _payload(result) == {"sheetId": 7, "title": "New", "index": 1}


@pytest.mark.asyncio
async def test_delete_and_batch_delete(sheets):
    await handle_delete_sheet(DeleteSheetInput(spreadsheetId="abc", sheetId=3), sheets)
    assert sheets.batch_update.await_args.args == ("abc", [{"deleteSheet": {"sheetId": 3}}])

    result = await handle_batch_delete_sheets(BatchDeleteSheetsInput(spreadsheetId="abc", sheetIds=[1, 2]), sheets)
    assert sheets.batch_update.await_args.args[1] == [{"deleteSheet": {"sheetId": 1}}, {"deleteSheet": {"sheetId": 2}}]
    assert result.content[0].text.startswith("Successfully deleted 2 sheets")

    with pytest.raises(ValidationError):
        BatchDeleteSheetsInput(spreadsheetId="abc", sheetIds=[])


@pytest.mark.asyncio
async def test_duplicate_sheet(sheets):
    sheets.batch_update = AsyncMock(return_value={"replies": [{"duplicateSheet": {"properties": {"sheetId": 11, "title": "Copy", "index": 2}}}]})
    params = DuplicateSheetInput.model_validate({"spreadsheetId": "abc", "sheetId": 0, "newSheetName": "Copy"})

    result = await handle_duplicate_sheet(params, sheets)

    assert sheets.batch_update.await_args.args[1] == [{"duplicateSheet": {"sourceSheetId": 0, "newSheetName": "Copy"}}]
    assert _payload(result)["newSheetId"] == 11


@pytest.mark.asyncio
async def test_copy_to(sheets):
    sheets.copy_sheet_to = AsyncMock(return_value={"sheetId": 5, "title": "Sheet1 (copy)"})
    result = await handle_copy_to(CopyToInput.model_validate({"spreadsheetId": "abc", "sheetId": 0, "destinationSpreadsheetId": "dst"}), sheets)
    sheets.copy_sheet_to.assert_awaited_once_with("abc", 0, "dst")
    assert _payload(result)["destinationSheetId"] == 5


@pytest.mark.asyncio
async def test_update_sheet_properties_field_mask(sheets):
    params = UpdateSheetPropertiesInput.model_validate(
        {"spreadsheetId": "abc", "sheetId": 0, "title": "Renamed", "gridProperties": {"frozenRowCount": 1}, "tabColor": {"red": 1, "green": 0, "blue": 0}}
    )

    result = await handle_update_sheet_properties(params, sheets)

    request = sheets.batch_update.await_args.args[1][0]["updateSheetProperties"]
    assert request["fields"] == "title,gridProperties.frozenRowCount,tabColor"
    assert request["properties"] == {"sheetId": 0, "title": "Renamed", "gridProperties": {"frozenRowCount": 1}, "tabColor": {"red": 1.0, "green": 0.0, "blue": 0.0}}
    assert _payload(result)["updatedFields"] == "title,gridProperties.frozenRowCount,tabColor"


@pytest.mark.asyncio
async def test_update_sheet_properties_requires_a_change(sheets):
    with pytest.raises(ValueError, match="No properties to update"):
        await handle_update_sheet_properties(UpdateSheetPropertiesInput(spreadsheetId="abc", sheetId=0), sheets)
    sheets.batch_update.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_chart(sheets):
    result = await handle_delete_chart(DeleteChartInput(spreadsheetId="abc", chartId=42), sheets)
    assert sheets.batch_update.await_args.args[1] == [{"deleteEmbeddedObject": {"objectId": 42}}]
    assert result.content[0].text.startswith("Successfully deleted chart 42")
