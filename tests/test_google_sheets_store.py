"""
Tests for the Google Sheets record store.

The gspread client is replaced by in-process fakes; no API calls are made.
"""

import asyncio

import pytest

from household_finance.models.records import EXPENSES, INCOMES, INITIAL_BALANCE_KEY
from household_finance.services.storage import BatchCommitError, BatchOperation
from household_finance.services.storage.google_sheets import (
    COLLECTION_COLUMNS,
    SETTINGS_COLUMNS,
    SETTINGS_SHEET_NAME,
    GoogleSheetsRecordStore,
)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the store."""

    def __init__(self, sheet_id: int, columns: list[str]):
        self.id = sheet_id
        self.rows = [list(columns)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def delete_rows(self, index):
        del self.rows[index - 1]

    def update(self, range_name, values):
        index = int(range_name.split(":")[0][1:])
        self.rows[index - 1] = list(values[0])


class FakeSpreadsheet:
    def __init__(self, sheets: dict[str, FakeWorksheet]):
        self._by_id = {sheet.id: sheet for sheet in sheets.values()}
        self.fail_next_batch = False

    def batch_update(self, body):
        if self.fail_next_batch:
            raise RuntimeError("quota exceeded")
        for request in body["requests"]:
            if "appendCells" in request:
                payload = request["appendCells"]
                sheet = self._by_id[payload["sheetId"]]
                for row in payload["rows"]:
                    sheet.rows.append([cell["userEnteredValue"]["stringValue"] for cell in row["values"]])
            else:
                payload = request["updateCells"]
                sheet = self._by_id[payload["start"]["sheetId"]]
                values = payload["rows"][0]["values"]
                sheet.rows[payload["start"]["rowIndex"]] = [
                    cell["userEnteredValue"]["stringValue"] for cell in values
                ]


class FakeClient:
    poll_interval = 0.01

    def __init__(self):
        self.sheets = {
            name: FakeWorksheet(index, columns)
            for index, (name, columns) in enumerate(COLLECTION_COLUMNS.items())
        }
        self.sheets[SETTINGS_SHEET_NAME] = FakeWorksheet(99, SETTINGS_COLUMNS)
        self.spreadsheet = FakeSpreadsheet(self.sheets)

    def get_collection_sheet(self, collection):
        return self.sheets[collection]

    def get_settings_sheet(self):
        return self.sheets[SETTINGS_SHEET_NAME]

    def get_spreadsheet(self):
        return self.spreadsheet


INCOME_DOCUMENT = {
    "description": "Paycheck",
    "amount": "500.00",
    "category": "Salary",
    "transaction_user": "Alice",
    "date": "2024-01-10",
    "kind": "income",
}


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


class TestRows:
    """Tests for row-level reads and writes."""

    def test_create_appends_row(self, client):
        """Test that a record becomes one row with ID and group."""
        store = GoogleSheetsRecordStore("household", client=client)

        record_id = asyncio.run(store.create(INCOMES, INCOME_DOCUMENT))

        assert client.sheets[INCOMES].rows[1] == [
            record_id, "household", "Paycheck", "500.00", "Salary", "Alice", "2024-01-10", "income",
        ]

    def test_list_ignores_other_groups(self, client):
        """Test that rows written by another workspace are invisible."""
        ours = GoogleSheetsRecordStore("household", client=client)
        theirs = GoogleSheetsRecordStore("neighbours", client=client)

        async def scenario():
            await theirs.create(INCOMES, INCOME_DOCUMENT)
            record_id = await ours.create(INCOMES, INCOME_DOCUMENT)
            return record_id, await ours.list_records(INCOMES)

        record_id, records = asyncio.run(scenario())
        assert [record["id"] for record in records] == [record_id]
        assert records[0]["amount"] == "500.00"

    def test_delete(self, client):
        """Test that delete removes the row and reports absence."""
        store = GoogleSheetsRecordStore("household", client=client)

        async def scenario():
            record_id = await store.create(EXPENSES, {**INCOME_DOCUMENT, "kind": "expense"})
            return await store.delete_record(EXPENSES, record_id), await store.delete_record(EXPENSES, record_id)

        assert asyncio.run(scenario()) == (True, False)
        assert client.sheets[EXPENSES].rows == [COLLECTION_COLUMNS[EXPENSES]]

    def test_singleton_upsert_replaces_row(self, client):
        """Test that the second upsert updates the same settings row."""
        store = GoogleSheetsRecordStore("household", client=client)

        async def scenario():
            await store.upsert_singleton(INITIAL_BALANCE_KEY, {"amount": "100"})
            await store.upsert_singleton(INITIAL_BALANCE_KEY, {"amount": "250"})
            return await store.get_singleton(INITIAL_BALANCE_KEY)

        assert asyncio.run(scenario()) == {"amount": "250"}
        assert len(client.sheets[SETTINGS_SHEET_NAME].rows) == 2


class TestBatch:
    """Tests for the single batchUpdate commit."""

    def test_batch_commit(self, client):
        """Test creates and singleton upserts in one request."""
        store = GoogleSheetsRecordStore("household", client=client)

        async def scenario():
            await store.upsert_singleton(INITIAL_BALANCE_KEY, {"amount": "1"})
            await store.commit_batch([
                BatchOperation.for_create(INCOMES, INCOME_DOCUMENT),
                BatchOperation.for_singleton(INITIAL_BALANCE_KEY, {"amount": "1000"}),
            ])
            return await store.list_records(INCOMES), await store.get_singleton(INITIAL_BALANCE_KEY)

        records, balance = asyncio.run(scenario())
        assert len(records) == 1
        assert balance == {"amount": "1000"}

    def test_failed_batch_writes_nothing(self, client):
        """Test that a rejected batchUpdate leaves every sheet untouched."""
        store = GoogleSheetsRecordStore("household", client=client)
        client.spreadsheet.fail_next_batch = True

        with pytest.raises(BatchCommitError, match="quota exceeded"):
            asyncio.run(store.commit_batch([
                BatchOperation.for_create(INCOMES, INCOME_DOCUMENT),
                BatchOperation.for_singleton(INITIAL_BALANCE_KEY, {"amount": "1000"}),
            ]))

        assert len(client.sheets[INCOMES].rows) == 1
        assert len(client.sheets[SETTINGS_SHEET_NAME].rows) == 1


class TestPolling:
    """Tests for polled subscriptions."""

    def test_polled_subscription_sees_changes(self, client):
        """Test that a write shows up on the next poll."""
        store = GoogleSheetsRecordStore("household", client=client)

        async def scenario():
            async with store.subscribe(INCOMES) as subscription:
                first = await subscription.__anext__()
                await store.create(INCOMES, INCOME_DOCUMENT)
                second = await asyncio.wait_for(subscription.__anext__(), timeout=2)
            return first, second

        first, second = asyncio.run(scenario())
        assert first.records == []
        assert len(second.records) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
