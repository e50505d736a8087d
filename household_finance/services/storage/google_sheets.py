"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the hosted backend because:
1. Household members can look at the shared data directly in Sheets
2. No database setup required
3. Built-in backup and sharing (Google's infrastructure)

TRADEOFFS:
- No push notifications: subscriptions poll their worksheet and only
  deliver a snapshot when the contents changed
- Limited query capabilities (we filter in Python)
- Batch imports go through one spreadsheets.batchUpdate call, which the
  Sheets API applies atomically: every request or none

Each collection is one worksheet with one record per row. Singleton
settings live in a "settings" worksheet as (group_id, key, value_json).
"""

import json
from typing import Any, Optional
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from household_finance.config import get_settings
from household_finance.log import get_logger
from household_finance.models.records import (
    CATEGORIES,
    EXPENSES,
    GOALS,
    INCOMES,
    USERS,
)
from household_finance.services.storage.interface import (
    BatchCommitError,
    BatchOperation,
    ConnectionError,
    RecordStoreInterface,
    Snapshot,
    StoreReadError,
    StoreWriteError,
    Subscription,
    apply_query,
)


logger = get_logger(__name__)


_TRANSACTION_COLUMNS = [
    "id",
    "group_id",
    "description",
    "amount",
    "category",
    "transaction_user",
    "date",
    "kind",
]

# Column mappings per collection worksheet
COLLECTION_COLUMNS = {
    INCOMES: _TRANSACTION_COLUMNS,
    EXPENSES: _TRANSACTION_COLUMNS,
    CATEGORIES: ["id", "group_id", "name", "applies_to"],
    GOALS: ["id", "group_id", "name", "target_amount", "current_amount", "due_date"],
    USERS: ["id", "group_id", "name"],
}

SETTINGS_SHEET_NAME = "settings"
SETTINGS_COLUMNS = ["group_id", "key", "value_json"]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    @property
    def poll_interval(self) -> float:
        return self._settings.poll_interval_seconds

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                # Create the sheet with headers
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=1000,
                    cols=len(columns),
                )
                sheet.append_row(columns)
            self._worksheets[title] = sheet
        return self._worksheets[title]

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        try:
            columns = COLLECTION_COLUMNS[collection]
        except KeyError:
            raise StoreWriteError(f"Unknown collection: {collection}")
        return self.get_worksheet(collection, columns)

    def get_settings_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(SETTINGS_SHEET_NAME, SETTINGS_COLUMNS)


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def _string_cells(row: list[str]) -> dict:
    """Row payload for a spreadsheets.batchUpdate request."""
    return {"values": [{"userEnteredValue": {"stringValue": value}} for value in row]}


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the record store.

    Records are stored as rows; every row carries the group_id of the
    workspace that wrote it and rows of other groups are ignored.
    """

    def __init__(
        self,
        group_id: str,
        client: Optional[GoogleSheetsClient] = None,
    ):
        super().__init__(group_id)
        self._client = client or GoogleSheetsClient()

    def _document_to_row(self, collection: str, record_id: str, document: dict[str, Any]) -> list[str]:
        """Convert a document to a spreadsheet row."""
        row = []
        for column in COLLECTION_COLUMNS[collection]:
            if column == "id":
                row.append(record_id)
            elif column == "group_id":
                row.append(self.group_id)
            else:
                row.append(_cell(document.get(column)))
        return row

    def _row_to_document(self, collection: str, row: list[str]) -> dict[str, Any]:
        """Convert a spreadsheet row to a document (including its id)."""
        # Handle missing columns gracefully
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return {
            column: safe_get(index)
            for index, column in enumerate(COLLECTION_COLUMNS[collection])
        }

    def _group_rows(self, all_rows: list[list[str]]):
        """Yield (sheet_row_number, row) for this group's rows, header skipped."""
        for idx, row in enumerate(all_rows[1:], start=2):  # Start from 2 (row 1 is header)
            if len(row) > 1 and row[0] and row[1] == self.group_id:
                yield idx, row

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def create(self, collection: str, record: dict[str, Any]) -> str:
        """Append a record to its collection worksheet."""
        record_id = uuid4().hex
        try:
            sheet = self._client.get_collection_sheet(collection)
            sheet.append_row(
                self._document_to_row(collection, record_id, record),
                value_input_option="RAW",
            )
        except StoreWriteError:
            raise
        except Exception as e:
            raise StoreWriteError(f"Failed to create {collection} record: {e}")
        return record_id

    async def delete_record(self, collection: str, record_id: str) -> bool:
        """Delete a record by ID."""
        try:
            sheet = self._client.get_collection_sheet(collection)
            for idx, row in self._group_rows(sheet.get_all_values()):
                if row[0] == record_id:
                    sheet.delete_rows(idx)
                    return True
            return False
        except StoreWriteError:
            raise
        except Exception as e:
            raise StoreWriteError(f"Failed to delete {collection} record: {e}")

    def _find_singleton(self, all_rows: list[list[str]], key: str) -> tuple[Optional[int], dict[str, Any]]:
        for idx, row in enumerate(all_rows[1:], start=2):
            if len(row) > 2 and row[0] == self.group_id and row[1] == key:
                return idx, json.loads(row[2]) if row[2] else {}
        return None, {}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert_singleton(self, key: str, value: dict[str, Any]) -> None:
        """Create or merge-replace a settings row."""
        try:
            sheet = self._client.get_settings_sheet()
            idx, current = self._find_singleton(sheet.get_all_values(), key)
            row = [self.group_id, key, json.dumps({**current, **value})]
            if idx is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(range_name=f"A{idx}:C{idx}", values=[row])
        except Exception as e:
            raise StoreWriteError(f"Failed to save setting {key}: {e}")

    async def get_singleton(self, key: str) -> Optional[dict[str, Any]]:
        try:
            sheet = self._client.get_settings_sheet()
            idx, value = self._find_singleton(sheet.get_all_values(), key)
        except Exception as e:
            raise StoreReadError(f"Failed to read setting {key}: {e}")
        return value if idx is not None else None

    async def list_records(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Read a collection worksheet, filtering in Python."""
        try:
            sheet = self._client.get_collection_sheet(collection)
            all_rows = sheet.get_all_values()
        except StoreWriteError as e:
            raise StoreReadError(str(e))
        except Exception as e:
            raise StoreReadError(f"Failed to list {collection}: {e}")

        documents = [
            self._row_to_document(collection, row)
            for _, row in self._group_rows(all_rows)
        ]
        return apply_query(documents, where, order_by, descending)

    def subscribe(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Subscription:
        async def poll() -> Snapshot:
            records = await self.list_records(collection, where, order_by, descending)
            return Snapshot(target=collection, records=records)

        return Subscription(collection, poll=poll, poll_interval=self._client.poll_interval)

    def subscribe_singleton(self, key: str) -> Subscription:
        async def poll() -> Snapshot:
            return Snapshot(target=key, value=await self.get_singleton(key))

        return Subscription(key, poll=poll, poll_interval=self._client.poll_interval)

    async def commit_batch(self, operations: list[BatchOperation]) -> None:
        """
        Commit every operation in one spreadsheets.batchUpdate call.

        Singleton upserts are merged per key first, so each key becomes a
        single update (or append) request.
        """
        if not operations:
            return

        try:
            requests = []
            singleton_values: dict[str, dict[str, Any]] = {}

            for operation in operations:
                if operation.kind == "create":
                    sheet = self._client.get_collection_sheet(operation.target)
                    row = self._document_to_row(operation.target, uuid4().hex, operation.document)
                    requests.append({
                        "appendCells": {
                            "sheetId": sheet.id,
                            "rows": [_string_cells(row)],
                            "fields": "userEnteredValue",
                        }
                    })
                else:
                    singleton_values.setdefault(operation.target, {}).update(operation.document)

            if singleton_values:
                settings_sheet = self._client.get_settings_sheet()
                all_rows = settings_sheet.get_all_values()
                for key, value in singleton_values.items():
                    idx, current = self._find_singleton(all_rows, key)
                    row = _string_cells([self.group_id, key, json.dumps({**current, **value})])
                    if idx is None:
                        requests.append({
                            "appendCells": {
                                "sheetId": settings_sheet.id,
                                "rows": [row],
                                "fields": "userEnteredValue",
                            }
                        })
                    else:
                        requests.append({
                            "updateCells": {
                                "start": {
                                    "sheetId": settings_sheet.id,
                                    "rowIndex": idx - 1,
                                    "columnIndex": 0,
                                },
                                "rows": [row],
                                "fields": "userEnteredValue",
                            }
                        })

            self._client.get_spreadsheet().batch_update({"requests": requests})
        except Exception as e:
            logger.error("batch_commit_failed", operations=len(operations), error=str(e))
            raise BatchCommitError(f"Failed to commit batch of {len(operations)} operations: {e}")
