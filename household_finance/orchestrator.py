"""
Main Orchestrator for Household Finance

This module ties together all the components and defines the
end-to-end flows for:
1. Form submission (input → validate → store → outcome message)
2. CSV transfer (store → export file, file → parse → one atomic batch)
3. Live views (subscriptions → snapshots → recomputed summaries)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation
- Every failure is scoped to one user action and reported inline
- Every subscription a view opens is released when the view closes
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from pydantic import BaseModel, ValidationError

from household_finance.aggregation import monthly_summary, period_summary
from household_finance.config import get_settings, validate_all_settings
from household_finance.log import configure_logging, get_logger
from household_finance.models.forms import (
    CategoryForm,
    FormOutcome,
    GoalForm,
    InitialBalanceForm,
    TransactionForm,
    UserForm,
)
from household_finance.models.records import (
    CATEGORIES,
    EXPENSES,
    GOALS,
    INCOMES,
    INITIAL_BALANCE_KEY,
    USERS,
    DateRange,
    ImportResult,
    InitialBalance,
    MonthlySummaryRow,
    PeriodSummary,
    Transaction,
    TransactionKind,
)
from household_finance.services.storage import (
    BatchCommitError,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    RecordStoreInterface,
    Snapshot,
    StorageError,
    StoreReadError,
    Subscription,
)
from household_finance.transfer import ImportParseError, export_csv, parse_csv
from household_finance.transfer.csv_codec import DEFAULT_UNKNOWN_USER
from household_finance.validation import FormValidationError, FormValidator


logger = get_logger(__name__)


MSG_IMPORT_FAILED = "Error processing the CSV file. Check the format and the data."


def documents_to_models(model: type, records: list[dict[str, Any]]) -> list:
    """Convert store documents to models, skipping malformed ones."""
    models = []
    for record in records:
        try:
            models.append(model.from_document(record["id"], record))
        except (KeyError, ValidationError) as e:
            logger.warning(
                "malformed_record_skipped",
                model=model.__name__,
                record_id=record.get("id"),
                error=str(e),
            )
    return models


class FormController:
    """
    Handles every form section of the app.

    Flow per submission:
    1. Validate → rejected forms come back untouched, no store call
    2. Write → store failures come back untouched with a generic message
    3. Success → the form comes back cleared

    There is no guard against submitting the same form twice while a
    write is pending.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        validator: Optional[FormValidator] = None,
    ):
        self._store = store
        self._validator = validator or FormValidator(store.group_id)

    async def _submit(
        self,
        form: BaseModel,
        build: Callable[[Any], Any],
        write: Callable[[Any], Awaitable[Optional[str]]],
        success_message: str,
        failure_message: str,
    ) -> FormOutcome:
        try:
            record = build(form)
        except FormValidationError as e:
            logger.info(
                "form_rejected",
                form=e.result.form,
                fields=[issue.field for issue in e.result.issues],
            )
            return FormOutcome(success=False, message=e.result.message, form=form)

        try:
            record_id = await write(record)
        except StorageError as e:
            logger.error("store_write_failed", form=type(form).__name__, error=str(e))
            return FormOutcome(success=False, message=failure_message, form=form)

        return FormOutcome(
            success=True,
            message=success_message,
            form=type(form)(),
            record_id=record_id,
        )

    async def _create(self, collection: str, record) -> str:
        return await self._store.create(collection, record.to_document())

    async def submit_income(self, form: TransactionForm) -> FormOutcome:
        return await self._submit(
            form,
            lambda f: self._validator.build_transaction(f, TransactionKind.INCOME),
            lambda record: self._create(INCOMES, record),
            "Income added successfully!",
            "Error adding income. Please try again.",
        )

    async def submit_expense(self, form: TransactionForm) -> FormOutcome:
        return await self._submit(
            form,
            lambda f: self._validator.build_transaction(f, TransactionKind.EXPENSE),
            lambda record: self._create(EXPENSES, record),
            "Expense added successfully!",
            "Error adding expense. Please try again.",
        )

    async def submit_category(self, form: CategoryForm) -> FormOutcome:
        return await self._submit(
            form,
            self._validator.build_category,
            lambda record: self._create(CATEGORIES, record),
            "Category added successfully!",
            "Error adding category. Please try again.",
        )

    async def submit_goal(self, form: GoalForm) -> FormOutcome:
        return await self._submit(
            form,
            self._validator.build_goal,
            lambda record: self._create(GOALS, record),
            "Goal added successfully!",
            "Error adding goal. Please try again.",
        )

    async def submit_user(self, form: UserForm) -> FormOutcome:
        return await self._submit(
            form,
            self._validator.build_user,
            lambda record: self._create(USERS, record),
            "User added successfully!",
            "Error adding user. Please try again.",
        )

    async def set_initial_balance(self, form: InitialBalanceForm) -> FormOutcome:
        async def write(balance: InitialBalance) -> None:
            await self._store.upsert_singleton(INITIAL_BALANCE_KEY, balance.to_document())

        return await self._submit(
            form,
            self._validator.build_initial_balance,
            write,
            "Initial balance updated successfully!",
            "Error updating initial balance. Please try again.",
        )

    async def _delete(self, collection: str, record_id: str, label: str) -> tuple[bool, str]:
        try:
            await self._store.delete_record(collection, record_id)
        except StorageError as e:
            logger.error("store_delete_failed", collection=collection, record_id=record_id, error=str(e))
            return False, f"Error deleting {label}."
        return True, f"{label.capitalize()} deleted successfully!"

    async def delete_income(self, record_id: str) -> tuple[bool, str]:
        return await self._delete(INCOMES, record_id, "income")

    async def delete_expense(self, record_id: str) -> tuple[bool, str]:
        return await self._delete(EXPENSES, record_id, "expense")

    async def delete_goal(self, record_id: str) -> tuple[bool, str]:
        return await self._delete(GOALS, record_id, "goal")

    # Live lists shown next to each form

    def watch_transactions(self, kind: TransactionKind) -> Subscription:
        """Newest first."""
        return self._store.subscribe(kind.collection, order_by="date", descending=True)

    def watch_categories(self, kind: TransactionKind) -> Subscription:
        return self._store.subscribe(CATEGORIES, where={"applies_to": kind.value})

    def watch_users(self) -> Subscription:
        return self._store.subscribe(USERS)

    def watch_goals(self) -> Subscription:
        return self._store.subscribe(GOALS)


class CsvTransferFlow:
    """
    Orchestrates CSV export and import against the full record set.

    Import flow:
    1. Parse → bad rows skipped, an unreadable file aborts before any write
    2. Commit → one atomic batch; on failure nothing was persisted
    3. Report → accepted count, only after the commit succeeded
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        unknown_user: str = DEFAULT_UNKNOWN_USER,
        export_filename: str = "dados_financeiros.csv",
    ):
        self._store = store
        self._unknown_user = unknown_user
        self._export_filename = export_filename

    async def load_records(self) -> tuple[list[Transaction], Decimal]:
        """Every transaction (incomes, then expenses) and the initial balance."""
        transactions = []
        for collection in (INCOMES, EXPENSES):
            records = await self._store.list_records(collection, order_by="date", descending=True)
            transactions.extend(documents_to_models(Transaction, records))
        balance = InitialBalance.from_document(await self._store.get_singleton(INITIAL_BALANCE_KEY))
        return transactions, balance.amount

    async def export_csv(self, today: Optional[date] = None) -> str:
        transactions, initial_balance = await self.load_records()
        return export_csv(transactions, initial_balance, today)

    async def export_to_file(self, directory: Path, today: Optional[date] = None) -> Path:
        """Write the export into `directory` under the configured file name."""
        path = Path(directory) / self._export_filename
        path.write_text(await self.export_csv(today), encoding="utf-8")
        logger.info("csv_exported", path=str(path))
        return path

    async def import_csv(self, text: str) -> ImportResult:
        """
        Import CSV text as one atomic batch.

        Raises:
            ImportParseError: The file could not be read; nothing was written
            BatchCommitError: The commit failed; nothing was written
        """
        parsed = parse_csv(text, self._store.group_id, self._unknown_user)
        operations = parsed.to_operations()

        if operations:
            try:
                await self._store.commit_batch(operations)
            except BatchCommitError as e:
                logger.error(
                    "csv_import_commit_failed",
                    operations=len(operations),
                    error=str(e),
                )
                raise

        logger.info("csv_imported", accepted=parsed.accepted, skipped=parsed.skipped)
        return ImportResult(accepted=parsed.accepted, skipped=parsed.skipped)

    async def import_file(self, path: Path) -> ImportResult:
        return await self.import_csv(Path(path).read_text(encoding="utf-8-sig"))

    async def import_with_message(self, text: str) -> tuple[Optional[ImportResult], str]:
        """
        Import and produce the message the summary view shows.

        Returns:
            (result, message); result is None when the import failed
        """
        try:
            result = await self.import_csv(text)
        except ImportParseError as e:
            logger.warning("csv_import_rejected", error=str(e))
            return None, str(e)
        except BatchCommitError:
            return None, MSG_IMPORT_FAILED
        return result, result.message


class LiveDashboard:
    """
    Overview and summary views fed by live subscriptions.

    Opens three subscriptions (incomes, expenses, initial balance) that
    may deliver in any order. The dashboard is ready once each has
    delivered at least once; until then views should show a loading state.
    Every snapshot replaces that part of the state and triggers on_change.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        locale: str = "en",
        on_change: Optional[Callable[["LiveDashboard"], None]] = None,
    ):
        self._store = store
        self._locale = locale
        self._on_change = on_change
        self.incomes: list[Transaction] = []
        self.expenses: list[Transaction] = []
        self.initial_balance = Decimal("0")
        self._delivered: set[str] = set()
        self._changed = asyncio.Event()

    @property
    def is_ready(self) -> bool:
        return self._delivered >= {INCOMES, EXPENSES, INITIAL_BALANCE_KEY}

    @property
    def transactions(self) -> list[Transaction]:
        return [*self.incomes, *self.expenses]

    def overview(self) -> list[MonthlySummaryRow]:
        return monthly_summary(self.transactions, self.initial_balance, self._locale)

    def summary(self, date_range: Optional[DateRange] = None) -> PeriodSummary:
        return period_summary(self.transactions, self.initial_balance, date_range)

    def _apply(self, snapshot: Snapshot) -> None:
        if snapshot.target == INCOMES:
            self.incomes = documents_to_models(Transaction, snapshot.records)
        elif snapshot.target == EXPENSES:
            self.expenses = documents_to_models(Transaction, snapshot.records)
        else:
            self.initial_balance = InitialBalance.from_document(snapshot.value).amount
        self._mark_delivered(snapshot.target)

    def _mark_delivered(self, target: str) -> None:
        self._delivered.add(target)
        event, self._changed = self._changed, asyncio.Event()
        event.set()
        if self._on_change is not None:
            self._on_change(self)

    async def _consume(self, subscription: Subscription) -> None:
        while True:
            try:
                snapshot = await subscription.__anext__()
            except StopAsyncIteration:
                return
            except StoreReadError as e:
                # A failed load counts as delivered
                logger.error("dashboard_snapshot_failed", target=subscription.target, error=str(e))
                self._mark_delivered(subscription.target)
                continue
            self._apply(snapshot)

    @asynccontextmanager
    async def open(self) -> AsyncIterator["LiveDashboard"]:
        """Hold the subscriptions for the lifetime of the block."""
        subscriptions = [
            self._store.subscribe(INCOMES, order_by="date", descending=True),
            self._store.subscribe(EXPENSES, order_by="date", descending=True),
            self._store.subscribe_singleton(INITIAL_BALANCE_KEY),
        ]
        tasks = [asyncio.create_task(self._consume(sub)) for sub in subscriptions]
        try:
            yield self
        finally:
            for subscription in subscriptions:
                subscription.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def wait_until(
        self,
        predicate: Callable[["LiveDashboard"], bool],
        timeout: float = 5.0,
    ) -> None:
        """Block until predicate(self) holds after some snapshot."""
        async def wait() -> None:
            while not predicate(self):
                await self._changed.wait()

        await asyncio.wait_for(wait(), timeout)

    async def wait_ready(self, timeout: float = 5.0) -> None:
        await self.wait_until(lambda dashboard: dashboard.is_ready, timeout)


def create_app_components(
    use_storage: bool = True,
) -> tuple[FormController, CsvTransferFlow, RecordStoreInterface]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets storage.
                    Set to False to run on the in-memory store.

    Returns:
        (form_controller, csv_transfer_flow, store)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)
    group_id = settings.workspace.group_id

    store: RecordStoreInterface
    status = validate_all_settings() if use_storage else {}
    if status.get("google_sheets"):
        store = GoogleSheetsRecordStore(group_id)
    else:
        if use_storage:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=status.get("google_sheets_error"))
        store = InMemoryRecordStore(group_id)

    form_controller = FormController(store)
    csv_flow = CsvTransferFlow(
        store,
        unknown_user=settings.app.unknown_user_label,
        export_filename=settings.app.export_filename,
    )

    return form_controller, csv_flow, store


def create_dashboard(
    store: RecordStoreInterface,
    on_change: Optional[Callable[[LiveDashboard], None]] = None,
) -> LiveDashboard:
    """Dashboard using the configured locale for month labels."""
    return LiveDashboard(store, locale=get_settings().app.locale, on_change=on_change)
