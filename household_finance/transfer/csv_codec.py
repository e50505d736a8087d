"""
CSV Codec

Bidirectional conversion between the workspace's records and one CSV file:

    "Type","Date","Description","Amount","Category","User"
    "InitialBalance","2024-03-01","","1000.00","",""
    "Income","2024-01-10","Paycheck","500.00","Salary","Alice"
    "Expense","2024-01-15","","200.00","Rent","Alice"

Export quotes every field and prepends a UTF-8 byte-order mark so
spreadsheet tools pick the right encoding.

Import is partial-tolerant: a row with the wrong number of fields, an
unparseable amount, a bad date or an unknown type is skipped and logged,
never fatal. Only a file without a header and at least one data row, or
one the csv reader cannot tokenize, is rejected outright. Amounts are
plain decimals; exponent notation is refused. Files written by the older
Portuguese export (Tipo/Data/Valor..., "Saldo Inicial"/"Entrada"/"Saída")
are read too.

Parsing never writes anything; the caller turns the result into one
atomic batch.
"""

import csv
import io
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from household_finance.log import get_logger
from household_finance.models.records import (
    INITIAL_BALANCE_KEY,
    InitialBalance,
    Transaction,
    TransactionKind,
)
from household_finance.services.storage.interface import BatchOperation


logger = get_logger(__name__)


CSV_COLUMNS = ["Type", "Date", "Description", "Amount", "Category", "User"]
REQUIRED_COLUMNS = ("Type", "Amount")

TYPE_INITIAL_BALANCE = "InitialBalance"
TYPE_INCOME = "Income"
TYPE_EXPENSE = "Expense"

UTF8_BOM = "\ufeff"
DEFAULT_UNKNOWN_USER = "Unknown"

# Plain decimal notation, no exponents
_AMOUNT_PATTERN = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)")

# Headers and type values written by the original Portuguese export
HEADER_ALIASES = {
    "Tipo": "Type",
    "Data": "Date",
    "Descrição": "Description",
    "Valor": "Amount",
    "Categoria": "Category",
    "Usuário": "User",
}
TYPE_ALIASES = {
    "Saldo Inicial": TYPE_INITIAL_BALANCE,
    "Entrada": TYPE_INCOME,
    "Saída": TYPE_EXPENSE,
}

_KIND_BY_TYPE = {
    TYPE_INCOME: TransactionKind.INCOME,
    TYPE_EXPENSE: TransactionKind.EXPENSE,
}


class ImportParseError(Exception):
    """The file cannot be imported at all; nothing was written."""
    pass


class EmptyInputError(ImportParseError):
    """The file has no header plus at least one data row."""
    pass


class ImportRowSkipped(Exception):
    """A single row was rejected; the rest of the import continues."""

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}")


class ParsedImport(BaseModel):
    """Accepted entries of a parsed file, in file order, plus the skip count."""

    entries: list[Union[Transaction, InitialBalance]] = Field(default_factory=list)
    skipped: int = 0

    @property
    def accepted(self) -> int:
        return len(self.entries)

    @property
    def transactions(self) -> list[Transaction]:
        return [entry for entry in self.entries if isinstance(entry, Transaction)]

    @property
    def initial_balance(self) -> Optional[InitialBalance]:
        """The balance the import leaves in place (last one wins)."""
        balances = [entry for entry in self.entries if isinstance(entry, InitialBalance)]
        return balances[-1] if balances else None

    def to_operations(self) -> list[BatchOperation]:
        operations = []
        for entry in self.entries:
            if isinstance(entry, InitialBalance):
                operations.append(BatchOperation.for_singleton(INITIAL_BALANCE_KEY, entry.to_document()))
            else:
                operations.append(BatchOperation.for_create(entry.kind.collection, entry.to_document()))
        return operations


# =============================================================================
# EXPORT
# =============================================================================

def _format_amount(amount: Decimal) -> str:
    return format(amount, "f")


def export_csv(
    transactions: Iterable[Transaction],
    initial_balance: Decimal,
    today: Optional[date] = None,
) -> str:
    """
    Serialize the initial balance, then every income, then every expense.

    Returns the file contents as text, BOM included.
    """
    today = today or date.today()
    transactions = list(transactions)

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    writer.writerow([
        TYPE_INITIAL_BALANCE,
        today.isoformat(),
        "",
        _format_amount(initial_balance),
        "",
        "",
    ])
    for kind, type_name in ((TransactionKind.INCOME, TYPE_INCOME), (TransactionKind.EXPENSE, TYPE_EXPENSE)):
        for transaction in transactions:
            if transaction.kind is not kind:
                continue
            writer.writerow([
                type_name,
                transaction.date.isoformat(),
                transaction.description,
                _format_amount(transaction.amount),
                transaction.category,
                transaction.transaction_user,
            ])

    return UTF8_BOM + buffer.getvalue()


def export_csv_bytes(
    transactions: Iterable[Transaction],
    initial_balance: Decimal,
    today: Optional[date] = None,
) -> bytes:
    """Export encoded as UTF-8, ready to write to disk or serve."""
    return export_csv(transactions, initial_balance, today).encode("utf-8")


# =============================================================================
# IMPORT
# =============================================================================

def parse_amount(raw: str) -> Decimal:
    """
    Parse an amount, accepting a comma as the decimal separator.

    Raises:
        ValueError: If the value is not a plain decimal number
    """
    text = raw.strip().replace(",", ".", 1)
    if not _AMOUNT_PATTERN.fullmatch(text):
        raise ValueError(f"Invalid amount: {raw!r}")
    try:
        return Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {raw!r}")


def _parse_header(row: list[str]) -> list[str]:
    header = []
    for cell in row:
        name = cell.strip().strip('"').strip()
        header.append(HEADER_ALIASES.get(name, name))

    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise ImportParseError(
            f"CSV header is missing required columns: {', '.join(missing)}"
        )
    return header


def _parse_row(
    line_number: int,
    header: list[str],
    row: list[str],
    group_id: str,
    unknown_user: str,
) -> Union[Transaction, InitialBalance]:
    if len(row) != len(header):
        raise ImportRowSkipped(
            line_number, f"expected {len(header)} fields, found {len(row)}"
        )
    values = {column: value.strip() for column, value in zip(header, row)}

    try:
        amount = parse_amount(values.get("Amount", ""))
    except ValueError as e:
        raise ImportRowSkipped(line_number, str(e))

    row_type = values.get("Type", "")
    row_type = TYPE_ALIASES.get(row_type, row_type)

    if row_type == TYPE_INITIAL_BALANCE:
        return InitialBalance(amount=amount)

    kind = _KIND_BY_TYPE.get(row_type)
    if kind is None:
        raise ImportRowSkipped(line_number, f"unknown type {row_type!r}")

    raw_date = values.get("Date", "")
    try:
        transaction_date = date.fromisoformat(raw_date[:10])
    except ValueError:
        raise ImportRowSkipped(line_number, f"invalid date {raw_date!r}")

    if amount <= 0:
        raise ImportRowSkipped(line_number, f"amount must be positive, got {amount}")

    try:
        return Transaction(
            group_id=group_id,
            description=values.get("Description") or "",
            amount=amount,
            category=values.get("Category") or "",
            transaction_user=values.get("User") or unknown_user,
            date=transaction_date,
            kind=kind,
        )
    except ValidationError as e:
        raise ImportRowSkipped(line_number, f"invalid record: {e.error_count()} errors")


def parse_csv(
    text: str,
    group_id: str,
    unknown_user: str = DEFAULT_UNKNOWN_USER,
) -> ParsedImport:
    """
    Parse CSV text into records ready for a batch commit.

    Args:
        text: Raw file contents (a leading BOM is ignored)
        group_id: Workspace the new records belong to
        unknown_user: Label for rows without a user

    Returns:
        The accepted entries and the number of skipped rows

    Raises:
        EmptyInputError: Fewer than two non-empty lines
        ImportParseError: The header lacks a Type or Amount column, or the
            text cannot be tokenized as CSV
    """
    if text.startswith(UTF8_BOM):
        text = text[len(UTF8_BOM):]

    if len([line for line in text.splitlines() if line.strip()]) < 2:
        raise EmptyInputError("The CSV file is empty or could not be read.")

    reader = csv.reader(io.StringIO(text))
    header = None
    result = ParsedImport()

    try:
        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            if header is None:
                header = _parse_header(row)
                continue
            try:
                result.entries.append(
                    _parse_row(reader.line_num, header, row, group_id, unknown_user)
                )
            except ImportRowSkipped as skipped:
                logger.warning(
                    "import_row_skipped",
                    line=skipped.line_number,
                    reason=skipped.reason,
                )
                result.skipped += 1
    except csv.Error as e:
        raise ImportParseError(f"The CSV file could not be read (line {reader.line_num}): {e}") from e

    return result
