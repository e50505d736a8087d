"""CSV transfer package."""

from household_finance.transfer.csv_codec import (
    CSV_COLUMNS,
    EmptyInputError,
    ImportParseError,
    ImportRowSkipped,
    ParsedImport,
    export_csv,
    export_csv_bytes,
    parse_amount,
    parse_csv,
)

__all__ = [
    "CSV_COLUMNS",
    "EmptyInputError",
    "ImportParseError",
    "ImportRowSkipped",
    "ParsedImport",
    "export_csv",
    "export_csv_bytes",
    "parse_amount",
    "parse_csv",
]
