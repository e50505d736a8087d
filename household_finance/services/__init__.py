"""Services package."""

from household_finance.services.storage import (
    BatchCommitError,
    BatchOperation,
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    RecordStoreInterface,
    Snapshot,
    StorageError,
    StoreReadError,
    StoreWriteError,
    Subscription,
)

__all__ = [
    # Storage services
    "BatchCommitError",
    "BatchOperation",
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
    "RecordStoreInterface",
    "Snapshot",
    "StorageError",
    "StoreReadError",
    "StoreWriteError",
    "Subscription",
]
