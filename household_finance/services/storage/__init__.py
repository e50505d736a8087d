"""
Storage Services Package

Provides the abstract record store interface and its implementations.
Google Sheets is the hosted backend; the in-memory store backs tests and
local runs. Both are interchangeable behind RecordStoreInterface.
"""

from household_finance.services.storage.interface import (
    BatchCommitError,
    BatchOperation,
    ConnectionError,
    RecordStoreInterface,
    Snapshot,
    StorageError,
    StoreReadError,
    StoreWriteError,
    Subscription,
)
from household_finance.services.storage.memory import InMemoryRecordStore
from household_finance.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "BatchOperation",
    "RecordStoreInterface",
    "Snapshot",
    "Subscription",
    # Exceptions
    "BatchCommitError",
    "ConnectionError",
    "StorageError",
    "StoreReadError",
    "StoreWriteError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
]
