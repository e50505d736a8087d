"""
Abstract Record Store Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a hosted document database later
2. Use in-memory storage for testing
3. Keep aggregation and CSV logic decoupled from the backend

The interface is intentionally small - a document store with collections,
singleton settings records, live subscriptions and one atomic batch write.
Records are plain JSON-safe dicts; the models own conversion.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field

from household_finance.log import get_logger


logger = get_logger(__name__)


class Snapshot(BaseModel):
    """
    Full current contents of a subscription target.

    Collection snapshots fill `records` (each dict carries its "id");
    singleton snapshots fill `value` (None when the singleton is unset).
    """

    target: str
    records: list[dict[str, Any]] = Field(default_factory=list)
    value: Optional[dict[str, Any]] = None
    received_at: datetime = Field(default_factory=datetime.utcnow)


class BatchOperation(BaseModel):
    """One write inside an atomic batch."""

    kind: Literal["create", "upsert_singleton"]
    target: str = Field(
        ...,
        min_length=1,
        description="Collection name for creates, settings key for upserts"
    )
    document: dict[str, Any]

    @classmethod
    def for_create(cls, collection: str, document: dict[str, Any]) -> "BatchOperation":
        return cls(kind="create", target=collection, document=document)

    @classmethod
    def for_singleton(cls, key: str, document: dict[str, Any]) -> "BatchOperation":
        return cls(kind="upsert_singleton", target=key, document=document)


_CLOSED = object()


class Subscription:
    """
    Cancellable handle on a live query.

    Iterate it to receive snapshots; the first one is the current state and
    every later one is the full contents after a change. The sequence never
    ends on its own. Leaving an `async with` block cancels it, which
    releases the backend listener or poller.

    Backends either push snapshots (`push`) as writes happen, or pass a
    `poll` coroutine that is re-run every `poll_interval` seconds; a polled
    snapshot is only delivered when its contents changed.
    """

    def __init__(
        self,
        target: str,
        on_cancel: Optional[Callable[["Subscription"], None]] = None,
        poll: Optional[Callable[[], Any]] = None,
        poll_interval: float = 5.0,
    ):
        self.target = target
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_cancel = on_cancel
        self._poll = poll
        self._poll_interval = poll_interval
        self._poll_task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def push(self, snapshot: Snapshot) -> None:
        """Deliver a snapshot to the consumer."""
        if not self._cancelled:
            self._queue.put_nowait(snapshot)

    def fail(self, error: "StoreReadError") -> None:
        """Deliver a read failure; the consumer sees it raised from iteration."""
        if not self._cancelled:
            self._queue.put_nowait(error)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._poll_task is not None:
            self._poll_task.cancel()
        self._queue.put_nowait(_CLOSED)
        if self._on_cancel is not None:
            self._on_cancel(self)
        logger.debug("subscription_cancelled", target=self.target)

    async def _poll_loop(self) -> None:
        last_contents = None
        while not self._cancelled:
            try:
                snapshot = await self._poll()
            except StoreReadError as e:
                logger.error("subscription_poll_failed", target=self.target, error=str(e))
                self.fail(e)
            else:
                contents = (snapshot.records, snapshot.value)
                if contents != last_contents:
                    last_contents = contents
                    self.push(snapshot)
            await asyncio.sleep(self._poll_interval)

    def _ensure_polling(self) -> None:
        if self._poll is not None and self._poll_task is None and not self._cancelled:
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Snapshot:
        if self._cancelled:
            raise StopAsyncIteration
        self._ensure_polling()
        item = await self._queue.get()
        if item is _CLOSED or self._cancelled:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def __aenter__(self) -> "Subscription":
        self._ensure_polling()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


def apply_query(
    records: list[dict[str, Any]],
    where: Optional[dict[str, Any]] = None,
    order_by: Optional[str] = None,
    descending: bool = False,
) -> list[dict[str, Any]]:
    """
    Equality filter and single-field ordering over documents.

    Ordering compares stored values, which is chronological for ISO dates.
    """
    if where:
        records = [
            record for record in records
            if all(record.get(field) == value for field, value in where.items())
        ]
    else:
        records = list(records)
    if order_by:
        records.sort(key=lambda record: str(record.get(order_by, "")), reverse=descending)
    return records


class RecordStoreInterface(ABC):
    """
    Abstract interface for the shared workspace's document store.

    Every implementation is built with the workspace group_id, stamps it on
    every record it writes and only ever reads records of that group.
    """

    def __init__(self, group_id: str):
        self.group_id = group_id

    @abstractmethod
    async def create(self, collection: str, record: dict[str, Any]) -> str:
        """
        Add a record to a collection.

        Returns:
            The new record's ID

        Raises:
            StoreWriteError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_record(self, collection: str, record_id: str) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if a record was deleted, False if the ID was not present

        Raises:
            StoreWriteError: If the delete fails
        """
        pass

    @abstractmethod
    async def upsert_singleton(self, key: str, value: dict[str, Any]) -> None:
        """
        Create or replace a singleton settings record.

        Raises:
            StoreWriteError: If the write fails
        """
        pass

    @abstractmethod
    async def get_singleton(self, key: str) -> Optional[dict[str, Any]]:
        """Read a singleton settings record, None when it was never set."""
        pass

    @abstractmethod
    async def list_records(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """
        One-shot read of a collection.

        Returns:
            Matching documents, each including its "id"

        Raises:
            StoreReadError: If the read fails
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Subscription:
        """Open a live query over a collection."""
        pass

    @abstractmethod
    def subscribe_singleton(self, key: str) -> Subscription:
        """Open a live query over a singleton settings record."""
        pass

    @abstractmethod
    async def commit_batch(self, operations: list[BatchOperation]) -> None:
        """
        Apply every operation or none of them.

        Raises:
            BatchCommitError: If the batch fails; nothing was persisted
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class StoreWriteError(StorageError):
    """A create, delete or upsert failed."""
    pass


class StoreReadError(StorageError):
    """A read or subscription refresh failed."""
    pass


class BatchCommitError(StoreWriteError):
    """An atomic batch failed as a whole; none of its writes were persisted."""
    pass
