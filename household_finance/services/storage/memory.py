"""
In-Memory Record Store

Keeps every collection in process memory and pushes a fresh snapshot to
each matching subscription after every write. Used by the tests and for
running the app without a hosted backend.
"""

import copy
from typing import Any, Optional
from uuid import uuid4

from household_finance.log import get_logger
from household_finance.models.records import COLLECTIONS
from household_finance.services.storage.interface import (
    BatchCommitError,
    BatchOperation,
    RecordStoreInterface,
    Snapshot,
    StoreWriteError,
    Subscription,
    apply_query,
)


logger = get_logger(__name__)


class _CollectionQuery:
    """A live collection subscription and the query it was opened with."""

    def __init__(
        self,
        subscription: Subscription,
        where: Optional[dict[str, Any]],
        order_by: Optional[str],
        descending: bool,
    ):
        self.subscription = subscription
        self.where = where
        self.order_by = order_by
        self.descending = descending


class InMemoryRecordStore(RecordStoreInterface):
    """
    Dict-backed implementation of the record store.

    Writes are all-or-nothing per call; a batch is applied to a staged copy
    and only swapped in when every operation succeeded.
    """

    def __init__(self, group_id: str):
        super().__init__(group_id)
        self._collections: dict[str, dict[str, dict[str, Any]]] = {
            name: {} for name in COLLECTIONS
        }
        self._singletons: dict[str, dict[str, Any]] = {}
        self._collection_queries: dict[str, list[_CollectionQuery]] = {
            name: [] for name in COLLECTIONS
        }
        self._singleton_subscriptions: dict[str, list[Subscription]] = {}

    def _require_collection(self, collection: str) -> dict[str, dict[str, Any]]:
        try:
            return self._collections[collection]
        except KeyError:
            raise StoreWriteError(f"Unknown collection: {collection}")

    def _documents(self, collection: str) -> list[dict[str, Any]]:
        return [
            {**copy.deepcopy(document), "id": record_id}
            for record_id, document in self._collections[collection].items()
            if document.get("group_id") == self.group_id
        ]

    def _notify_collection(self, collection: str) -> None:
        for query in self._collection_queries[collection]:
            records = apply_query(
                self._documents(collection),
                query.where,
                query.order_by,
                query.descending,
            )
            query.subscription.push(Snapshot(target=collection, records=records))

    def _notify_singleton(self, key: str) -> None:
        for subscription in self._singleton_subscriptions.get(key, []):
            subscription.push(Snapshot(target=key, value=copy.deepcopy(self._singletons.get(key))))

    async def create(self, collection: str, record: dict[str, Any]) -> str:
        documents = self._require_collection(collection)
        record_id = uuid4().hex
        documents[record_id] = {**copy.deepcopy(record), "group_id": self.group_id}
        self._notify_collection(collection)
        return record_id

    async def delete_record(self, collection: str, record_id: str) -> bool:
        documents = self._require_collection(collection)
        document = documents.get(record_id)
        if document is None or document.get("group_id") != self.group_id:
            return False
        del documents[record_id]
        self._notify_collection(collection)
        return True

    async def upsert_singleton(self, key: str, value: dict[str, Any]) -> None:
        self._singletons[key] = {**self._singletons.get(key, {}), **copy.deepcopy(value)}
        self._notify_singleton(key)

    async def get_singleton(self, key: str) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self._singletons.get(key))

    async def list_records(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        self._require_collection(collection)
        return apply_query(self._documents(collection), where, order_by, descending)

    def subscribe(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Subscription:
        self._require_collection(collection)
        queries = self._collection_queries[collection]

        def release(subscription: Subscription) -> None:
            queries[:] = [q for q in queries if q.subscription is not subscription]

        subscription = Subscription(collection, on_cancel=release)
        queries.append(_CollectionQuery(subscription, where, order_by, descending))
        subscription.push(Snapshot(
            target=collection,
            records=apply_query(self._documents(collection), where, order_by, descending),
        ))
        return subscription

    def subscribe_singleton(self, key: str) -> Subscription:
        subscriptions = self._singleton_subscriptions.setdefault(key, [])
        subscription = Subscription(key, on_cancel=subscriptions.remove)
        subscriptions.append(subscription)
        subscription.push(Snapshot(target=key, value=copy.deepcopy(self._singletons.get(key))))
        return subscription

    @property
    def active_subscriptions(self) -> int:
        """Number of open subscriptions (released ones are not counted)."""
        return (
            sum(len(queries) for queries in self._collection_queries.values())
            + sum(len(subs) for subs in self._singleton_subscriptions.values())
        )

    async def commit_batch(self, operations: list[BatchOperation]) -> None:
        staged_collections = copy.deepcopy(self._collections)
        staged_singletons = copy.deepcopy(self._singletons)
        touched_collections = set()
        touched_keys = set()

        for index, operation in enumerate(operations):
            if operation.kind == "create":
                if operation.target not in staged_collections:
                    logger.error(
                        "batch_rejected",
                        operation_index=index,
                        target=operation.target,
                        operations=len(operations),
                    )
                    raise BatchCommitError(
                        f"Batch rejected at operation {index}: unknown collection "
                        f"{operation.target}"
                    )
                staged_collections[operation.target][uuid4().hex] = {
                    **copy.deepcopy(operation.document),
                    "group_id": self.group_id,
                }
                touched_collections.add(operation.target)
            else:
                staged_singletons[operation.target] = {
                    **staged_singletons.get(operation.target, {}),
                    **copy.deepcopy(operation.document),
                }
                touched_keys.add(operation.target)

        self._collections = staged_collections
        self._singletons = staged_singletons

        for collection in sorted(touched_collections):
            self._notify_collection(collection)
        for key in sorted(touched_keys):
            self._notify_singleton(key)
