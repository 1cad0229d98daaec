"""
In-process implementation of the document-store contract.

Behaves like Firestore where the binders can observe it: pushes are delivered
asynchronously on the next loop iteration, bursts of writes may be coalesced
into one snapshot, ``SERVER_TIMESTAMP`` is resolved at write time and updates
of missing documents raise ``NotFound``. Used when Firebase credentials are
not configured and by the test suite, which relies on the call counters.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import asyncio
import copy
import logging
import uuid

from google.api_core import exceptions as api_exceptions
from google.cloud.firestore_v1 import Query

from .store import (
    SERVER_TIMESTAMP,
    DocumentCallback,
    DocumentStore,
    ErrorCallback,
    SnapshotCallback,
    StoredDocument,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

_MISSING = object()


def _order_key(value: Any) -> Tuple[int, Any]:
    """Sort key that ranks mixed value types the way Firestore orders them."""
    if value is None:
        return 0, 0
    if isinstance(value, bool):
        return 1, value
    if isinstance(value, (int, float)):
        return 2, value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return 3, value
    if isinstance(value, str):
        return 4, value
    if isinstance(value, bytes):
        return 5, value
    if isinstance(value, (list, tuple)):
        return 8, repr(value)
    if isinstance(value, dict):
        return 9, repr(sorted(value.items(), key=lambda item: item[0]))
    return 10, repr(value)


def _compare(op: str, actual: Any, expected: Any) -> bool:
    if op == "==":
        return actual == expected
    if op == "!=":
        return actual is not _MISSING and actual != expected
    if actual is _MISSING or actual is None:
        return False
    try:
        if op == "<":
            return actual < expected
        if op == "<=":
            return actual <= expected
        if op == ">":
            return actual > expected
        if op == ">=":
            return actual >= expected
    except TypeError:
        return False
    if op == "in":
        return actual in expected
    if op == "not-in":
        return actual not in expected
    if op in ("array_contains", "array-contains"):
        return isinstance(actual, list) and expected in actual
    if op in ("array_contains_any", "array-contains-any"):
        return isinstance(actual, list) and any(v in actual for v in expected)
    raise ValueError(f"Unsupported filter operator: {op}")


class MemoryQuery:
    """Immutable query over one collection, built with the Firestore method names."""

    def __init__(
        self,
        collection_name: str,
        filters: Tuple[Tuple[str, str, Any], ...] = (),
        orders: Tuple[Tuple[str, str], ...] = (),
        limit_count: Optional[int] = None,
    ):
        self.collection_name = collection_name
        self._filters = filters
        self._orders = orders
        self._limit = limit_count

    def where(self, field_path: Optional[str] = None, op_string: Optional[str] = None, value: Any = None, *, filter=None):
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        if field_path is None or op_string is None:
            raise ValueError("where() needs a field path and an operator")
        return MemoryQuery(
            self.collection_name,
            self._filters + ((field_path, op_string, value),),
            self._orders,
            self._limit,
        )

    def order_by(self, field_path: str, direction: str = Query.ASCENDING):
        if direction not in (Query.ASCENDING, Query.DESCENDING):
            raise ValueError(f"Invalid direction: {direction}")
        return MemoryQuery(
            self.collection_name,
            self._filters,
            self._orders + ((field_path, direction),),
            self._limit,
        )

    def limit(self, count: int):
        return MemoryQuery(self.collection_name, self._filters, self._orders, count)

    def apply(self, documents: Dict[str, Dict[str, Any]]) -> List[StoredDocument]:
        rows = []
        for doc_id, data in documents.items():
            if all(_compare(op, data.get(field, _MISSING), value) for field, op, value in self._filters):
                rows.append(StoredDocument(doc_id, copy.deepcopy(data)))

        # Documents without the ordered field are excluded, as in Firestore
        for field, _ in self._orders:
            rows = [row for row in rows if row.data.get(field) is not None]
        for field, direction in reversed(self._orders):
            rows.sort(key=lambda row: _order_key(row.data[field]), reverse=direction == Query.DESCENDING)

        if self._limit is not None:
            rows = rows[: self._limit]
        return rows

    def __repr__(self):
        return f"MemoryQuery({self.collection_name!r}, filters={self._filters!r}, orders={self._orders!r}, limit={self._limit!r})"


class MemoryCollection(MemoryQuery):

    def __init__(self, name: str):
        super().__init__(name)

    @property
    def id(self) -> str:
        return self.collection_name


@dataclass
class _QueryListener:
    query: MemoryQuery
    on_next: SnapshotCallback
    on_error: ErrorCallback


@dataclass
class _DocumentListener:
    collection_name: str
    document_id: str
    on_next: DocumentCallback
    on_error: ErrorCallback


class MemoryStore(DocumentStore):

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._query_listeners: Dict[int, _QueryListener] = {}
        self._document_listeners: Dict[int, _DocumentListener] = {}
        self._pending: set = set()
        self._next_token = 0
        self._read_failures: Dict[str, BaseException] = {}
        self._write_failures: Dict[str, BaseException] = {}

        # Call counters, read by tests and the /health endpoint
        self.subscribe_calls = 0
        self.get_calls = 0
        self.write_calls = 0

    # ── test / dev helpers ───────────────────────────────────────────────────

    @property
    def active_subscriptions(self) -> int:
        return len(self._query_listeners) + len(self._document_listeners)

    def seed(self, collection_name: str, document_id: str, data: Dict[str, Any]) -> None:
        """Insert a document without counting a write or notifying listeners."""
        self._collections.setdefault(collection_name, {})[document_id] = self._resolve(data)

    def fail_collection(
        self,
        collection_name: str,
        error: Optional[BaseException] = None,
        reads: bool = True,
        writes: bool = True,
    ) -> None:
        error = error or api_exceptions.PermissionDenied("Missing or insufficient permissions.")
        if reads:
            self._read_failures[collection_name] = error
        if writes:
            self._write_failures[collection_name] = error

    def clear_failures(self, collection_name: str) -> None:
        self._read_failures.pop(collection_name, None)
        self._write_failures.pop(collection_name, None)

    # ── contract ─────────────────────────────────────────────────────────────

    def collection(self, name: str) -> MemoryCollection:
        return MemoryCollection(name)

    def subscribe(self, query: MemoryQuery, on_next: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        self.subscribe_calls += 1
        token = self._register(self._query_listeners, _QueryListener(query, on_next, on_error))
        return lambda: self._unregister(self._query_listeners, token)

    def subscribe_document(
        self,
        collection_name: str,
        document_id: str,
        on_next: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        self.subscribe_calls += 1
        listener = _DocumentListener(collection_name, document_id, on_next, on_error)
        token = self._register(self._document_listeners, listener)
        return lambda: self._unregister(self._document_listeners, token)

    async def get_once(self, query: MemoryQuery) -> List[StoredDocument]:
        self.get_calls += 1
        self._raise_if_failing(self._read_failures, query.collection_name)
        return query.apply(self._collections.get(query.collection_name, {}))

    async def get_document(self, collection_name: str, document_id: str) -> Optional[StoredDocument]:
        self.get_calls += 1
        self._raise_if_failing(self._read_failures, collection_name)
        return self._snapshot(collection_name, document_id)

    async def create(self, collection_name: str, payload: Dict[str, Any], document_id: Optional[str] = None) -> str:
        self.write_calls += 1
        self._raise_if_failing(self._write_failures, collection_name)
        document_id = document_id or uuid.uuid4().hex[:20]
        self._collections.setdefault(collection_name, {})[document_id] = self._resolve(payload)
        self._notify(collection_name, document_id)
        return document_id

    async def update(self, collection_name: str, document_id: str, patch: Dict[str, Any]) -> None:
        self.write_calls += 1
        self._raise_if_failing(self._write_failures, collection_name)
        documents = self._collections.get(collection_name, {})
        if document_id not in documents:
            raise api_exceptions.NotFound(f"No document to update: {collection_name}/{document_id}")
        documents[document_id].update(self._resolve(patch))
        self._notify(collection_name, document_id)

    async def delete(self, collection_name: str, document_id: str) -> None:
        self.write_calls += 1
        self._raise_if_failing(self._write_failures, collection_name)
        self._collections.get(collection_name, {}).pop(document_id, None)
        self._notify(collection_name, document_id)

    # ── internals ────────────────────────────────────────────────────────────

    def _register(self, listeners: Dict[int, Any], listener: Any) -> int:
        self._next_token += 1
        token = self._next_token
        listeners[token] = listener
        self._schedule(token)
        return token

    def _unregister(self, listeners: Dict[int, Any], token: int) -> None:
        listeners.pop(token, None)
        self._pending.discard(token)

    def _schedule(self, token: int) -> None:
        # Pending pushes for the same listener are coalesced into one snapshot
        if token in self._pending:
            return
        self._pending.add(token)
        asyncio.get_running_loop().call_soon(self._push, token)

    def _push(self, token: int) -> None:
        self._pending.discard(token)
        if token in self._query_listeners:
            listener = self._query_listeners[token]
            failure = self._read_failures.get(listener.query.collection_name)
            if failure is not None:
                # A rejected listener is closed by the store
                del self._query_listeners[token]
                listener.on_error(failure)
                return
            try:
                rows = listener.query.apply(self._collections.get(listener.query.collection_name, {}))
            except Exception as e:
                logger.error(f"❌ [MemoryStore] Query on {listener.query.collection_name} failed: {e}")
                del self._query_listeners[token]
                listener.on_error(e)
                return
            listener.on_next(rows)
        elif token in self._document_listeners:
            listener = self._document_listeners[token]
            failure = self._read_failures.get(listener.collection_name)
            if failure is not None:
                del self._document_listeners[token]
                listener.on_error(failure)
                return
            listener.on_next(self._snapshot(listener.collection_name, listener.document_id))
        # else: unsubscribed before the push was delivered

    def _notify(self, collection_name: str, document_id: str) -> None:
        for token, listener in list(self._query_listeners.items()):
            if listener.query.collection_name == collection_name:
                self._schedule(token)
        for token, listener in list(self._document_listeners.items()):
            if listener.collection_name == collection_name and listener.document_id == document_id:
                self._schedule(token)

    def _snapshot(self, collection_name: str, document_id: str) -> Optional[StoredDocument]:
        data = self._collections.get(collection_name, {}).get(document_id)
        if data is None:
            return None
        return StoredDocument(document_id, copy.deepcopy(data))

    @staticmethod
    def _raise_if_failing(failures: Dict[str, BaseException], collection_name: str) -> None:
        failure = failures.get(collection_name)
        if failure is not None:
            raise failure

    @staticmethod
    def _resolve(payload: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        return {
            key: now if value is SERVER_TIMESTAMP else copy.deepcopy(value)
            for key, value in payload.items()
        }
