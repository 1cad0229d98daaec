"""
Document-store contract used by the binders and mutation helpers.

Two implementations exist: ``FirestoreStore`` (firebase-admin) and
``MemoryStore`` (in-process, used for local runs and tests).
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

__all__ = [
    "DocumentStore",
    "StoredDocument",
    "Unsubscribe",
    "SnapshotCallback",
    "DocumentCallback",
    "ErrorCallback",
    "SERVER_TIMESTAMP",
]


class StoredDocument(NamedTuple):
    id: str
    data: Dict[str, Any]


Unsubscribe = Callable[[], None]
SnapshotCallback = Callable[[List[StoredDocument]], None]
DocumentCallback = Callable[[Optional[StoredDocument]], None]
ErrorCallback = Callable[[BaseException], None]


class DocumentStore(ABC):

    @abstractmethod
    def collection(self, name: str) -> Any:
        """Return the collection handle query builders operate on."""

    @abstractmethod
    def subscribe(self, query: Any, on_next: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        """
        Open a live query. ``on_next`` receives the full result set on every
        change; callbacks are always delivered on the event loop, never inline.
        """

    @abstractmethod
    def subscribe_document(
        self,
        collection_name: str,
        document_id: str,
        on_next: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """Open a live listener on one document; ``None`` means it does not exist."""

    @abstractmethod
    async def get_once(self, query: Any) -> List[StoredDocument]:
        ...

    @abstractmethod
    async def get_document(self, collection_name: str, document_id: str) -> Optional[StoredDocument]:
        ...

    @abstractmethod
    async def create(self, collection_name: str, payload: Dict[str, Any], document_id: Optional[str] = None) -> str:
        ...

    @abstractmethod
    async def update(self, collection_name: str, document_id: str, patch: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete(self, collection_name: str, document_id: str) -> None:
        ...
