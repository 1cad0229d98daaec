from typing import Any, Dict, List, Optional
import asyncio
import logging

from firebase_admin import firestore

from ..core.firebase_init import initialize_firebase, is_firebase_available
from .store import (
    DocumentCallback,
    DocumentStore,
    ErrorCallback,
    SnapshotCallback,
    StoredDocument,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


class FirestoreStore(DocumentStore):
    """
    Firestore-backed store.

    ``on_snapshot`` delivers watch callbacks on a background thread; they are
    forwarded to the event loop that opened the subscription so binder state is
    only ever touched from the loop. Blocking reads and writes run in a worker
    thread.
    """

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not is_firebase_available() and not initialize_firebase():
                raise Exception("Firebase initialization failed - Firestore not available")
            self._client = firestore.client()
        return self._client

    def collection(self, name: str):
        return self.client.collection(name)

    def subscribe(self, query: Any, on_next: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        loop = asyncio.get_running_loop()

        def _callback(docs, changes, read_time):
            snapshots = [StoredDocument(d.id, d.to_dict() or {}) for d in docs]
            loop.call_soon_threadsafe(on_next, snapshots)

        return self._watch(query, _callback, on_error, loop)

    def subscribe_document(
        self,
        collection_name: str,
        document_id: str,
        on_next: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        loop = asyncio.get_running_loop()

        def _callback(docs, changes, read_time):
            snapshot = None
            for d in docs:
                if d.exists:
                    snapshot = StoredDocument(d.id, d.to_dict() or {})
            loop.call_soon_threadsafe(on_next, snapshot)

        reference = self.client.collection(collection_name).document(document_id)
        return self._watch(reference, _callback, on_error, loop)

    @staticmethod
    def _watch(target: Any, callback, on_error: ErrorCallback, loop) -> Unsubscribe:
        try:
            watch = target.on_snapshot(callback)
        except Exception as e:
            logger.error(f"[FirestoreStore] Failed to open listener: {e}")
            loop.call_soon(on_error, e)
            return lambda: None
        return watch.unsubscribe

    async def get_once(self, query: Any) -> List[StoredDocument]:
        docs = await asyncio.to_thread(query.get)
        return [StoredDocument(d.id, d.to_dict() or {}) for d in docs]

    async def get_document(self, collection_name: str, document_id: str) -> Optional[StoredDocument]:
        reference = self.client.collection(collection_name).document(document_id)
        snapshot = await asyncio.to_thread(reference.get)
        if not snapshot.exists:
            return None
        return StoredDocument(snapshot.id, snapshot.to_dict() or {})

    async def create(self, collection_name: str, payload: Dict[str, Any], document_id: Optional[str] = None) -> str:
        collection = self.client.collection(collection_name)
        if document_id:
            await asyncio.to_thread(collection.document(document_id).set, payload)
            return document_id
        _, reference = await asyncio.to_thread(collection.add, payload)
        return reference.id

    async def update(self, collection_name: str, document_id: str, patch: Dict[str, Any]) -> None:
        reference = self.client.collection(collection_name).document(document_id)
        await asyncio.to_thread(reference.update, patch)

    async def delete(self, collection_name: str, document_id: str) -> None:
        reference = self.client.collection(collection_name).document(document_id)
        await asyncio.to_thread(reference.delete)
