from typing import Optional, Type, TypeVar
import logging

from pydantic import BaseModel

from ..database.store import DocumentStore, StoredDocument
from .live_collection import BaseBinder, UNSET
from .state import to_records

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LiveDocument(BaseBinder[T]):
    """
    Same contract as ``LiveCollection`` for one document. ``data`` is the
    record or ``None``; a missing document is a normal result, not an error.
    A falsy ``document_id`` is the not-ready case.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection_name: str,
        document_id: Optional[str],
        listen: bool = True,
        model: Optional[Type[BaseModel]] = None,
    ):
        super().__init__(store, collection_name, listen=listen, model=model)
        self.document_id = document_id

    def _empty(self):
        return None

    async def rebind(self, collection_name: str = UNSET, document_id: Optional[str] = UNSET,
                     listen: bool = UNSET) -> bool:
        changed = False
        if collection_name is not UNSET and collection_name != self.collection_name:
            self.collection_name = collection_name
            changed = True
        if document_id is not UNSET and document_id != self.document_id:
            self.document_id = document_id
            changed = True
        if listen is not UNSET and listen != self.listen:
            self.listen = listen
            changed = True

        if changed or self._closed:
            await self.bind()
            return True
        return False

    def _to_record(self, snapshot: Optional[StoredDocument]):
        if snapshot is None:
            return None
        records = to_records([snapshot], self.model)
        return records[0] if records else None

    async def _open(self, generation: int) -> None:
        if not self.document_id:
            self._not_ready()
            return

        if self.listen:
            self._open_listener(generation)
        else:
            await self._fetch(generation)

    def _open_listener(self, generation: int) -> None:
        def on_next(snapshot: Optional[StoredDocument]) -> None:
            if not self._is_current(generation):
                return
            self._set_state(data=self._to_record(snapshot), loading=False)

        def on_error(error: BaseException) -> None:
            self._fail(generation, error, "Snapshot")

        try:
            unsubscribe = self.store.subscribe_document(self.collection_name, self.document_id, on_next, on_error)
        except Exception as e:
            self._fail(generation, e, "Subscribe")
            return
        self._subscribed(unsubscribe, generation)
        logger.debug(f"[Binder] Listening on {self.collection_name}/{self.document_id}")

    async def _fetch(self, generation: int) -> None:
        try:
            snapshot = await self.store.get_document(self.collection_name, self.document_id)
        except Exception as e:
            self._fail(generation, e, "Fetch")
            return

        if not self._is_current(generation):
            logger.debug(f"[Binder] Dropping late fetch result for {self.collection_name}/{self.document_id}")
            return
        self._set_state(data=self._to_record(snapshot), loading=False)
