from typing import Any, Dict, Mapping, NamedTuple, Optional, Union
import logging

from pydantic import BaseModel

from ..core.errors import MutationError
from ..database.store import SERVER_TIMESTAMP, DocumentStore

logger = logging.getLogger(__name__)

Payload = Union[Mapping[str, Any], BaseModel]


def _as_payload(payload: Payload) -> Dict[str, Any]:
    if isinstance(payload, BaseModel):
        data = payload.model_dump(exclude_none=True)
        # the id belongs to the document reference, not its fields
        data.pop("id", None)
        return data
    return dict(payload)


class _Mutation:
    """
    One write operation against one collection, with its own busy flag so
    several writes can be in flight without blocking each other.

    Live binders pick the change up from the store; nothing here touches
    binder or form state. One-shot binders have to ``refresh()`` themselves.
    """

    operation = "write"

    def __init__(self, store: DocumentStore, collection_name: str):
        self.store = store
        self.collection_name = collection_name
        self.busy = False

    def _failed(self, error: Exception, document_id: Optional[str] = None) -> MutationError:
        failure = MutationError(self.operation, self.collection_name, error, document_id=document_id)
        logger.error(f"[Mutation] {failure}")
        return failure


class CreateDocument(_Mutation):
    operation = "create"

    async def __call__(self, payload: Payload, document_id: Optional[str] = None) -> str:
        self.busy = True
        try:
            data = _as_payload(payload)
            # prefer a caller-provided timestamp
            if not data.get("createdAt"):
                data["createdAt"] = SERVER_TIMESTAMP
            new_id = await self.store.create(self.collection_name, data, document_id=document_id)
            logger.info(f"[Mutation] Created {self.collection_name}/{new_id}")
            return new_id
        except Exception as e:
            raise self._failed(e, document_id) from e
        finally:
            self.busy = False


class UpdateDocument(_Mutation):
    operation = "update"

    async def __call__(self, document_id: str, patch: Payload) -> None:
        self.busy = True
        try:
            data = _as_payload(patch)
            data["updatedAt"] = SERVER_TIMESTAMP
            await self.store.update(self.collection_name, document_id, data)
            logger.info(f"[Mutation] Updated {self.collection_name}/{document_id}")
        except Exception as e:
            raise self._failed(e, document_id) from e
        finally:
            self.busy = False


class DeleteDocument(_Mutation):
    """Hard delete; soft-archive flags are a feature-level concern."""

    operation = "delete"

    async def __call__(self, document_id: str) -> None:
        self.busy = True
        try:
            await self.store.delete(self.collection_name, document_id)
            logger.info(f"[Mutation] Deleted {self.collection_name}/{document_id}")
        except Exception as e:
            raise self._failed(e, document_id) from e
        finally:
            self.busy = False


class Mutations(NamedTuple):
    create: CreateDocument
    update: UpdateDocument
    delete: DeleteDocument


def mutations_for(store: DocumentStore, collection_name: str) -> Mutations:
    return Mutations(
        create=CreateDocument(store, collection_name),
        update=UpdateDocument(store, collection_name),
        delete=DeleteDocument(store, collection_name),
    )
