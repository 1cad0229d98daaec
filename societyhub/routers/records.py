from fastapi import APIRouter, HTTPException, Depends, Body
from typing import Any, Dict, Optional
import logging

from google.api_core import exceptions as api_exceptions

from ..auth.dependencies import can_modify, get_document_store, get_identity_context
from ..bindings.live_collection import LiveCollection
from ..bindings.live_document import LiveDocument
from ..bindings.mutations import mutations_for
from ..bindings.query import IdentityContext, OrderedQuery, OwnedRecordsQuery, QueryBuilder
from ..core.errors import ErrorType, SocietyHubError, describe_error
from ..database.collections import COLLECTION_SCHEMAS
from ..database.store import DocumentStore
from ..forms.form_state import FormController
from ..forms.validation import get_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/records", tags=["records"])

_STATUS_BY_ERROR_TYPE = {
    ErrorType.AUTH: 401,
    ErrorType.PERMISSION: 403,
    ErrorType.NETWORK: 503,
}

# never writable through a patch
_PROTECTED_FIELDS = {"id", "createdAt"}


def _collection_schema(collection: str) -> dict:
    schema = COLLECTION_SCHEMAS.get(collection)
    if schema is None:
        raise HTTPException(status_code=404, detail=f"Unknown collection: {collection}")
    return schema


def query_for(collection: str, identity: IdentityContext) -> Optional[QueryBuilder]:
    """Role-scoped builder for a list screen over ``collection``"""
    schema = _collection_schema(collection)
    if schema['owner_field']:
        return OwnedRecordsQuery(identity, owner_field=schema['owner_field'], order_field=schema['order_by'])
    if schema['order_by']:
        return OrderedQuery(schema['order_by'])
    return None


def _raise_store_error(error: SocietyHubError, context: str):
    info = describe_error(error, context)
    if isinstance(error.__cause__, api_exceptions.NotFound):
        raise HTTPException(status_code=404, detail=info)
    raise HTTPException(status_code=_STATUS_BY_ERROR_TYPE.get(error.error_type, 500), detail=info)


def _validate(collection: str, values: Dict[str, Any]) -> None:
    form = _collection_schema(collection)['form']
    if not form:
        return
    result = FormController(values, get_schema(form)).validate_form()
    if not result.is_valid:
        logger.info(f"Validation failed for {collection}: {result.errors}")
        raise HTTPException(status_code=422, detail={"errors": result.errors})


async def load_record(store: DocumentStore, collection: str, record_id: str) -> dict:
    async with LiveDocument(store, collection, record_id, listen=False) as binder:
        if binder.failure:
            _raise_store_error(binder.failure, f"get {collection}/{record_id}")
        if binder.data is None:
            raise HTTPException(status_code=404, detail=f"{collection}/{record_id} not found")
        return binder.data


@router.get("/{collection}")
async def list_records(
    collection: str,
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    """List a collection, scoped to the caller's role"""
    async with LiveCollection(store, collection, query_for(collection, identity), listen=False) as binder:
        if binder.failure:
            _raise_store_error(binder.failure, f"list {collection}")
        return {
            "collection": collection,
            "items": binder.data,
            "total_count": len(binder.data),
        }


@router.get("/{collection}/{record_id}")
async def get_record(
    collection: str,
    record_id: str,
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    owner_field = _collection_schema(collection)['owner_field']
    record = await load_record(store, collection, record_id)

    if owner_field and not identity.sees_everything and record.get(owner_field) != identity.uid:
        raise HTTPException(status_code=403, detail="You can only view your own records")
    return record


@router.post("/{collection}")
async def create_record(
    collection: str,
    payload: Dict[str, Any] = Body(...),
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    """Validate and create a record; owned collections are stamped with the caller's uid"""
    owner_field = _collection_schema(collection)['owner_field']
    if not owner_field and not identity.sees_everything:
        raise HTTPException(status_code=403, detail=f"Residents cannot create {collection} records")

    _validate(collection, payload)

    values = {k: v for k, v in payload.items() if k not in _PROTECTED_FIELDS}
    if owner_field:
        values[owner_field] = identity.uid

    try:
        record_id = await mutations_for(store, collection).create(values)
    except SocietyHubError as e:
        _raise_store_error(e, f"create {collection}")

    logger.info(f"Record created: {collection}/{record_id} by {identity.uid}")
    return {"success": True, "id": record_id, "message": "Record created successfully"}


@router.patch("/{collection}/{record_id}")
async def update_record(
    collection: str,
    record_id: str,
    patch: Dict[str, Any] = Body(...),
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    owner_field = _collection_schema(collection)['owner_field']
    record = await load_record(store, collection, record_id)

    if not can_modify(identity, record, owner_field):
        raise HTTPException(status_code=403, detail="You can only modify your own records")

    changes = {k: v for k, v in patch.items() if k not in _PROTECTED_FIELDS and k != owner_field}
    if not changes:
        raise HTTPException(status_code=400, detail="No updatable fields in request")
    _validate(collection, {**record, **changes})

    try:
        await mutations_for(store, collection).update(record_id, changes)
    except SocietyHubError as e:
        _raise_store_error(e, f"update {collection}/{record_id}")

    return {"success": True, "id": record_id, "message": "Record updated successfully"}


@router.delete("/{collection}/{record_id}")
async def delete_record(
    collection: str,
    record_id: str,
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    owner_field = _collection_schema(collection)['owner_field']
    record = await load_record(store, collection, record_id)

    if not can_modify(identity, record, owner_field):
        raise HTTPException(status_code=403, detail="You can only delete your own records")

    try:
        await mutations_for(store, collection).delete(record_id)
    except SocietyHubError as e:
        _raise_store_error(e, f"delete {collection}/{record_id}")

    return {"success": True, "id": record_id, "message": "Record deleted successfully"}
