from fastapi import APIRouter, HTTPException, Depends, Path
import logging

from ..auth.dependencies import can_modify, get_document_store, get_identity_context
from ..bindings.query import IdentityContext
from ..core.errors import SocietyHubError, describe_error
from ..database.collections import COLLECTIONS
from ..database.store import DocumentStore
from ..services.document_service import DocumentService, expiry_status
from .records import load_record

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("/expiring")
async def get_expiring_documents(
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    """Expired and soon-to-expire documents visible to the caller"""
    try:
        documents = await DocumentService(store).expiring_documents(identity)
    except SocietyHubError as e:
        raise HTTPException(status_code=500, detail=describe_error(e, "expiring documents"))
    return {
        "documents": [
            {**doc.model_dump(mode="json"), "expiry_status": expiry_status(doc.expiryDate)}
            for doc in documents
        ],
        "total_count": len(documents),
    }


@router.post("/{document_id}/archive")
async def archive_document(
    document_id: str = Path(..., description="Document ID"),
    archived: bool = True,
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    record = await load_record(store, COLLECTIONS['documents'], document_id)
    if not can_modify(identity, record, "submittedBy"):
        raise HTTPException(status_code=403, detail="You can only archive your own documents")

    try:
        await DocumentService(store).archive_document(document_id, archived)
    except SocietyHubError as e:
        raise HTTPException(status_code=500, detail=describe_error(e, f"archive document {document_id}"))
    return {"success": True, "id": document_id, "archived": archived}
