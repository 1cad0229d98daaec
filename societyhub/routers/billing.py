from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
import logging

from ..auth.dependencies import get_document_store, get_identity_context, require_role
from ..bindings.query import IdentityContext
from ..core.errors import SocietyHubError, describe_error
from ..database.store import DocumentStore
from ..models.user import UserRole
from ..services.maintenance_billing_service import MaintenanceBillingService, payment_totals

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


def _target_user(identity: IdentityContext, user_id: Optional[str]) -> str:
    if user_id and user_id != identity.uid and identity.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="You can only access your own bills")
    return user_id or identity.uid


@router.get("/summary")
async def get_billing_summary(
    user_id: Optional[str] = Query(None, description="Resident uid (admins only; defaults to caller)"),
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    target = _target_user(identity, user_id)
    try:
        payments = await MaintenanceBillingService(store).get_payments(target)
    except SocietyHubError as e:
        raise HTTPException(status_code=500, detail=describe_error(e, "billing summary"))
    return {"user_id": target, "bill_count": len(payments), **payment_totals(payments)}


@router.post("/generate-next")
async def generate_next_bill(
    user_id: Optional[str] = Query(None, description="Resident uid (admins only; defaults to caller)"),
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    """Create the next month's bill for a resident"""
    target = _target_user(identity, user_id)
    success, bill, error = await MaintenanceBillingService(store).generate_next_bill(target)
    if not success:
        raise HTTPException(status_code=409, detail=error)
    return {"success": True, "bill": bill.model_dump()}


@router.post("/auto-generate")
async def auto_generate_all(
    identity: IdentityContext = Depends(require_role([UserRole.ADMIN])),
    store: DocumentStore = Depends(get_document_store)
):
    """Run the scheduled auto-generation now (admin only)"""
    result = await MaintenanceBillingService(store).auto_generate_for_all_residents()
    logger.info(f"Manual bill auto-generation by {identity.uid}: {result}")
    return result
