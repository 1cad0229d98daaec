from fastapi import APIRouter, HTTPException, Depends, Path
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_document_store, get_identity_context
from ..bindings.query import IdentityContext
from ..core.errors import SocietyHubError, describe_error
from ..database.store import DocumentStore
from ..services.poll_service import PollService, tally

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/polls", tags=["polls"])


class VoteRequest(BaseModel):
    option_index: int = Field(..., ge=0, description="Index of the chosen option")


@router.get("/{poll_id}/results")
async def get_poll_results(
    poll_id: str = Path(..., description="Poll ID"),
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    try:
        poll = await PollService(store).get_poll(poll_id)
    except SocietyHubError as e:
        raise HTTPException(status_code=500, detail=describe_error(e, f"poll {poll_id}"))
    if poll is None:
        raise HTTPException(status_code=404, detail="Poll not found")
    return {"poll_id": poll_id, "question": poll.question, **tally(poll)}


@router.post("/{poll_id}/vote")
async def vote(
    request: VoteRequest,
    poll_id: str = Path(..., description="Poll ID"),
    identity: IdentityContext = Depends(get_identity_context),
    store: DocumentStore = Depends(get_document_store)
):
    """Cast the caller's single vote on a poll"""
    try:
        success, poll, error = await PollService(store).cast_vote(poll_id, request.option_index, identity.uid)
    except SocietyHubError as e:
        raise HTTPException(status_code=500, detail=describe_error(e, f"vote on poll {poll_id}"))

    if not success:
        status_code = 404 if poll is None else 409
        raise HTTPException(status_code=status_code, detail=error)

    logger.info(f"Vote on poll {poll_id} by {identity.uid}")
    return {"success": True, "poll_id": poll_id, **tally(poll)}
