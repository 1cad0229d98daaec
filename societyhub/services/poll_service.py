from typing import Any, Dict, Optional, Tuple
from datetime import datetime, timezone
import math
import logging

from ..bindings.live_document import LiveDocument
from ..bindings.mutations import UpdateDocument
from ..database.collections import COLLECTIONS
from ..database.store import DocumentStore
from ..database.store_factory import get_store
from ..models.database_models import Poll, PollVote

logger = logging.getLogger(__name__)


def _percent(votes: int, total: int) -> int:
    # half-up, so 2 of 3 votes shows 67
    return math.floor(votes * 100 / total + 0.5) if total else 0


def tally(poll: Poll) -> Dict[str, Any]:
    """Per-option counts and rounded percentages."""
    total = sum(len(option.votes) for option in poll.options)
    return {
        "total": total,
        "options": [
            {
                "text": option.text,
                "votes": len(option.votes),
                "percent": _percent(len(option.votes), total),
            }
            for option in poll.options
        ],
    }


def has_voted(poll: Poll, user_id: str) -> bool:
    return any(vote.userId == user_id for option in poll.options for vote in option.votes)


def is_expired(poll: Poll, now: Optional[datetime] = None) -> bool:
    if poll.expiresAt is None:
        return False
    now = now or datetime.now(timezone.utc)
    expires_at = poll.expiresAt
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return now >= expires_at


class PollService:

    def __init__(self, store: Optional[DocumentStore] = None):
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store or get_store()

    async def get_poll(self, poll_id: str) -> Optional[Poll]:
        async with LiveDocument(self.store, COLLECTIONS['polls'], poll_id, listen=False, model=Poll) as binder:
            if binder.error:
                raise binder.failure
            return binder.data

    async def cast_vote(self, poll_id: str, option_index: int, user_id: str,
                        now: Optional[datetime] = None) -> Tuple[bool, Optional[Poll], Optional[str]]:
        """
        Record ``user_id``'s vote for one option.

        Read-then-write with last-write-wins: two votes landing at the same
        moment may overwrite each other.

        Returns:
            (success, updated_poll, error_message)
        """
        poll = await self.get_poll(poll_id)
        if poll is None:
            return False, None, "Poll not found"
        if is_expired(poll, now):
            return False, poll, "Poll has expired"
        if has_voted(poll, user_id):
            return False, poll, "You have already voted"
        if not 0 <= option_index < len(poll.options):
            return False, poll, f"Invalid option index: {option_index}"

        poll.options[option_index].votes.append(PollVote(userId=user_id))
        await UpdateDocument(self.store, COLLECTIONS['polls'])(
            poll_id,
            {"options": [option.model_dump() for option in poll.options]},
        )
        logger.info(f"Vote recorded on poll {poll_id} by {user_id}")
        return True, poll, None


poll_service = PollService()
