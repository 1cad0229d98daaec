from typing import List, Optional, Union
from datetime import date, datetime
import logging

from ..bindings.live_collection import LiveCollection
from ..bindings.mutations import UpdateDocument
from ..bindings.query import IdentityContext, OwnedRecordsQuery
from ..core.config import settings
from ..database.collections import COLLECTIONS
from ..database.store import DocumentStore
from ..database.store_factory import get_store
from ..models.database_models import SocietyDocument

logger = logging.getLogger(__name__)

EXPIRY_NONE = "none"
EXPIRY_EXPIRED = "expired"
EXPIRY_EXPIRING = "expiring"
EXPIRY_VALID = "valid"


def _as_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        logger.warning(f"Unparseable expiry date: {value!r}")
        return None


def days_until(expiry_date: Union[str, date, datetime, None], today: Optional[date] = None) -> Optional[int]:
    expiry = _as_date(expiry_date)
    if expiry is None:
        return None
    today = today or date.today()
    return (expiry - today).days


def expiry_status(expiry_date: Union[str, date, datetime, None], today: Optional[date] = None) -> str:
    """
    ``none`` without a (parseable) date, ``expired`` once past, ``expiring``
    within ``DOCUMENT_EXPIRY_WARNING_DAYS``, otherwise ``valid``.
    """
    remaining = days_until(expiry_date, today)
    if remaining is None:
        return EXPIRY_NONE
    if remaining < 0:
        return EXPIRY_EXPIRED
    if remaining <= settings.DOCUMENT_EXPIRY_WARNING_DAYS:
        return EXPIRY_EXPIRING
    return EXPIRY_VALID


class DocumentService:
    """Society documents: expiry tracking and soft archive."""

    def __init__(self, store: Optional[DocumentStore] = None):
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store or get_store()

    async def archive_document(self, document_id: str, archived: bool = True) -> None:
        """Soft archive; the record stays, hidden from the active list."""
        await UpdateDocument(self.store, COLLECTIONS['documents'])(document_id, {"archived": archived})
        logger.info(f"Document {document_id} {'archived' if archived else 'restored'}")

    async def expiring_documents(self, identity: IdentityContext, today: Optional[date] = None) -> List[SocietyDocument]:
        """Active documents visible to ``identity`` that are expired or about to expire."""
        query = OwnedRecordsQuery(identity, owner_field="submittedBy")
        async with LiveCollection(self.store, COLLECTIONS['documents'], query, listen=False,
                                  model=SocietyDocument) as binder:
            if binder.error:
                raise binder.failure
            return [
                doc for doc in binder.data
                if not doc.archived
                and expiry_status(doc.expiryDate, today) in (EXPIRY_EXPIRED, EXPIRY_EXPIRING)
            ]


document_service = DocumentService()
