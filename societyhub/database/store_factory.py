from typing import Optional
import logging

from ..core.config import settings
from ..core.firebase_init import initialize_firebase, is_firebase_available
from .store import DocumentStore

logger = logging.getLogger(__name__)

_store: Optional[DocumentStore] = None


def get_store() -> DocumentStore:
    """Process-wide store; Firestore when credentials are available, else in-memory."""
    global _store
    if _store is not None:
        return _store

    if not settings.USE_MEMORY_STORE and (is_firebase_available() or initialize_firebase()):
        from .firestore_store import FirestoreStore
        _store = FirestoreStore()
        logger.info("📦 Using Firestore document store")
    else:
        from .memory_store import MemoryStore
        _store = MemoryStore()
        logger.warning("⚠️ Firebase unavailable or disabled - using in-memory document store")
    return _store


def set_store(store: Optional[DocumentStore]) -> None:
    """Replace the process-wide store (``None`` re-runs detection on next use)."""
    global _store
    _store = store
