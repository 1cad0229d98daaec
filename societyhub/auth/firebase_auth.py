from firebase_admin import auth
from typing import Optional
import logging

from ..core.firebase_init import initialize_firebase, is_firebase_available

logger = logging.getLogger(__name__)

class FirebaseAuth:
    """Thin async wrapper over firebase-admin auth; initialises Firebase on first use."""

    def _ensure_initialized(self):
        if not is_firebase_available():
            if not initialize_firebase():
                raise Exception("Firebase initialization failed - Auth not available")

    async def verify_token(self, token: str) -> Optional[dict]:
        try:
            self._ensure_initialized()
            decoded_token = auth.verify_id_token(token)
            return decoded_token
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            return None

firebase_auth = FirebaseAuth()
