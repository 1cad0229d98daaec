from typing import Callable, List, Optional
import logging

from ..models.user import Identity
from .firebase_auth import firebase_auth

logger = logging.getLogger(__name__)

AuthListener = Callable[[Optional[Identity]], None]


class AuthSession:
    """
    Current sign-in state plus change notifications.

    ``on_auth_state_change`` calls the new listener right away with the
    current identity (or ``None``), then again on every sign-in / sign-out.
    """

    def __init__(self, identity: Optional[Identity] = None):
        self.current: Optional[Identity] = identity
        self._listeners: List[AuthListener] = []

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        self._listeners.append(callback)
        callback(self.current)

        def _unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def sign_in(self, identity: Identity) -> None:
        logger.info(f"[Auth] Signed in: {identity.email or identity.uid}")
        self._emit(identity)

    async def sign_in_with_token(self, id_token: str) -> Optional[Identity]:
        """Verify a Firebase ID token and sign in; ``None`` if the token is rejected."""
        decoded = await firebase_auth.verify_token(id_token)
        if not decoded:
            logger.warning("[Auth] Token verification failed - staying signed out")
            return None
        identity = Identity.from_token(decoded)
        self.sign_in(identity)
        return identity

    def sign_out(self) -> None:
        if self.current is not None:
            logger.info(f"[Auth] Signed out: {self.current.email or self.current.uid}")
        self._emit(None)

    def _emit(self, identity: Optional[Identity]) -> None:
        self.current = identity
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception as e:
                logger.error(f"[Auth] Auth state listener failed: {e}")
