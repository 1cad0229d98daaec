from typing import Callable, List, Optional
import asyncio
import logging

from ..core.config import settings
from ..core.errors import error_message
from ..bindings.query import IdentityContext
from ..database.collections import COLLECTIONS
from ..database.store import DocumentStore
from ..models.user import LEGACY_ROLE_ALIASES, Identity, RoleState, UserRole
from .session import AuthSession

logger = logging.getLogger(__name__)

RoleListener = Callable[["RoleResolver"], None]


def _default_role() -> UserRole:
    try:
        return UserRole(settings.DEFAULT_ROLE)
    except ValueError:
        return UserRole.RESIDENT


def normalize_role(raw_role) -> UserRole:
    """Map a stored role tag onto the canonical roles; legacy "user" is a resident."""
    if not raw_role:
        return _default_role()
    tag = str(raw_role).strip().lower()
    if tag in LEGACY_ROLE_ALIASES:
        return LEGACY_ROLE_ALIASES[tag]
    try:
        return UserRole(tag)
    except ValueError:
        logger.warning(f"[RoleResolver] Unknown role tag '{raw_role}' - defaulting to {_default_role().value}")
        return _default_role()


async def resolve_role(store: DocumentStore, uid: str) -> UserRole:
    """
    Read ``users/<uid>`` once and return the role.

    Fails open: a missing profile or a failed read (permission denied,
    network) resolves to the default role instead of locking the user out.
    """
    try:
        profile = await store.get_document(COLLECTIONS['users'], uid)
    except Exception as e:
        logger.warning(f"[RoleResolver] Failed to fetch role for {uid}: {error_message(e)} - defaulting to {_default_role().value}")
        return _default_role()

    if profile is None:
        logger.info(f"[RoleResolver] No profile for {uid} - defaulting to {_default_role().value}")
        return _default_role()

    return normalize_role(profile.data.get("role"))


class RoleResolver:
    """
    Tracks the signed-in user's role across auth changes.

    States: ``UNRESOLVED`` (identity known, profile read in flight),
    ``RESOLVED`` (``role`` set) and ``SIGNED_OUT`` (``role`` is None). Each
    sign-in triggers exactly one profile read; a read that finishes after a
    newer auth change is discarded.
    """

    def __init__(self, store: DocumentStore, session: AuthSession):
        self.store = store
        self.session = session
        self.state = RoleState.UNRESOLVED
        self.role: Optional[UserRole] = None
        self.identity: Optional[Identity] = None
        self._auth_generation = 0
        self._pending: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._listeners: List[RoleListener] = []
        self._settled = asyncio.Event()

    @property
    def loading(self) -> bool:
        return self.state == RoleState.UNRESOLVED

    def context(self) -> IdentityContext:
        """Snapshot of uid + role for building query builders."""
        return IdentityContext(
            uid=self.identity.uid if self.identity else None,
            role=self.role,
        )

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.session.on_auth_state_change(self._on_auth_state_change)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._auth_generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def add_listener(self, listener: RoleListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def wait_resolved(self) -> Optional[UserRole]:
        """Wait until the current auth state has a role (or is signed out)."""
        await self._settled.wait()
        return self.role

    def _on_auth_state_change(self, identity: Optional[Identity]) -> None:
        self._auth_generation += 1
        generation = self._auth_generation

        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

        if identity is None:
            self._transition(RoleState.SIGNED_OUT, None, None)
            return

        self._transition(RoleState.UNRESOLVED, None, identity)
        self._pending = asyncio.get_running_loop().create_task(self._resolve(identity, generation))

    async def _resolve(self, identity: Identity, generation: int) -> None:
        role = await resolve_role(self.store, identity.uid)
        if generation != self._auth_generation:
            logger.debug(f"[RoleResolver] Discarding stale role for {identity.uid}")
            return
        logger.info(f"[RoleResolver] {identity.email or identity.uid} resolved as {role.value}")
        self._transition(RoleState.RESOLVED, role, identity)

    def _transition(self, state: RoleState, role: Optional[UserRole], identity: Optional[Identity]) -> None:
        self.state = state
        self.role = role
        self.identity = identity
        if state == RoleState.UNRESOLVED:
            self._settled.clear()
        else:
            self._settled.set()
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"[RoleResolver] Listener failed: {e}")
