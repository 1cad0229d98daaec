import asyncio

import pytest

from societyhub.auth.role_resolver import RoleResolver, normalize_role, resolve_role
from societyhub.auth.session import AuthSession
from societyhub.database.memory_store import MemoryStore
from societyhub.models.user import Identity, RoleState, UserRole

# Async tests
pytestmark = pytest.mark.asyncio


class GatedProfileStore(MemoryStore):
    """Profile reads wait until ``gate`` is set"""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def get_document(self, collection_name, document_id):
        await self.gate.wait()
        return await super().get_document(collection_name, document_id)


def make_store():
    store = MemoryStore()
    store.seed("users", "admin1", {"name": "Secretary", "role": "admin"})
    store.seed("users", "guard1", {"name": "Gate", "role": "security"})
    store.seed("users", "old1", {"name": "Old Account", "role": "user"})
    store.seed("users", "res1", {"name": "Asha", "role": "resident"})
    return store


async def test_sign_in_resolves_role_with_one_read():
    store = make_store()
    session = AuthSession()
    resolver = RoleResolver(store, session)
    resolver.start()
    assert resolver.state == RoleState.SIGNED_OUT

    session.sign_in(Identity(uid="admin1", email="sec@society.in"))
    assert resolver.state == RoleState.UNRESOLVED
    assert resolver.loading is True

    role = await resolver.wait_resolved()

    assert role == UserRole.ADMIN
    assert resolver.state == RoleState.RESOLVED
    assert resolver.context().sees_everything
    assert store.get_calls == 1


async def test_already_signed_in_session_resolves_on_start():
    store = make_store()
    resolver = RoleResolver(store, AuthSession(Identity(uid="guard1")))
    resolver.start()

    assert await resolver.wait_resolved() == UserRole.SECURITY
    assert resolver.context().uid == "guard1"


async def test_legacy_user_tag_is_resident():
    store = make_store()
    assert await resolve_role(store, "old1") == UserRole.RESIDENT


async def test_missing_profile_defaults_to_resident():
    store = make_store()
    assert await resolve_role(store, "stranger") == UserRole.RESIDENT


async def test_failed_read_defaults_to_resident():
    store = make_store()
    store.fail_collection("users")
    session = AuthSession()
    resolver = RoleResolver(store, session)
    resolver.start()

    session.sign_in(Identity(uid="admin1"))

    assert await resolver.wait_resolved() == UserRole.RESIDENT
    assert resolver.state == RoleState.RESOLVED


async def test_sign_out_clears_role():
    store = make_store()
    session = AuthSession(Identity(uid="res1"))
    resolver = RoleResolver(store, session)
    resolver.start()
    await resolver.wait_resolved()

    session.sign_out()

    assert resolver.state == RoleState.SIGNED_OUT
    assert resolver.role is None
    assert resolver.context().resolved is False


async def test_stale_read_is_discarded():
    store = GatedProfileStore()
    store.seed("users", "admin1", {"role": "admin"})
    store.seed("users", "res1", {"role": "resident"})
    session = AuthSession()
    resolver = RoleResolver(store, session)
    resolver.start()

    session.sign_in(Identity(uid="admin1"))
    await asyncio.sleep(0)
    session.sign_in(Identity(uid="res1"))
    await asyncio.sleep(0)

    store.gate.set()
    role = await resolver.wait_resolved()
    for _ in range(3):
        await asyncio.sleep(0)

    assert role == UserRole.RESIDENT
    assert resolver.role == UserRole.RESIDENT
    assert resolver.identity.uid == "res1"


async def test_sign_out_during_read_stays_signed_out():
    store = GatedProfileStore()
    store.seed("users", "admin1", {"role": "admin"})
    session = AuthSession()
    resolver = RoleResolver(store, session)
    resolver.start()

    session.sign_in(Identity(uid="admin1"))
    await asyncio.sleep(0)
    session.sign_out()

    store.gate.set()
    for _ in range(3):
        await asyncio.sleep(0)

    assert resolver.state == RoleState.SIGNED_OUT
    assert resolver.role is None


async def test_listeners_follow_transitions():
    store = make_store()
    session = AuthSession()
    resolver = RoleResolver(store, session)
    seen = []
    resolver.add_listener(lambda r: seen.append((r.state, r.role)))
    resolver.start()

    session.sign_in(Identity(uid="res1"))
    await resolver.wait_resolved()
    resolver.stop()
    session.sign_out()

    assert seen == [
        (RoleState.SIGNED_OUT, None),
        (RoleState.UNRESOLVED, None),
        (RoleState.RESOLVED, UserRole.RESIDENT),
    ]


async def test_normalize_role_tags():
    assert normalize_role("Admin") == UserRole.ADMIN
    assert normalize_role(" security ") == UserRole.SECURITY
    assert normalize_role(None) == UserRole.RESIDENT
    assert normalize_role("janitor") == UserRole.RESIDENT
