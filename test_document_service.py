from datetime import date, datetime, timezone

import pytest

from societyhub.bindings.query import IdentityContext
from societyhub.database.memory_store import MemoryStore
from societyhub.models.user import UserRole
from societyhub.services.document_service import DocumentService, expiry_status

TODAY = date(2025, 6, 1)
CREATED = datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_expiry_status():
    assert expiry_status(None, TODAY) == "none"
    assert expiry_status("", TODAY) == "none"
    assert expiry_status("not a date", TODAY) == "none"
    assert expiry_status("2025-05-31", TODAY) == "expired"
    assert expiry_status("2025-06-01", TODAY) == "expiring"
    assert expiry_status("2025-07-01", TODAY) == "expiring"
    assert expiry_status("2025-07-02", TODAY) == "valid"
    assert expiry_status(date(2026, 1, 1), TODAY) == "valid"
    assert expiry_status(datetime(2025, 6, 10, 8, 30), TODAY) == "expiring"


def seed_documents(store):
    store.seed("documents", "d1", {"title": "Fire NOC", "expiryDate": "2025-06-20", "archived": False,
                                   "submittedBy": "u1", "createdAt": CREATED})
    store.seed("documents", "d2", {"title": "Lift licence", "expiryDate": "2026-01-01", "archived": False,
                                   "submittedBy": "u1", "createdAt": CREATED})
    store.seed("documents", "d3", {"title": "Old insurance", "expiryDate": "2025-01-01", "archived": True,
                                   "submittedBy": "u1", "createdAt": CREATED})
    store.seed("documents", "d4", {"title": "Parking permit", "expiryDate": "2025-05-01", "archived": False,
                                   "submittedBy": "u2", "createdAt": CREATED})


@pytest.mark.asyncio
async def test_archive_sets_flag():
    store = MemoryStore()
    seed_documents(store)

    await DocumentService(store).archive_document("d1")

    doc = await store.get_document("documents", "d1")
    assert doc.data["archived"] is True
    assert "updatedAt" in doc.data


@pytest.mark.asyncio
async def test_expiring_documents_for_resident():
    store = MemoryStore()
    seed_documents(store)

    docs = await DocumentService(store).expiring_documents(IdentityContext("u1", UserRole.RESIDENT), TODAY)

    assert [d.id for d in docs] == ["d1"]


@pytest.mark.asyncio
async def test_expiring_documents_for_admin():
    store = MemoryStore()
    seed_documents(store)

    docs = await DocumentService(store).expiring_documents(IdentityContext("a1", UserRole.ADMIN), TODAY)

    assert sorted(d.id for d in docs) == ["d1", "d4"]
