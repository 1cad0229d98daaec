import asyncio
from datetime import datetime

import pytest
from google.api_core import exceptions as api_exceptions

from societyhub.bindings.mutations import CreateDocument, DeleteDocument, UpdateDocument, mutations_for
from societyhub.core.errors import ErrorType, MutationError
from societyhub.database.memory_store import MemoryStore
from societyhub.models.database_models import Complaint

# Async tests
pytestmark = pytest.mark.asyncio


class SlowStore(MemoryStore):
    """Writes wait until ``gate`` is set"""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def create(self, collection_name, payload, document_id=None):
        await self.gate.wait()
        return await super().create(collection_name, payload, document_id)


async def test_create_stamps_created_at():
    store = MemoryStore()

    new_id = await CreateDocument(store, "announcements")({"title": "AGM on Sunday", "content": "Clubhouse"})

    doc = await store.get_document("announcements", new_id)
    assert doc.data["title"] == "AGM on Sunday"
    assert isinstance(doc.data["createdAt"], datetime)


async def test_create_keeps_caller_timestamp():
    store = MemoryStore()
    stamp = datetime(2024, 1, 1)

    new_id = await CreateDocument(store, "events")({"title": "Holi", "createdAt": stamp})

    doc = await store.get_document("events", new_id)
    assert doc.data["createdAt"] == stamp


async def test_create_with_explicit_id_and_model_payload():
    store = MemoryStore()
    complaint = Complaint(id="ignored", title="Broken gate", description="Main gate", category="security",
                          priority="high")

    new_id = await CreateDocument(store, "complaints")(complaint, document_id="gate_1")

    doc = await store.get_document("complaints", "gate_1")
    assert new_id == "gate_1"
    assert "id" not in doc.data
    assert "submittedBy" not in doc.data
    assert doc.data["status"] == "pending"


async def test_busy_flag_is_per_helper():
    store = SlowStore()
    create = CreateDocument(store, "alerts")
    update = UpdateDocument(store, "alerts")

    task = asyncio.create_task(create({"message": "Gas leak", "priority": "high", "type": "emergency"}))
    await asyncio.sleep(0)

    assert create.busy is True
    assert update.busy is False

    store.gate.set()
    await task
    assert create.busy is False


async def test_update_stamps_updated_at():
    store = MemoryStore()
    store.seed("complaints", "c1", {"title": "Leak", "status": "pending"})

    await UpdateDocument(store, "complaints")("c1", {"status": "resolved"})

    doc = await store.get_document("complaints", "c1")
    assert doc.data["status"] == "resolved"
    assert doc.data["title"] == "Leak"
    assert isinstance(doc.data["updatedAt"], datetime)


async def test_update_of_missing_document_raises_mutation_error():
    store = MemoryStore()
    update = UpdateDocument(store, "complaints")

    with pytest.raises(MutationError) as exc:
        await update("missing", {"status": "resolved"})

    assert exc.value.operation == "update"
    assert exc.value.document_id == "missing"
    assert isinstance(exc.value.__cause__, api_exceptions.NotFound)
    assert update.busy is False


async def test_rejected_write_is_classified():
    store = MemoryStore()
    store.fail_collection("guards", reads=False)
    create = CreateDocument(store, "guards")

    with pytest.raises(MutationError) as exc:
        await create({"name": "Ramesh"})

    assert exc.value.error_type == ErrorType.PERMISSION
    assert exc.value.collection == "guards"
    assert create.busy is False


async def test_delete_removes_document():
    store = MemoryStore()
    store.seed("deliveries", "d1", {"recipientName": "Asha"})

    await DeleteDocument(store, "deliveries")("d1")

    assert await store.get_document("deliveries", "d1") is None


async def test_mutations_for_shares_collection():
    store = MemoryStore()
    helpers = mutations_for(store, "polls")

    new_id = await helpers.create({"question": "Paint colour?", "options": []})
    await helpers.update(new_id, {"question": "Lobby paint colour?"})
    doc = await store.get_document("polls", new_id)
    assert doc.data["question"] == "Lobby paint colour?"

    await helpers.delete(new_id)
    assert await store.get_document("polls", new_id) is None
    assert store.write_calls == 3
