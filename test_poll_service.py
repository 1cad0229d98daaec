from datetime import datetime, timedelta, timezone

import pytest

from societyhub.database.memory_store import MemoryStore
from societyhub.models.database_models import Poll, PollOption, PollVote
from societyhub.services.poll_service import PollService, has_voted, is_expired, tally

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_poll(**overrides):
    data = {
        "question": "Repaint the lobby?",
        "options": [
            {"text": "Yes", "votes": [{"userId": "u1"}, {"userId": "u2"}]},
            {"text": "No", "votes": [{"userId": "u3"}]},
        ],
        "expiresAt": NOW + timedelta(days=2),
        "createdBy": "admin1",
    }
    data.update(overrides)
    return data


def test_tally_counts_and_percentages():
    poll = Poll(**make_poll())

    result = tally(poll)

    assert result["total"] == 3
    assert result["options"] == [
        {"text": "Yes", "votes": 2, "percent": 67},
        {"text": "No", "votes": 1, "percent": 33},
    ]


def test_tally_without_votes():
    poll = Poll(question="Gym timings?", options=[PollOption(text="6am"), PollOption(text="7am")])
    assert [o["percent"] for o in tally(poll)["options"]] == [0, 0]


def test_has_voted():
    poll = Poll(**make_poll())
    assert has_voted(poll, "u3")
    assert not has_voted(poll, "u4")


def test_is_expired():
    assert not is_expired(Poll(**make_poll()), NOW)
    assert is_expired(Poll(**make_poll(expiresAt=NOW - timedelta(minutes=1))), NOW)
    assert not is_expired(Poll(**make_poll(expiresAt=None)), NOW)


@pytest.mark.asyncio
async def test_cast_vote_records_vote():
    store = MemoryStore()
    store.seed("polls", "p1", make_poll())

    success, poll, error = await PollService(store).cast_vote("p1", 1, "u4", now=NOW)

    assert success is True
    assert error is None
    assert tally(poll)["options"][1]["votes"] == 2
    stored = await store.get_document("polls", "p1")
    assert {"userId": "u4"} in stored.data["options"][1]["votes"]
    assert "updatedAt" in stored.data


@pytest.mark.asyncio
async def test_second_vote_is_rejected():
    store = MemoryStore()
    store.seed("polls", "p1", make_poll())

    success, _, error = await PollService(store).cast_vote("p1", 1, "u1", now=NOW)

    assert success is False
    assert error == "You have already voted"
    assert store.write_calls == 0


@pytest.mark.asyncio
async def test_vote_on_expired_poll_is_rejected():
    store = MemoryStore()
    store.seed("polls", "p1", make_poll(expiresAt=NOW - timedelta(days=1)))

    success, _, error = await PollService(store).cast_vote("p1", 0, "u9", now=NOW)

    assert success is False
    assert error == "Poll has expired"


@pytest.mark.asyncio
async def test_vote_on_missing_poll():
    success, poll, error = await PollService(MemoryStore()).cast_vote("nope", 0, "u1", now=NOW)
    assert (success, poll, error) == (False, None, "Poll not found")


@pytest.mark.asyncio
async def test_vote_for_unknown_option():
    store = MemoryStore()
    store.seed("polls", "p1", make_poll())

    success, _, error = await PollService(store).cast_vote("p1", 5, "u9", now=NOW)

    assert success is False
    assert "Invalid option" in error


def test_poll_vote_model():
    option = PollOption(text="Yes", votes=[PollVote(userId="u1")])
    assert option.model_dump() == {"text": "Yes", "votes": [{"userId": "u1"}]}
