import asyncio

import pytest

from services.session_store import InMemorySessionStore


async def test_create_applies_defaults():
    store = InMemorySessionStore(initial_difficulty=3, general_category="general")

    session = await store.create(user_id=7, category=None)

    assert session.user_id == 7
    assert session.category == "general"
    assert session.score == 0
    assert session.current_difficulty == 3
    assert session.shown_ids == []
    assert session.is_completed is False
    assert await store.get(session.id) is session


async def test_blank_category_means_general():
    store = InMemorySessionStore()
    session = await store.create(user_id=1, category="   ")
    assert session.category == "general"


async def test_ids_are_unique():
    store = InMemorySessionStore()
    ids = {(await store.create(user_id=1)).id for _ in range(200)}
    assert len(ids) == 200
    assert len(store) == 200


async def test_delete_then_get():
    store = InMemorySessionStore()
    session = await store.create(user_id=1)

    assert await store.delete(session.id) is True
    assert await store.get(session.id) is None
    assert await store.delete(session.id) is False


async def test_lock_serializes_one_session():
    store = InMemorySessionStore()
    session = await store.create(user_id=1)
    order = []

    async def worker(name):
        async with store.lock(session.id):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


async def test_lock_on_unknown_session_is_a_noop():
    store = InMemorySessionStore()
    async with store.lock("missing"):
        pass


def test_mark_shown_rejects_duplicates():
    from models.session import QuizSession

    session = QuizSession(id="s", user_id=1, category="general")
    session.mark_shown(1)

    with pytest.raises(ValueError):
        session.mark_shown(1)
    assert session.shown_ids == [1]
    assert session.pending_question_id == 1
