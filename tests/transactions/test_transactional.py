"""Tests for transactional repositories."""

import asyncio

import pytest

from dbhooks.core.annotations import hooked, on_update
from dbhooks.core.model import Model
from dbhooks.db.memory import MemoryDB
from dbhooks.exceptions import NotFoundError, TransactionError
from dbhooks.repository import DatabaseRepository
from dbhooks.transactions import (
    SynchronousLock,
    Transaction,
    Transactional,
    transactional,
    transactional_super_call,
)

EVENTS = []


async def slow_update(repository, context, args, key, model, previous):
    EVENTS.append(f"start {model.id}")
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    EVENTS.append(f"end {model.id}")


class Note(Model):
    id: str = ""
    body: str = hooked("", on_update(slow_update))


@Transactional
class NoteRepository(DatabaseRepository):
    @transactional()
    async def create(self, model, *, context=None):
        return await super().create(model, context=context)

    @transactional()
    async def read(self, key, *, context=None):
        return await super().read(key, context=context)

    @transactional()
    async def update(self, model, *, context=None):
        return await super().update(model, context=context)

    @transactional()
    async def delete(self, key, *, context=None):
        return await super().delete(key, context=context)


class Notebook:
    def __init__(self, repository):
        self.repository = repository

    @transactional()
    async def rewrite(self, key, body):
        note = await self.repository.read(key)
        note.body = body
        return await self.repository.update(note)


def counting_lock():
    counts = {"begin": 0, "end": 0}

    async def on_begin():
        counts["begin"] += 1

    async def on_end(error):
        counts["end"] += 1

    lock = SynchronousLock(1, on_begin=on_begin, on_end=on_end)
    Transaction.set_lock(lock)
    return lock, counts


@pytest.fixture(autouse=True)
def clear_events():
    EVENTS.clear()
    yield
    EVENTS.clear()


class TestTransactionalRepository:
    """Test repository operations under the transaction lock."""

    @pytest.mark.asyncio
    async def test_update_reading_previous_is_one_transaction(self):
        lock, counts = counting_lock()
        repo = NoteRepository(Note, MemoryDB())
        await repo.create(Note(id="1", body="a"))

        updated = await asyncio.wait_for(repo.update(Note(id="1", body="b")), timeout=1)

        assert updated.body == "b"
        assert counts == {"begin": 2, "end": 2}
        assert lock.admission_counter == 1

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_serialized(self):
        counting_lock()
        repo = NoteRepository(Note, MemoryDB())
        await repo.create(Note(id="1"))
        await repo.create(Note(id="2"))

        await asyncio.gather(
            repo.update(Note(id="1", body="x")),
            repo.update(Note(id="2", body="y")),
        )

        assert EVENTS == ["start 1", "end 1", "start 2", "end 2"]

    @pytest.mark.asyncio
    async def test_errors_propagate_and_release_the_lock(self):
        lock, counts = counting_lock()
        repo = NoteRepository(Note, MemoryDB())

        with pytest.raises(NotFoundError):
            await repo.update(Note(id="missing", body="x"))

        assert counts == {"begin": 1, "end": 1}
        assert lock.admission_counter == 1
        assert lock.current_transaction is None

    @pytest.mark.asyncio
    async def test_delete_reads_within_the_transaction(self):
        _, counts = counting_lock()
        repo = NoteRepository(Note, MemoryDB())
        await repo.create(Note(id="1"))

        deleted = await asyncio.wait_for(repo.delete("1"), timeout=1)

        assert deleted.id == "1"
        assert counts["begin"] == 2
        with pytest.raises(NotFoundError):
            await repo.read("1")


class TestNestedObjects:
    """Test continuation through bound attributes and explicit calls."""

    @pytest.mark.asyncio
    async def test_transactional_attribute_continues_owner_transaction(self):
        _, counts = counting_lock()
        repo = NoteRepository(Note, MemoryDB())
        await repo.create(Note(id="1", body="a"))

        updated = await asyncio.wait_for(Notebook(repo).rewrite("1", "b"), timeout=1)

        assert updated.body == "b"
        assert counts["begin"] == 2

    @pytest.mark.asyncio
    async def test_super_call_continues_current_transaction(self):
        _, counts = counting_lock()
        repo = NoteRepository(Note, MemoryDB())
        await repo.create(Note(id="1", body="a"))

        async def work(bound, key):
            return await transactional_super_call(repo.read, key)

        note = await asyncio.wait_for(Transaction.push(repo, work, "1"), timeout=1)

        assert note.body == "a"
        assert counts["begin"] == 2

    @pytest.mark.asyncio
    async def test_super_call_without_transaction(self):
        counting_lock()
        repo = NoteRepository(Note, MemoryDB())
        await repo.create(Note(id="1", body="a"))

        note = await transactional_super_call(repo.read, "1")
        assert note.body == "a"

    @pytest.mark.asyncio
    async def test_continuing_an_idle_transaction_fails(self):
        repo = NoteRepository(Note, MemoryDB())

        with pytest.raises(TransactionError):
            await repo.read(Transaction("Other", "idle"), "1")


class TestDecorator:
    """Test decorator validation."""

    def test_requires_async_method(self):
        with pytest.raises(TypeError):

            @transactional()
            def sync_method(self):
                pass

    def test_class_marker(self):
        assert NoteRepository.__transactional_class__ is True
        assert NoteRepository.update.__transactional__ is True
