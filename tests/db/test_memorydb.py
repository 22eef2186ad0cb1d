"""Test suite for the in-memory database."""

import pytest

from dbhooks.db.memory import MemoryDB


class TestMemoryDB:
    """Test MemoryDB operations."""

    @pytest.mark.asyncio
    async def test_save_and_get(self):
        db = MemoryDB()
        await db.save("users", {"id": "u1", "name": "Ann"})

        assert await db.get("users", "u1") == {"id": "u1", "name": "Ann"}
        assert await db.get("users", "missing") is None
        assert await db.get("other", "u1") is None

    @pytest.mark.asyncio
    async def test_records_are_copied(self):
        db = MemoryDB()
        record = {"id": "u1", "tags": ["a"]}
        await db.save("users", record)
        record["tags"].append("b")

        stored = await db.get("users", "u1")
        assert stored["tags"] == ["a"]

        stored["tags"].append("c")
        assert (await db.get("users", "u1"))["tags"] == ["a"]

    @pytest.mark.asyncio
    async def test_save_requires_id(self):
        with pytest.raises(KeyError):
            await MemoryDB().save("users", {"name": "Ann"})

    @pytest.mark.asyncio
    async def test_find_delete_and_clear(self):
        db = MemoryDB()
        await db.save("users", {"id": "u1", "role": "admin"})
        await db.save("users", {"id": "u2", "role": "user"})
        await db.save("groups", {"id": "g1"})

        assert [r["id"] for r in await db.find("users", {"role": "admin"})] == ["u1"]
        assert await db.count("users") == 2

        await db.delete("users", "u1")
        await db.delete("users", "u1")
        assert await db.count("users") == 1

        await db.clear("users")
        assert await db.count("users") == 0
        assert await db.count("groups") == 1

        await db.clear()
        assert await db.count("groups") == 0
