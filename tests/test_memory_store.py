"""Tests for the long-term memory store."""

from datetime import datetime, timedelta

import pytest

from memory.database import Database
from memory.memory_store import MemoryStore
from memory.models import MemoryCreate, MemoryType, MemoryUpdate


class TestMemoryStore:
    """Test memory creation, search and deletion."""

    def setup_method(self):
        """Set up test fixtures."""
        self.db = Database(":memory:")
        self.store = MemoryStore(self.db)
        self.user = "user-1"

    def teardown_method(self):
        self.db.close()

    def _create(self, content, memory_type=MemoryType.PREFERENCE, importance=None, **kwargs):
        return self.store._create_memory_sync(
            self.user,
            MemoryCreate(type=memory_type, content=content, importance=importance, **kwargs)
        )

    @pytest.mark.asyncio
    async def test_create_is_idempotent(self):
        """Creating the same memory twice keeps one row and bumps its access count."""
        data = MemoryCreate(type=MemoryType.CONTACT, content="Ana García - CFO de Acme")

        first = await self.store.create_memory(self.user, data)
        second = await self.store.create_memory(self.user, data)

        assert first.id == second.id
        assert second.access_count == 1
        memories = await self.store.get_memories(self.user)
        assert len(memories) == 1
        assert memories[0].access_count == 1

    def test_create_defaults(self):
        """New memories get importance 5 and an explicit source."""
        memory = self._create("Prefiere reuniones por la mañana")

        assert memory.importance == 5
        assert memory.metadata["source"] == "explicit"
        assert memory.is_active is True

    def test_given_source_is_kept(self):
        memory = self._create("Proyecto Atlas", MemoryType.PROJECT, metadata={"source": "conversation"})
        assert memory.metadata["source"] == "conversation"

    def test_same_content_different_type_is_a_new_memory(self):
        self._create("Atlas", MemoryType.PROJECT)
        self._create("Atlas", MemoryType.DECISION)

        assert len(self.store._get_memories_sync(self.user)) == 2

    def test_search_is_case_insensitive_substring(self):
        """Search matches any part of the content regardless of case."""
        self._create("Le gusta el café sin azúcar")
        self._create("Trabaja con el equipo de Marketing")

        hits = self.store._search_memories_sync(self.user, "CAFÉ")

        assert len(hits) == 1
        assert "café" in hits[0].content
        assert hits[0].access_count == 1

    def test_search_orders_by_importance(self):
        self._create("proyecto menor", MemoryType.PROJECT, importance=3)
        self._create("proyecto clave", MemoryType.PROJECT, importance=9)

        hits = self.store._search_memories_sync(self.user, "proyecto")

        assert [m.content for m in hits] == ["proyecto clave", "proyecto menor"]

    def test_search_with_type_filter(self):
        self._create("Atlas", MemoryType.PROJECT)
        self._create("Atlas es prioritario", MemoryType.DECISION)

        hits = self.store._search_memories_sync(self.user, "atlas", MemoryType.DECISION)

        assert len(hits) == 1
        assert hits[0].type == MemoryType.DECISION

    def test_search_other_user_sees_nothing(self):
        self._create("dato privado")
        assert self.store._search_memories_sync("someone-else", "dato") == []

    def test_blank_search_returns_nothing(self):
        self._create("algo")
        assert self.store._search_memories_sync(self.user, "   ") == []

    def test_relevant_memories_union(self):
        """Important, recently used and context-matching memories are combined without duplicates."""
        important = self._create("Objetivo del trimestre", MemoryType.PROJECT, importance=9)
        contextual = self._create("Su perro se llama Toby", MemoryType.PERSONAL, importance=2)

        relevant = self.store._get_relevant_memories_sync(self.user, "toby", max_memories=10)
        ids = [m.id for m in relevant]

        assert important.id in ids
        assert contextual.id in ids
        assert len(ids) == len(set(ids))
        assert relevant[0].id == important.id

    def test_relevant_memories_truncated(self):
        for i in range(8):
            self._create(f"preferencia {i}", importance=8)

        relevant = self.store._get_relevant_memories_sync(self.user, "preferencia", max_memories=3)
        assert len(relevant) == 3

    def test_expired_memories_are_hidden(self):
        self._create("caducado", expires_at=datetime.now() - timedelta(days=1))
        self._create("vigente", expires_at=datetime.now() + timedelta(days=1))

        contents = [m.content for m in self.store._get_memories_sync(self.user)]
        assert contents == ["vigente"]

    def test_delete_memory_is_soft(self):
        memory = self._create("temporal")

        assert self.store._delete_memory_sync(self.user, memory.id) is True
        assert self.store._get_memories_sync(self.user) == []
        assert self.store._delete_memory_sync(self.user, memory.id) is False

        exported = self.store._export_memories_sync(self.user)
        assert len(exported) == 1
        assert exported[0].is_active is False

    def test_delete_by_content_caps_at_five(self):
        for i in range(7):
            self._create(f"nota {i}")

        deleted = self.store._delete_memory_by_content_sync(self.user, "nota")

        assert deleted == 5
        assert len(self.store._get_memories_sync(self.user)) == 2

    def test_delete_then_recreate(self):
        """A deleted memory does not block creating the same content again."""
        memory = self._create("vuelve")
        self.store._delete_memory_sync(self.user, memory.id)

        again = self._create("vuelve")
        assert again.id != memory.id

    def test_delete_all_is_hard(self):
        self._create("uno")
        self._create("dos")

        assert self.store._delete_all_memories_sync(self.user) == 2
        assert self.store._export_memories_sync(self.user) == []

    def test_update_merges_metadata(self):
        memory = self._create("Ana", MemoryType.CONTACT, metadata={"email": "ana@acme.com"})

        updated = self.store._update_memory_sync(
            self.user, memory.id, MemoryUpdate(importance=9, metadata={"company": "Acme"})
        )

        assert updated.importance == 9
        assert updated.metadata["email"] == "ana@acme.com"
        assert updated.metadata["company"] == "Acme"

    def test_update_unknown_memory(self):
        assert self.store._update_memory_sync(self.user, "missing", MemoryUpdate(importance=2)) is None

    def test_find_contact_by_company(self):
        self._create("Luis Pérez", MemoryType.CONTACT, metadata={"company": "Globex"})

        contact = self.store._find_contact_sync(self.user, "globex")

        assert contact is not None
        assert contact.content == "Luis Pérez"

    def test_preferences_by_category(self):
        self._create("Reuniones cortas", metadata={"category": "meetings"})
        self._create("Correos en español", metadata={"category": "email"})

        preferences = self.store._get_preferences_sync(self.user, "email")
        assert [p.content for p in preferences] == ["Correos en español"]

    def test_memory_stats(self):
        self._create("a", MemoryType.PROJECT, importance=8)
        self._create("b", MemoryType.PROJECT, importance=4)
        self._create("c", MemoryType.CONTACT, importance=6)

        stats = self.store._get_memory_stats_sync(self.user)

        assert stats.total == 3
        assert stats.by_type == {"project": 2, "contact": 1}
        assert stats.avg_importance == pytest.approx(6.0)

    def test_create_inside_failed_transaction_is_rolled_back(self):
        """create_memory_in joins the caller's transaction."""
        with pytest.raises(RuntimeError):
            with self.db.transaction() as conn:
                self.store.create_memory_in(conn, self.user, MemoryCreate(type=MemoryType.PROJECT, content="x"))
                raise RuntimeError("boom")

        assert self.store._get_memories_sync(self.user) == []
