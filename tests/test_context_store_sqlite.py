from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from pageplus.context.items import ContextSet
from pageplus.models.context import CapturedElement
from pageplus.persistence import MigrationChecksumError, SQLiteContextStore, run_migrations
from pageplus.persistence.migrations import MIGRATIONS_DIR
from tests.helpers import image_item, text_item

pytestmark = pytest.mark.asyncio


class TestMigrations:
    async def test_applies_once(self, tmp_path: Path) -> None:
        db_path = str(tmp_path / "data" / "pageplus.db")
        assert await run_migrations(db_path) == ["001_context_items.sql"]
        assert await run_migrations(db_path) == []

        conn = sqlite3.connect(db_path)
        try:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        finally:
            conn.close()
        assert {"context_items", "_migrations"} <= tables

    async def test_modified_migration_rejected(self, tmp_path: Path) -> None:
        migrations = tmp_path / "migrations"
        migrations.mkdir()
        source = (MIGRATIONS_DIR / "001_context_items.sql").read_text(encoding="utf-8")
        (migrations / "001_context_items.sql").write_text(source, encoding="utf-8")
        db_path = str(tmp_path / "pageplus.db")
        await run_migrations(db_path, migrations)

        (migrations / "001_context_items.sql").write_text(source + "\n-- edited\n", encoding="utf-8")
        with pytest.raises(MigrationChecksumError):
            await run_migrations(db_path, migrations)


class TestSQLiteContextStore:
    async def test_round_trip_preserves_order_and_fields(self, tmp_path: Path) -> None:
        db_path = str(tmp_path / "pageplus.db")
        await run_migrations(db_path)
        store = SQLiteContextStore(db_path)
        text = text_item("notes", url="https://example.com/a")
        image = image_item(
            "data:image/png;base64,AAAA",
            "<input id='email'>",
            colors=["#ff0000"],
        )

        await store.save("conv", [text, image])
        loaded = await store.load("conv")

        assert [item.id for item in loaded] == [text.id, image.id]
        assert loaded[0] == text
        assert loaded[1].elements == [CapturedElement(html="<input id='email'>", selector="div.capture")]
        assert loaded[1].colors == ["#ff0000"]

    async def test_deactivation_is_persisted_not_deleted(self, tmp_path: Path) -> None:
        db_path = str(tmp_path / "pageplus.db")
        await run_migrations(db_path)
        store = SQLiteContextStore(db_path)
        context = ContextSet("conv", store)
        first, second = text_item("a"), text_item("b")
        await context.add(first)
        await context.add(second)
        await context.deactivate(first.id)

        reloaded = await ContextSet.load("conv", store)

        assert len(reloaded) == 2
        assert reloaded.active_ids() == (second.id,)

    async def test_conversations_are_isolated(self, tmp_path: Path) -> None:
        db_path = str(tmp_path / "pageplus.db")
        await run_migrations(db_path)
        store = SQLiteContextStore(db_path)
        await store.save("one", [text_item("first")])
        await store.save("two", [text_item("second")])

        assert [item.content for item in await store.load("two")] == ["second"]
        assert await store.list_conversations() == ["one", "two"]
        assert await store.load("missing") == []
