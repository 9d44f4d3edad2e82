"""Integration tests for PostgresTaxonomyStore against PostgreSQL."""
import asyncio

import asyncpg
import pytest

from config.database import DatabaseConfig
from src.classification_persistence.service import PostgresTaxonomyStore

pytestmark = pytest.mark.integration


class TestPostgresTaxonomyStoreIntegration:
    """End-to-end create-if-missing behavior."""

    async def test_create_is_idempotent_by_normalized_name(self, db_connection: asyncpg.Connection):
        store = PostgresTaxonomyStore(db_connection)

        first = await store.create_country("Georgia")
        second = await store.create_country(" georgia ")

        assert first.id == second.id

    async def test_snapshot_nests_created_cities(self, db_connection: asyncpg.Connection):
        # Given: A country with one city and a country without cities
        store = PostgresTaxonomyStore(db_connection)
        ukraine = await store.create_country("Ukraine")
        await store.create_country("Moldova")
        await store.create_city("Kyiv", ukraine.id)

        # When: Loading the snapshot
        snapshot = await store.list_taxonomy()

        # Then: Cities nested under their country
        by_name = {c.name: c for c in snapshot.countries}
        assert [c.name for c in by_name["Ukraine"].cities] == ["Kyiv"]
        assert by_name["Moldova"].cities == []

    async def test_concurrent_creates_yield_one_row(self, db_config: DatabaseConfig):
        # Given: Two runs on separate connections creating the same category
        async def create(name: str):
            async with db_config.connection() as conn:
                return await PostgresTaxonomyStore(conn).create_category(name)

        try:
            # When: Racing
            first, second = await asyncio.gather(create("Race Topic"), create("race topic"))

            # Then: Both get the same row
            assert first.id == second.id
        finally:
            async with db_config.connection() as conn:
                await conn.execute(
                    "DELETE FROM categories WHERE normalized_name = 'race topic'"
                )

    async def test_labels_are_created_once_and_listed(self, db_connection: asyncpg.Connection):
        # Given: A store creating each label kind, one of them twice
        store = PostgresTaxonomyStore(db_connection)
        theme = await store.create_theme("Energy security")
        tag = await store.create_tag("inflation")
        again = await store.create_tag(" Inflation ")
        alliance = await store.create_alliance("NATO")

        # When: Loading the snapshot
        snapshot = await store.list_taxonomy()

        # Then: One row per normalized name, all visible in the snapshot
        assert tag.id == again.id
        assert theme.id in [t.id for t in snapshot.themes]
        assert [t.id for t in snapshot.tags if t.name == "inflation"] == [tag.id]
        assert alliance.id in [a.id for a in snapshot.alliances]
