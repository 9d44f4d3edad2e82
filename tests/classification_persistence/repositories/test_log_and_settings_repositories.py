"""Integration tests for categorization log and settings repositories."""
import asyncpg
import pytest

from src.classification_persistence.models.domain import CategorizationLog
from src.classification_persistence.repositories.categorization_log_repository import (
    CategorizationLogRepository,
)
from src.classification_persistence.repositories.settings_repository import SettingsRepository

pytestmark = pytest.mark.integration


class TestCategorizationLogRepository:
    """Append-only audit log."""

    async def test_insert_log_round_trips_json_columns(self, db_connection: asyncpg.Connection):
        # Given: A record with nested reasoning and non-ASCII text
        repository = CategorizationLogRepository()
        record = CategorizationLog(
            material_id="rss-42",
            supercategory="Domestic",
            predicted_category="Politics",
            validation_category="Economy",
            confidence=0.4,
            validation_confidence=0.9,
            reasoning={"classification": {"step3_keywords": ["ставка", "інфляція"]}},
            metadata={"final_category": "Economy", "validated": True},
        )

        # When: Inserting and reading back
        stored = await repository.insert_log(db_connection, record)
        found = await repository.find_by_material_id(db_connection, "rss-42")

        # Then: JSON columns decode to dicts
        assert stored.id is not None
        assert stored.reasoning["classification"]["step3_keywords"] == ["ставка", "інфляція"]
        assert found[0].metadata == {"final_category": "Economy", "validated": True}

    async def test_error_record_without_predictions(self, db_connection: asyncpg.Connection):
        repository = CategorizationLogRepository()

        stored = await repository.insert_log(
            db_connection,
            CategorizationLog(
                material_id="rss-43",
                confidence=0.0,
                reasoning={"error": "boom"},
                metadata={"error": "boom"},
            ),
        )

        assert stored.predicted_category is None
        assert stored.reasoning == {"error": "boom"}

    async def test_find_by_unknown_material_returns_empty(self, db_connection: asyncpg.Connection):
        assert await CategorizationLogRepository().find_by_material_id(db_connection, "none") == []


class TestSettingsRepository:
    """Key-value upserts."""

    async def test_set_then_update_setting(self, db_connection: asyncpg.Connection):
        repository = SettingsRepository()

        await repository.set_setting(db_connection, "llm_model", "provider/model-a")
        updated = await repository.set_setting(db_connection, "llm_model", "provider/model-b")
        found = await repository.get_setting(db_connection, "llm_model")

        assert found.id == updated.id
        assert found.value == "provider/model-b"

    async def test_missing_setting_returns_none(self, db_connection: asyncpg.Connection):
        assert await SettingsRepository().get_setting(db_connection, "missing") is None
