"""Repository for key-value settings."""
from datetime import datetime, timezone
from pathlib import Path

import aiosql
import asyncpg

from src.classification_persistence.models.domain import Setting


class SettingsRepository:
    """Repository for settings database operations using aiosql."""

    def __init__(self):
        """Initialize the repository and load SQL queries."""
        queries_path = Path(__file__).parent.parent / "queries"
        self.queries = aiosql.from_path(str(queries_path), "asyncpg")

    async def get_setting(
        self,
        conn: asyncpg.Connection,
        key: str,
    ) -> Setting | None:
        """Find a setting by key, None if it was never stored."""
        result = await self.queries.find_setting_by_key(conn, key=key)

        if result is None:
            return None

        return Setting.model_validate(dict(result))

    async def set_setting(
        self,
        conn: asyncpg.Connection,
        key: str,
        value: str,
    ) -> Setting:
        """Insert or update a setting and return the stored row."""
        result = await self.queries.upsert_setting(
            conn,
            key=key,
            value=value,
            updated_at=datetime.now(timezone.utc),
        )

        return Setting.model_validate(dict(result))
