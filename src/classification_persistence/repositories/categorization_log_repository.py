"""Repository for categorization log database operations."""
import json
from pathlib import Path

import aiosql
import asyncpg

from src.classification_persistence.models.domain import CategorizationLog


class CategorizationLogRepository:
    """Repository for the append-only categorization audit log using aiosql."""

    def __init__(self):
        """Initialize the repository and load SQL queries."""
        queries_path = Path(__file__).parent.parent / "queries"
        self.queries = aiosql.from_path(str(queries_path), "asyncpg")

    async def insert_log(
        self,
        conn: asyncpg.Connection,
        log: CategorizationLog,
    ) -> CategorizationLog:
        """
        Append a categorization log record.

        Args:
            conn: Database connection to use for the query
            log: CategorizationLog to insert (id will be ignored)

        Returns:
            CategorizationLog: The inserted record with database-generated id
        """
        result = await self.queries.insert_categorization_log(
            conn,
            material_id=log.material_id,
            supercategory=log.supercategory,
            predicted_category=log.predicted_category,
            validation_category=log.validation_category,
            confidence=log.confidence,
            validation_confidence=log.validation_confidence,
            reasoning=json.dumps(log.reasoning, ensure_ascii=False),
            metadata=json.dumps(log.metadata, ensure_ascii=False),
            created_at=log.created_at,
        )

        return CategorizationLog.model_validate(dict(result))

    async def find_by_material_id(
        self,
        conn: asyncpg.Connection,
        material_id: str,
    ) -> list[CategorizationLog]:
        """
        Find all log records for a material, newest first.

        Returns:
            list[CategorizationLog]: Records (empty if none found)
        """
        results = await self.queries.find_categorization_logs_by_material_id(
            conn,
            material_id=material_id,
        )

        return [CategorizationLog.model_validate(dict(row)) for row in results]
