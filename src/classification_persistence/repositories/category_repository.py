"""Repository for category database operations."""
from pathlib import Path

import aiosql
import asyncpg

from src.material_classification.response_parser import normalize_name
from src.taxonomy.models import Category


class CategoryRepository:
    """Repository for category database operations using aiosql."""

    def __init__(self):
        """Initialize the repository and load SQL queries."""
        queries_path = Path(__file__).parent.parent / "queries"
        self.queries = aiosql.from_path(str(queries_path), "asyncpg")

    async def list_categories(self, conn: asyncpg.Connection) -> list[Category]:
        """
        Return all categories ordered by name.

        Args:
            conn: Database connection to use for the query

        Returns:
            list[Category]: All categories, hidden ones included
        """
        results = await self.queries.list_categories(conn)
        return [Category.model_validate(dict(row)) for row in results]

    async def find_by_name(
        self,
        conn: asyncpg.Connection,
        name: str,
    ) -> Category | None:
        """
        Find category by name using normalized comparison.

        Args:
            conn: Database connection to use for the query
            name: Category name in any casing/spacing

        Returns:
            Category | None: Category if found, None otherwise
        """
        result = await self.queries.find_category_by_normalized_name(
            conn,
            normalized_name=normalize_name(name),
        )

        if result is None:
            return None

        return Category.model_validate(dict(result))

    async def insert_category(
        self,
        conn: asyncpg.Connection,
        category: Category,
    ) -> Category:
        """
        Insert new category.

        Args:
            conn: Database connection to use for the query
            category: Category to insert (id will be ignored)

        Returns:
            Category: Created category with database-generated id

        Raises:
            asyncpg.UniqueViolationError: If the normalized name already exists
        """
        result = await self.queries.insert_category(
            conn,
            name=category.name,
            normalized_name=normalize_name(category.name),
            is_hidden=category.is_hidden,
            created_at=category.created_at,
        )

        return Category.model_validate(dict(result))
