"""Repository for country database operations."""
from pathlib import Path

import aiosql
import asyncpg

from src.material_classification.response_parser import normalize_name
from src.taxonomy.models import Country


class CountryRepository:
    """Repository for country database operations using aiosql."""

    def __init__(self):
        """Initialize the repository and load SQL queries."""
        queries_path = Path(__file__).parent.parent / "queries"
        self.queries = aiosql.from_path(str(queries_path), "asyncpg")

    async def list_countries(self, conn: asyncpg.Connection) -> list[Country]:
        """Return all countries ordered by name."""
        results = await self.queries.list_countries(conn)
        return [Country.model_validate(dict(row)) for row in results]

    async def find_by_name(
        self,
        conn: asyncpg.Connection,
        name: str,
    ) -> Country | None:
        """
        Find country by name using normalized comparison.

        Args:
            conn: Database connection to use for the query
            name: Country name in any casing/spacing

        Returns:
            Country | None: Country if found, None otherwise
        """
        result = await self.queries.find_country_by_normalized_name(
            conn,
            normalized_name=normalize_name(name),
        )

        if result is None:
            return None

        return Country.model_validate(dict(result))

    async def insert_country(
        self,
        conn: asyncpg.Connection,
        country: Country,
    ) -> Country:
        """
        Insert new country.

        Raises:
            asyncpg.UniqueViolationError: If the normalized name already exists
        """
        result = await self.queries.insert_country(
            conn,
            name=country.name,
            normalized_name=normalize_name(country.name),
            created_at=country.created_at,
        )

        return Country.model_validate(dict(result))
