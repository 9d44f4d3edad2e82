"""Repository for city database operations."""
from pathlib import Path

import aiosql
import asyncpg

from src.material_classification.response_parser import normalize_name
from src.taxonomy.models import City


class CityRepository:
    """Repository for city database operations using aiosql."""

    def __init__(self):
        """Initialize the repository and load SQL queries."""
        queries_path = Path(__file__).parent.parent / "queries"
        self.queries = aiosql.from_path(str(queries_path), "asyncpg")

    async def list_cities(self, conn: asyncpg.Connection) -> list[City]:
        """Return all cities ordered by country and name."""
        results = await self.queries.list_cities(conn)
        return [City.model_validate(dict(row)) for row in results]

    async def find_by_name(
        self,
        conn: asyncpg.Connection,
        name: str,
        country_id: int,
    ) -> City | None:
        """
        Find city by name within a country using normalized comparison.

        Args:
            conn: Database connection to use for the query
            name: City name in any casing/spacing
            country_id: Owning country

        Returns:
            City | None: City if found, None otherwise
        """
        result = await self.queries.find_city_by_normalized_name(
            conn,
            country_id=country_id,
            normalized_name=normalize_name(name),
        )

        if result is None:
            return None

        return City.model_validate(dict(result))

    async def insert_city(
        self,
        conn: asyncpg.Connection,
        city: City,
    ) -> City:
        """
        Insert new city under its country.

        Raises:
            asyncpg.UniqueViolationError: If the country already has a city with that name
            asyncpg.ForeignKeyViolationError: If country_id does not exist
        """
        result = await self.queries.insert_city(
            conn,
            name=city.name,
            normalized_name=normalize_name(city.name),
            country_id=city.country_id,
            created_at=city.created_at,
        )

        return City.model_validate(dict(result))
