"""Repositories for the flat label tables: themes, tags and alliances."""
from pathlib import Path

import aiosql
import asyncpg

from src.material_classification.response_parser import normalize_name
from src.taxonomy.models import Alliance, Tag, TaxonomyNode, Theme


class LabelRepository:
    """
    Repository for a label table using aiosql.

    Label tables share one shape (id, name, normalized_name, created_at),
    so subclasses only name their entity, table and model. Query names
    follow list_<table>, find_<entity>_by_normalized_name, insert_<entity>.
    """

    entity: str
    table: str
    model: type[TaxonomyNode]

    def __init__(self):
        """Initialize the repository and load SQL queries."""
        queries_path = Path(__file__).parent.parent / "queries"
        self.queries = aiosql.from_path(str(queries_path), "asyncpg")

    async def list_all(self, conn: asyncpg.Connection) -> list[TaxonomyNode]:
        """Return all rows ordered by name."""
        results = await getattr(self.queries, f"list_{self.table}")(conn)
        return [self.model.model_validate(dict(row)) for row in results]

    async def find_by_name(
        self,
        conn: asyncpg.Connection,
        name: str,
    ) -> TaxonomyNode | None:
        """
        Find a label by name using normalized comparison.

        Returns:
            The label if found, None otherwise
        """
        result = await getattr(self.queries, f"find_{self.entity}_by_normalized_name")(
            conn,
            normalized_name=normalize_name(name),
        )

        if result is None:
            return None

        return self.model.model_validate(dict(result))

    async def insert(
        self,
        conn: asyncpg.Connection,
        label: TaxonomyNode,
    ) -> TaxonomyNode:
        """
        Insert a new label.

        Raises:
            asyncpg.UniqueViolationError: If the normalized name already exists
        """
        result = await getattr(self.queries, f"insert_{self.entity}")(
            conn,
            name=label.name,
            normalized_name=normalize_name(label.name),
            created_at=label.created_at,
        )

        return self.model.model_validate(dict(result))


class ThemeRepository(LabelRepository):
    entity = "theme"
    table = "themes"
    model = Theme


class TagRepository(LabelRepository):
    entity = "tag"
    table = "tags"
    model = Tag


class AllianceRepository(LabelRepository):
    entity = "alliance"
    table = "alliances"
    model = Alliance
