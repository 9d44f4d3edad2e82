"""Base protocols for the taxonomy persistence layer."""
from typing import Protocol

from src.taxonomy.models import (
    Alliance,
    Category,
    City,
    Country,
    Tag,
    TaxonomySnapshot,
    Theme,
)
from .models.domain import CategorizationLog


class TaxonomyStore(Protocol):
    """
    Protocol for taxonomy persistence using structural subtyping.

    This Protocol defines what the classification pipeline needs from
    storage: reading the taxonomy, creating taxonomy nodes on demand and
    appending audit records. Any class that implements these methods can be
    used as a TaxonomyStore, including in-memory fakes in tests.

    Create semantics:
    - create_* is idempotent with respect to the normalized name. When a
      concurrent insert wins the race, the existing row is returned
      instead of raising a uniqueness violation.
    - create_city always requires a country_id; a city is never orphaned.
    """

    async def list_taxonomy(self) -> TaxonomySnapshot:
        """Return all taxonomy nodes, countries with their nested cities."""
        ...

    async def create_category(self, name: str) -> Category:
        """Create a category, or return the existing one with the same normalized name."""
        ...

    async def create_country(self, name: str) -> Country:
        """Create a country, or return the existing one with the same normalized name."""
        ...

    async def create_theme(self, name: str) -> Theme:
        """Create a theme, or return the existing one with the same normalized name."""
        ...

    async def create_tag(self, name: str) -> Tag:
        """Create a tag, or return the existing one with the same normalized name."""
        ...

    async def create_alliance(self, name: str) -> Alliance:
        """Create an alliance, or return the existing one with the same normalized name."""
        ...

    async def create_city(self, name: str, country_id: int) -> City:
        """Create a city under country_id, or return the existing one."""
        ...

    async def append_categorization_log(
        self, record: CategorizationLog
    ) -> CategorizationLog:
        """Append an audit record. Records are never updated afterwards."""
        ...


class ModelPreferenceStore(Protocol):
    """Protocol for persisting the default LLM model between runs."""

    async def get_default_model(self) -> str | None:
        """Return the persisted default model, if any."""
        ...

    async def set_default_model(self, model: str) -> None:
        """Persist model as the new default."""
        ...
