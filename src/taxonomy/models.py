"""Taxonomy entity models shared by the resolver and the persistence layer."""
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaxonomyNode(BaseModel):
    """
    Named node of the taxonomy graph.

    Name uniqueness is enforced on normalized_name (NFKC, trimmed,
    lowercased) by the database, per table.
    """
    id: int | None = None
    name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(from_attributes=True)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate that name is not empty."""
        if not v or not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()


class Category(TaxonomyNode):
    """Open-vocabulary topical label. Maps to the 'categories' database table."""
    is_hidden: bool = False


class Theme(TaxonomyNode):
    """Main storyline or issue of a material. Maps to the 'themes' table."""


class Tag(TaxonomyNode):
    """Free keyword describing one aspect of a material. Maps to the 'tags' table."""


class Alliance(TaxonomyNode):
    """Political union, bloc or alliance. Maps to the 'alliances' table."""


class Country(TaxonomyNode):
    """Country node of the taxonomy graph. Maps to the 'countries' table."""


class City(TaxonomyNode):
    """
    City belonging to exactly one country.

    Maps to the 'cities' database table. country_id is required: a city is
    never stored without its owning country.
    """
    country_id: int


class CountryWithCities(Country):
    """Country together with the cities it owns (may be empty)."""
    cities: list[City] = []


class TaxonomySnapshot(BaseModel):
    """
    Point-in-time copy of the taxonomy used by one classification run.

    Each run receives its own snapshot, so concurrent runs never share
    mutable taxonomy state. Entities created during a run live in the
    resolver's overlay, not here.

    Example:
        >>> snapshot = TaxonomySnapshot(
        ...     categories=[Category(id=1, name="Economy")],
        ...     countries=[
        ...         CountryWithCities(
        ...             id=5,
        ...             name="Ukraine",
        ...             cities=[City(id=10, name="Kyiv", country_id=5)],
        ...         )
        ...     ],
        ...     alliances=[Alliance(id=40, name="NATO")],
        ... )
    """
    categories: list[Category] = []
    countries: list[CountryWithCities] = []
    themes: list[Theme] = []
    tags: list[Tag] = []
    alliances: list[Alliance] = []

    model_config = ConfigDict(from_attributes=True, frozen=True)


class TaxonomyMutation(BaseModel):
    """
    Material ↔ taxonomy association changes produced by a classification run.

    A field left as None means "leave the association untouched"; an empty
    list means "clear it". The caller applies the payload against its
    association store.
    """
    category_ids: list[int] | None = None
    theme_ids: list[int] | None = None
    tag_ids: list[int] | None = None
    alliance_ids: list[int] | None = None
    country_ids: list[int] | None = None
    city_ids: list[int] | None = None

    model_config = ConfigDict(from_attributes=True)

    def is_empty(self) -> bool:
        """True when no association should be touched."""
        return all(value is None for value in self.model_dump().values())
