"""In-memory taxonomy store for dry runs and tests."""
import asyncio
from itertools import count
from typing import TypeVar

from loguru import logger

from src.material_classification.response_parser import normalize_name
from src.taxonomy.models import (
    Alliance,
    Category,
    City,
    Country,
    CountryWithCities,
    Tag,
    TaxonomyNode,
    TaxonomySnapshot,
    Theme,
)
from .models.domain import CategorizationLog

NodeT = TypeVar("NodeT", bound=TaxonomyNode)


class InMemoryTaxonomyStore:
    """
    In-memory implementation of TaxonomyStore and ModelPreferenceStore.

    Mirrors the database uniqueness rules: named nodes are unique by
    normalized name per kind, cities by (country_id, normalized name).
    create_* returns the existing entity instead of creating a duplicate.

    Thread Safety: Uses asyncio.Lock for async context
    Concurrency: Designed for single-process asyncio deployment
    """

    def __init__(
        self,
        snapshot: TaxonomySnapshot | None = None,
        default_model: str | None = None,
    ):
        """
        Initialize store, optionally seeded from an existing snapshot.

        Args:
            snapshot: Taxonomy to start from (ids are kept as given)
            default_model: Initial persisted default model
        """
        snapshot = snapshot or TaxonomySnapshot()

        self._categories: dict[str, Category] = {
            normalize_name(c.name): c for c in snapshot.categories
        }
        self._themes: dict[str, Theme] = {normalize_name(t.name): t for t in snapshot.themes}
        self._tags: dict[str, Tag] = {normalize_name(t.name): t for t in snapshot.tags}
        self._alliances: dict[str, Alliance] = {
            normalize_name(a.name): a for a in snapshot.alliances
        }
        self._countries: dict[str, Country] = {}
        self._cities: dict[tuple[int, str], City] = {}
        for country in snapshot.countries:
            self._countries[normalize_name(country.name)] = Country(
                **country.model_dump(exclude={"cities"})
            )
            for city in country.cities:
                self._cities[(city.country_id, normalize_name(city.name))] = city

        self.logs: list[CategorizationLog] = []
        self.default_model = default_model
        self._lock = asyncio.Lock()

        used_ids = [
            entity.id
            for entity in [
                *self._categories.values(),
                *self._themes.values(),
                *self._tags.values(),
                *self._alliances.values(),
                *self._countries.values(),
                *self._cities.values(),
            ]
            if entity.id is not None
        ]
        self._ids = count(max(used_ids, default=0) + 1)

        logger.info(
            f"Initialized InMemoryTaxonomyStore "
            f"({len(self._categories)} categories, {len(self._countries)} countries, "
            f"{len(self._cities)} cities, {len(self._themes)} themes, "
            f"{len(self._tags)} tags, {len(self._alliances)} alliances)"
        )

    async def list_taxonomy(self) -> TaxonomySnapshot:
        async with self._lock:
            return TaxonomySnapshot(
                categories=list(self._categories.values()),
                countries=[
                    CountryWithCities(
                        **country.model_dump(),
                        cities=[
                            city for (country_id, _), city in self._cities.items()
                            if country_id == country.id
                        ],
                    )
                    for country in self._countries.values()
                ],
                themes=list(self._themes.values()),
                tags=list(self._tags.values()),
                alliances=list(self._alliances.values()),
            )

    async def _create_named(
        self, nodes: dict[str, NodeT], model: type[NodeT], name: str
    ) -> NodeT:
        key = normalize_name(name)
        async with self._lock:
            if key not in nodes:
                nodes[key] = model(id=next(self._ids), name=name)
                logger.debug(f"Store CREATE {model.__name__.lower()}: '{name}'")
            return nodes[key]

    async def create_category(self, name: str) -> Category:
        return await self._create_named(self._categories, Category, name)

    async def create_country(self, name: str) -> Country:
        return await self._create_named(self._countries, Country, name)

    async def create_theme(self, name: str) -> Theme:
        return await self._create_named(self._themes, Theme, name)

    async def create_tag(self, name: str) -> Tag:
        return await self._create_named(self._tags, Tag, name)

    async def create_alliance(self, name: str) -> Alliance:
        return await self._create_named(self._alliances, Alliance, name)

    async def create_city(self, name: str, country_id: int) -> City:
        key = (country_id, normalize_name(name))
        async with self._lock:
            if not any(c.id == country_id for c in self._countries.values()):
                raise ValueError(f"Unknown country_id={country_id} for city '{name}'")
            if key not in self._cities:
                self._cities[key] = City(id=next(self._ids), name=name, country_id=country_id)
                logger.debug(f"Store CREATE city: '{name}' (country_id={country_id})")
            return self._cities[key]

    async def append_categorization_log(
        self, record: CategorizationLog
    ) -> CategorizationLog:
        async with self._lock:
            stored = record.model_copy(update={"id": len(self.logs) + 1})
            self.logs.append(stored)
            return stored

    async def get_default_model(self) -> str | None:
        return self.default_model

    async def set_default_model(self, model: str) -> None:
        self.default_model = model
