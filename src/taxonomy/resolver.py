"""Reconciles model-supplied taxonomy names against the taxonomy graph."""
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger

from src.classification_persistence.base import TaxonomyStore
from src.material_classification.response_parser import (
    normalize_name,
    sanitize_string,
    sanitize_string_list,
)
from .models import (
    Alliance,
    Category,
    City,
    Country,
    Tag,
    TaxonomyMutation,
    TaxonomyNode,
    TaxonomySnapshot,
    Theme,
)

NodeT = TypeVar("NodeT", bound=TaxonomyNode)

# Reply key → mutation field for the list-valued labels
LABEL_FIELDS = {
    "theme": "theme_ids",
    "tags": "tag_ids",
    "alliances": "alliance_ids",
}


def _index_by_name(nodes: list[NodeT]) -> dict[str, NodeT]:
    index: dict[str, NodeT] = {}
    for node in nodes:
        index.setdefault(normalize_name(node.name), node)
    return index


def _as_name_list(value: Any) -> list[str]:
    """A single name or a list of names, cleaned and deduplicated."""
    if isinstance(value, str):
        value = [value]
    return sanitize_string_list(value)


class TaxonomyResolver:
    """
    Per-run resolver over an immutable taxonomy snapshot plus a local overlay.

    Lookups compare normalized names (NFKC, trimmed, lowercased). On a miss
    the entity is created through the TaxonomyStore and recorded in the
    overlay, so a second lookup in the same run reuses it without another
    store call. The snapshot itself is never modified.

    City rules:
    - A city is only resolved in a country context; a city that matches
      nothing and has no country hint is dropped, never created orphaned.
    - When an existing city matches, its own country is authoritative and
      overrides the hint.

    Store errors propagate to the caller; nothing is written for the
    material here, the resolver only returns a TaxonomyMutation.

    Example:
        >>> resolver = TaxonomyResolver(snapshot, store)
        >>> mutation = await resolver.resolve_taxonomy(
        ...     {"country": "Ukraine", "city": "Kyiv", "tags": ["inflation"]}
        ... )
        >>> mutation.country_ids, mutation.city_ids, mutation.tag_ids
        ([5], [10], [42])
    """

    def __init__(self, snapshot: TaxonomySnapshot, store: TaxonomyStore):
        self.snapshot = snapshot
        self.store = store

        self._categories = _index_by_name(snapshot.categories)
        self._countries: dict[str, Country] = _index_by_name(snapshot.countries)  # type: ignore[arg-type]
        self._themes = _index_by_name(snapshot.themes)
        self._tags = _index_by_name(snapshot.tags)
        self._alliances = _index_by_name(snapshot.alliances)

        self._snapshot_cities: list[City] = [
            city for country in snapshot.countries for city in country.cities
        ]

        # Entities created during this run
        self.created_categories: dict[str, Category] = {}
        self.created_countries: dict[str, Country] = {}
        self.created_themes: dict[str, Theme] = {}
        self.created_tags: dict[str, Tag] = {}
        self.created_alliances: dict[str, Alliance] = {}
        self.created_cities: list[City] = []

    async def _resolve_node(
        self,
        kind: str,
        name: str | None,
        known: dict[str, NodeT],
        created: dict[str, NodeT],
        create: Callable[[str], Awaitable[NodeT]],
    ) -> NodeT | None:
        normalized = normalize_name(name)
        if not normalized:
            return None

        existing = known.get(normalized) or created.get(normalized)
        if existing:
            return existing

        node = await create(sanitize_string(name))
        created[normalized] = node
        logger.info(f"{kind.capitalize()} '{node.name}' added to taxonomy (id={node.id})")
        return node

    async def resolve_category(self, name: str | None) -> Category | None:
        """Return the category with this normalized name, creating it if missing."""
        return await self._resolve_node(
            "category", name, self._categories, self.created_categories,
            self.store.create_category,
        )

    async def resolve_country(self, name: str | None) -> Country | None:
        """
        Return the country with this normalized name, creating it if missing.

        Examples:
            resolve_country("Ukraine") and resolve_country(" ukraine ")
            return the same entity.
        """
        return await self._resolve_node(
            "country", name, self._countries, self.created_countries,
            self.store.create_country,
        )

    async def resolve_theme(self, name: str | None) -> Theme | None:
        """Return the theme with this normalized name, creating it if missing."""
        return await self._resolve_node(
            "theme", name, self._themes, self.created_themes, self.store.create_theme,
        )

    async def resolve_tag(self, name: str | None) -> Tag | None:
        """Return the tag with this normalized name, creating it if missing."""
        return await self._resolve_node(
            "tag", name, self._tags, self.created_tags, self.store.create_tag,
        )

    async def resolve_alliance(self, name: str | None) -> Alliance | None:
        """Return the alliance with this normalized name, creating it if missing."""
        return await self._resolve_node(
            "alliance", name, self._alliances, self.created_alliances,
            self.store.create_alliance,
        )

    def _find_country(self, name: str | None) -> Country | None:
        normalized = normalize_name(name)
        return self._countries.get(normalized) or self.created_countries.get(normalized)

    def _find_city(self, name: str, country_id_hint: int | None) -> City | None:
        """Existing city by normalized name, preferring the hinted country."""
        normalized = normalize_name(name)
        matches = [
            city for city in self._snapshot_cities + self.created_cities
            if normalize_name(city.name) == normalized
        ]
        if not matches:
            return None

        if country_id_hint is not None:
            city = next(
                (c for c in matches if c.country_id == country_id_hint),
                matches[0],
            )
            if city.country_id != country_id_hint:
                logger.info(
                    f"City '{city.name}' belongs to country_id={city.country_id}, "
                    f"overriding hinted country_id={country_id_hint}"
                )
            return city

        city = matches[0]
        if len({c.country_id for c in matches}) > 1:
            logger.warning(
                f"City '{name}' exists in several countries and no country was "
                f"given, using country_id={city.country_id}"
            )
        return city

    async def resolve_city(
        self,
        name: str | None,
        country_id_hint: int | None = None,
    ) -> City | None:
        """
        Resolve a city name, preferring the hinted country.

        Args:
            name: City name as returned by the model
            country_id_hint: Country the model associated with the city, if any

        Returns:
            Existing or newly created city, or None when the name is empty
            or the city is unknown and no country hint exists
        """
        if not normalize_name(name):
            return None

        existing = self._find_city(name, country_id_hint)  # type: ignore[arg-type]
        if existing:
            return existing

        if country_id_hint is None:
            logger.warning(
                f"City '{name}' cannot be resolved without a country reference, skipping"
            )
            return None

        created = await self.store.create_city(sanitize_string(name), country_id_hint)
        self.created_cities.append(created)
        logger.info(
            f"City '{created.name}' added to taxonomy "
            f"(id={created.id}, country_id={created.country_id})"
        )
        return created

    async def resolve_places(self, payload: dict[str, Any]) -> TaxonomyMutation:
        """
        Turn a model reply's country/city fields into an association mutation.

        Only key presence decides whether an association is touched:
        - "country"/"city" key present with a name → set to the resolved entity
        - key present with null or "" → association cleared (empty list)
        - key absent → field left as None (association untouched)

        A resolved city always brings its own country into country_ids,
        replacing a conflicting country the model named. An existing city is
        looked up before the named country is resolved, so a country that
        would be overridden is never created.

        Raises:
            Exception: Whatever the store raises while creating entities
        """
        has_country = "country" in payload
        has_city = "city" in payload
        country_name = sanitize_string(payload.get("country"))
        city_name = sanitize_string(payload.get("city"))

        country_ids: list[int] = []
        city_ids: list[int] = []
        update_countries = has_country

        city: City | None = None
        if has_city and city_name:
            known_country = self._find_country(country_name)
            city = self._find_city(city_name, known_country.id if known_country else None)

        if city is None:
            country: Country | None = None
            if has_country and country_name:
                country = await self.resolve_country(country_name)
                if country:
                    country_ids.append(country.id)  # type: ignore
            if has_city and city_name:
                city = await self.resolve_city(city_name, country.id if country else None)

        if city:
            city_ids.append(city.id)  # type: ignore
            country_ids = [city.country_id]
            update_countries = True

        mutation = TaxonomyMutation(
            country_ids=country_ids if update_countries else None,
            city_ids=city_ids if has_city else None,
        )
        logger.debug(f"Resolved places {payload} → {mutation}")
        return mutation

    async def resolve_labels(self, payload: dict[str, Any]) -> TaxonomyMutation:
        """
        Turn a model reply's theme/tags/alliances fields into an association mutation.

        Each value may be a single name or a list of names. Key presence
        follows the place rules: a present key sets the association (an
        empty or null value clears it), an absent key leaves it untouched.

        Raises:
            Exception: Whatever the store raises while creating entities
        """
        resolvers = {
            "theme": self.resolve_theme,
            "tags": self.resolve_tag,
            "alliances": self.resolve_alliance,
        }

        fields: dict[str, list[int]] = {}
        for key, field_name in LABEL_FIELDS.items():
            if key not in payload:
                continue
            ids: list[int] = []
            for name in _as_name_list(payload[key]):
                node = await resolvers[key](name)
                if node and node.id not in ids:
                    ids.append(node.id)  # type: ignore
            fields[field_name] = ids

        mutation = TaxonomyMutation(**fields)
        logger.debug(f"Resolved labels → {mutation}")
        return mutation

    async def resolve_taxonomy(self, payload: dict[str, Any]) -> TaxonomyMutation:
        """Resolve labels and places of one reply into a single mutation."""
        labels = await self.resolve_labels(payload)
        places = await self.resolve_places(payload)
        return labels.model_copy(
            update={"country_ids": places.country_ids, "city_ids": places.city_ids}
        )
