"""
Taxonomy persistence service layer.

Provides the storage operations the classification pipeline depends on:
taxonomy snapshot reads, create-if-missing taxonomy writes, audit log
appends and default model persistence.
"""
import logging
from collections import defaultdict

import asyncpg
from asyncpg import UniqueViolationError

from config.database import DatabaseConfig, db_config
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
from .repositories.categorization_log_repository import CategorizationLogRepository
from .repositories.category_repository import CategoryRepository
from .repositories.city_repository import CityRepository
from .repositories.country_repository import CountryRepository
from .repositories.label_repository import (
    AllianceRepository,
    LabelRepository,
    TagRepository,
    ThemeRepository,
)
from .repositories.settings_repository import SettingsRepository


logger = logging.getLogger(__name__)

DEFAULT_MODEL_SETTING_KEY = "llm_model"


class PostgresTaxonomyStore:
    """
    PostgreSQL implementation of TaxonomyStore Protocol.

    The store is bound to one connection for the duration of a
    classification run; the caller manages the connection lifecycle.

    Concurrent runs may race to create the same country, city or category.
    The database uniqueness constraint on normalized names is the
    authority: each insert runs inside a savepoint, and a uniqueness
    violation is answered by re-querying and returning the existing row.

    Example:
        >>> async with db_config.connection() as conn:
        ...     store = PostgresTaxonomyStore(conn)
        ...     snapshot = await store.list_taxonomy()
        ...     country = await store.create_country("Ukraine")
    """

    def __init__(
        self,
        conn: asyncpg.Connection,
        category_repo: CategoryRepository | None = None,
        country_repo: CountryRepository | None = None,
        city_repo: CityRepository | None = None,
        log_repo: CategorizationLogRepository | None = None,
        theme_repo: ThemeRepository | None = None,
        tag_repo: TagRepository | None = None,
        alliance_repo: AllianceRepository | None = None,
    ):
        """
        Initialize store with a connection and repository dependencies.

        Args:
            conn: Database connection (caller manages lifecycle)
            category_repo: Category repository (default: creates new instance)
            country_repo: Country repository (default: creates new instance)
            city_repo: City repository (default: creates new instance)
            log_repo: Categorization log repository (default: creates new instance)
            theme_repo: Theme repository (default: creates new instance)
            tag_repo: Tag repository (default: creates new instance)
            alliance_repo: Alliance repository (default: creates new instance)
        """
        self.conn = conn
        self.category_repo = category_repo or CategoryRepository()
        self.country_repo = country_repo or CountryRepository()
        self.city_repo = city_repo or CityRepository()
        self.log_repo = log_repo or CategorizationLogRepository()
        self.theme_repo = theme_repo or ThemeRepository()
        self.tag_repo = tag_repo or TagRepository()
        self.alliance_repo = alliance_repo or AllianceRepository()

    async def list_taxonomy(self) -> TaxonomySnapshot:
        """
        Load every taxonomy node, countries with their nested cities.

        Returns:
            TaxonomySnapshot: Categories, labels and countries, each country
            carrying its cities (possibly none)
        """
        categories = await self.category_repo.list_categories(self.conn)
        countries = await self.country_repo.list_countries(self.conn)
        cities = await self.city_repo.list_cities(self.conn)
        themes = await self.theme_repo.list_all(self.conn)
        tags = await self.tag_repo.list_all(self.conn)
        alliances = await self.alliance_repo.list_all(self.conn)

        cities_by_country: dict[int, list[City]] = defaultdict(list)
        for city in cities:
            cities_by_country[city.country_id].append(city)

        snapshot = TaxonomySnapshot(
            categories=categories,
            countries=[
                CountryWithCities(
                    **country.model_dump(),
                    cities=cities_by_country.get(country.id, []),  # type: ignore
                )
                for country in countries
            ],
            themes=themes,
            tags=tags,
            alliances=alliances,
        )
        logger.info(
            f"Loaded taxonomy: {len(categories)} categories, "
            f"{len(countries)} countries, {len(cities)} cities, "
            f"{len(themes)} themes, {len(tags)} tags, {len(alliances)} alliances"
        )
        return snapshot

    async def create_category(self, name: str) -> Category:
        """Create a category, or return the existing one with the same normalized name."""
        existing = await self.category_repo.find_by_name(self.conn, name)
        if existing:
            return existing

        try:
            async with self.conn.transaction():
                created = await self.category_repo.insert_category(
                    self.conn, Category(name=name)
                )
        except UniqueViolationError:
            logger.info(f"Category '{name}' created concurrently, re-querying")
            existing = await self.category_repo.find_by_name(self.conn, name)
            if existing is None:
                raise
            return existing

        logger.info(f"Created new category: name='{created.name}' (id={created.id})")
        return created

    async def create_country(self, name: str) -> Country:
        """Create a country, or return the existing one with the same normalized name."""
        existing = await self.country_repo.find_by_name(self.conn, name)
        if existing:
            return existing

        try:
            async with self.conn.transaction():
                created = await self.country_repo.insert_country(
                    self.conn, Country(name=name)
                )
        except UniqueViolationError:
            logger.info(f"Country '{name}' created concurrently, re-querying")
            existing = await self.country_repo.find_by_name(self.conn, name)
            if existing is None:
                raise
            return existing

        logger.info(f"Created new country: name='{created.name}' (id={created.id})")
        return created

    async def _create_label(self, repo: LabelRepository, name: str) -> TaxonomyNode:
        """Find-or-insert a theme, tag or alliance by normalized name."""
        existing = await repo.find_by_name(self.conn, name)
        if existing:
            return existing

        try:
            async with self.conn.transaction():
                created = await repo.insert(self.conn, repo.model(name=name))
        except UniqueViolationError:
            logger.info(f"{repo.entity.capitalize()} '{name}' created concurrently, re-querying")
            existing = await repo.find_by_name(self.conn, name)
            if existing is None:
                raise
            return existing

        logger.info(f"Created new {repo.entity}: name='{created.name}' (id={created.id})")
        return created

    async def create_theme(self, name: str) -> Theme:
        """Create a theme, or return the existing one with the same normalized name."""
        return await self._create_label(self.theme_repo, name)  # type: ignore[return-value]

    async def create_tag(self, name: str) -> Tag:
        """Create a tag, or return the existing one with the same normalized name."""
        return await self._create_label(self.tag_repo, name)  # type: ignore[return-value]

    async def create_alliance(self, name: str) -> Alliance:
        """Create an alliance, or return the existing one with the same normalized name."""
        return await self._create_label(self.alliance_repo, name)  # type: ignore[return-value]

    async def create_city(self, name: str, country_id: int) -> City:
        """
        Create a city under country_id, or return the existing one.

        Raises:
            asyncpg.ForeignKeyViolationError: If country_id does not exist
        """
        existing = await self.city_repo.find_by_name(self.conn, name, country_id)
        if existing:
            return existing

        try:
            async with self.conn.transaction():
                created = await self.city_repo.insert_city(
                    self.conn, City(name=name, country_id=country_id)
                )
        except UniqueViolationError:
            logger.info(f"City '{name}' created concurrently, re-querying")
            existing = await self.city_repo.find_by_name(self.conn, name, country_id)
            if existing is None:
                raise
            return existing

        logger.info(
            f"Created new city: name='{created.name}' "
            f"(id={created.id}, country_id={country_id})"
        )
        return created

    async def append_categorization_log(
        self, record: CategorizationLog
    ) -> CategorizationLog:
        """Append an audit record for one classification attempt."""
        stored = await self.log_repo.insert_log(self.conn, record)
        logger.info(
            f"Categorization log stored (id={stored.id}, material={stored.material_id})"
        )
        return stored


class PostgresModelPreferenceStore:
    """
    PostgreSQL implementation of ModelPreferenceStore Protocol.

    The model gateway is shared across runs, so this store acquires a
    pooled connection per call instead of holding one.
    """

    def __init__(
        self,
        database: DatabaseConfig | None = None,
        settings_repo: SettingsRepository | None = None,
        key: str = DEFAULT_MODEL_SETTING_KEY,
    ):
        self.database = database or db_config
        self.settings_repo = settings_repo or SettingsRepository()
        self.key = key

    async def get_default_model(self) -> str | None:
        async with self.database.connection() as conn:
            setting = await self.settings_repo.get_setting(conn, self.key)
        return setting.value if setting else None

    async def set_default_model(self, model: str) -> None:
        async with self.database.connection() as conn:
            await self.settings_repo.set_setting(conn, self.key, model)
        logger.info(f"Default model persisted: {model}")
