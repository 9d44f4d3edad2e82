"""
Pytest configuration and fixtures for database testing.

This module provides fixtures for testing database operations using testcontainers
to spin up an isolated PostgreSQL instance for each test session.
"""

import logging
import os
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import asyncpg
import pytest
import pytest_asyncio
from alembic import command
from alembic.config import Config
from testcontainers.postgres import PostgresContainer

from config.database import DatabaseConfig

logger = logging.getLogger(__name__)


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start a PostgreSQL container for the test session.

    Session-scoped: the container is started once and shared across all
    integration tests.
    """
    postgres = PostgresContainer(
        image="postgres:18-alpine",
        username="user",
        password="password",
        dbname="taxonomy_db",
    )

    with postgres:
        logger.info("=" * 60)
        logger.info("Test PostgreSQL Container Started")
        logger.info(f"  URL: {postgres.get_connection_url()}")
        logger.info("=" * 60)

        yield postgres


@pytest.fixture(scope="session")
def test_database_url(postgres_container: PostgresContainer) -> str:
    """
    Database URL of the container in SQLAlchemy async format.

    testcontainers returns postgresql+psycopg2://..., alembic/env.py and
    DatabaseConfig expect postgresql+asyncpg://...
    """
    return postgres_container.get_connection_url().replace(
        "postgresql+psycopg2://", "postgresql+asyncpg://"
    )


@pytest.fixture(scope="session")
def run_migrations(test_database_url: str) -> None:
    """Run all Alembic migrations on the test database."""
    project_root = Path(__file__).parent.parent
    alembic_cfg = Config(str(project_root / "alembic.ini"))

    # env.py reads DATABASE_URL and overrides the ini value
    os.environ["DATABASE_URL"] = test_database_url
    alembic_cfg.set_main_option("sqlalchemy.url", test_database_url)

    command.upgrade(alembic_cfg, "head")


@pytest_asyncio.fixture(scope="session")
async def db_config(
    test_database_url: str, run_migrations: None
) -> AsyncGenerator[DatabaseConfig, None]:
    """DatabaseConfig with an open pool on the migrated test database."""
    config = DatabaseConfig(database_url=test_database_url)
    await config.create_pool(min_size=2, max_size=10)

    try:
        yield config
    finally:
        await config.close_pool()


@pytest_asyncio.fixture
async def db_connection(
    db_config: DatabaseConfig,
) -> AsyncGenerator[asyncpg.Connection, None]:
    """
    Provide a database connection with automatic transaction rollback.

    Each test gets a fresh connection with a transaction that is rolled back
    after the test completes, ensuring test isolation.
    """
    async with db_config.connection() as connection:
        transaction = connection.transaction()
        await transaction.start()

        try:
            yield connection
        finally:
            await transaction.rollback()
