"""create categories, countries and cities tables

Revision ID: 3b1f6c2d9a41
Revises: 
Create Date: 2026-10-18 10:00:12.418305

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b1f6c2d9a41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Create categories table
    op.execute("""
        CREATE TABLE categories (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            normalized_name TEXT NOT NULL,
            is_hidden BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("ALTER TABLE categories ADD CONSTRAINT uq_categories_normalized_name UNIQUE (normalized_name)")

    # Create countries table
    op.execute("""
        CREATE TABLE countries (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            normalized_name TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("ALTER TABLE countries ADD CONSTRAINT uq_countries_normalized_name UNIQUE (normalized_name)")

    # Create cities table; a city always belongs to a country
    op.execute("""
        CREATE TABLE cities (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            normalized_name TEXT NOT NULL,
            country_id INTEGER NOT NULL REFERENCES countries(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("ALTER TABLE cities ADD CONSTRAINT uq_cities_country_normalized_name UNIQUE (country_id, normalized_name)")
    op.execute("CREATE INDEX idx_cities_normalized_name ON cities(normalized_name)")


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DROP INDEX IF EXISTS idx_cities_normalized_name")
    op.execute("DROP TABLE IF EXISTS cities")
    op.execute("DROP TABLE IF EXISTS countries")
    op.execute("DROP TABLE IF EXISTS categories")
