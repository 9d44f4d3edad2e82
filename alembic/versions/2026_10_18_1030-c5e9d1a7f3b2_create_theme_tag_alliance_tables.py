"""create themes, tags and alliances tables

Revision ID: c5e9d1a7f3b2
Revises: 8e4a27c05d13
Create Date: 2026-10-18 10:30:41.906114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c5e9d1a7f3b2'
down_revision: Union[str, Sequence[str], None] = '8e4a27c05d13'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LABEL_TABLES = ("themes", "tags", "alliances")


def upgrade() -> None:
    """Upgrade schema."""
    # Flat label tables share the categories layout minus is_hidden
    for table in LABEL_TABLES:
        op.execute(f"""
            CREATE TABLE {table} (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                normalized_name TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
        op.execute(f"ALTER TABLE {table} ADD CONSTRAINT uq_{table}_normalized_name UNIQUE (normalized_name)")


def downgrade() -> None:
    """Downgrade schema."""
    for table in reversed(LABEL_TABLES):
        op.execute(f"DROP TABLE IF EXISTS {table}")
