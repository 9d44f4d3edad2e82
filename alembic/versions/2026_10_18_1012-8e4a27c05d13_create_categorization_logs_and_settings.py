"""create categorization_logs and settings tables

Revision ID: 8e4a27c05d13
Revises: 3b1f6c2d9a41
Create Date: 2026-10-18 10:12:47.905114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e4a27c05d13'
down_revision: Union[str, Sequence[str], None] = '3b1f6c2d9a41'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Append-only audit log, one row per classification attempt
    op.execute("""
        CREATE TABLE categorization_logs (
            id SERIAL PRIMARY KEY,
            material_id TEXT NOT NULL,
            supercategory TEXT,
            predicted_category TEXT,
            validation_category TEXT,
            confidence DOUBLE PRECISION CHECK (confidence >= 0.0 AND confidence <= 1.0),
            validation_confidence DOUBLE PRECISION CHECK (validation_confidence >= 0.0 AND validation_confidence <= 1.0),
            reasoning JSONB NOT NULL DEFAULT '{}'::jsonb,
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_categorization_logs_material_id ON categorization_logs(material_id)")
    op.execute("CREATE INDEX idx_categorization_logs_created_at ON categorization_logs(created_at)")

    # Key-value settings (persisted default model)
    op.execute("""
        CREATE TABLE settings (
            id SERIAL PRIMARY KEY,
            key TEXT NOT NULL,
            value TEXT,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("ALTER TABLE settings ADD CONSTRAINT uq_settings_key UNIQUE (key)")


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DROP TABLE IF EXISTS settings")
    op.execute("DROP INDEX IF EXISTS idx_categorization_logs_created_at")
    op.execute("DROP INDEX IF EXISTS idx_categorization_logs_material_id")
    op.execute("DROP TABLE IF EXISTS categorization_logs")
