"""create catalog_entries table

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2026-10-18 09:14:02.511306

One key-value row per catalog document (glass types, processing options,
templates, tier labels, pricing tiers, customer pricing, suppliers).
Idempotent: skips creation when create_all() already made the table.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table_name):
    """Check if a table exists."""
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    if not _table_exists("catalog_entries"):
        op.create_table(
            "catalog_entries",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("key", sa.String(), nullable=False),
            sa.Column("value_json", sa.JSON(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(op.f("ix_catalog_entries_id"), "catalog_entries", ["id"], unique=False)
        op.create_index(op.f("ix_catalog_entries_key"), "catalog_entries", ["key"], unique=True)


def downgrade() -> None:
    op.drop_index(op.f("ix_catalog_entries_key"), table_name="catalog_entries")
    op.drop_index(op.f("ix_catalog_entries_id"), table_name="catalog_entries")
    op.drop_table("catalog_entries")
