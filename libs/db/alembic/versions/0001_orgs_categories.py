# ruff: noqa: I001
"""Organizations and the seeded ecommerce chart of accounts.

Revision ID: 0001_orgs_categories
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from categorizer.taxonomy import ECOMMERCE_TAXONOMY


# revision identifiers, used by Alembic.
revision: str = "0001_orgs_categories"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "orgs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("industry", sa.String(), nullable=True),
    )

    categories = op.create_table(
        "categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("slug", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("parent_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("is_pnl", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("include_in_prompt", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_categories_parent_id", "categories", ["parent_id"], unique=False)

    # Parents first so the self-referential FK holds row by row.
    ordered = sorted(ECOMMERCE_TAXONOMY, key=lambda n: n.parent_id is not None)
    op.bulk_insert(
        categories,
        [
            {
                "id": n.id,
                "slug": n.slug,
                "name": n.name,
                "type": n.type,
                "parent_id": n.parent_id,
                "is_pnl": n.is_pnl,
                "include_in_prompt": n.include_in_prompt,
            }
            for n in ordered
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_categories_parent_id", table_name="categories")
    op.drop_table("categories")
    op.drop_table("orgs")
