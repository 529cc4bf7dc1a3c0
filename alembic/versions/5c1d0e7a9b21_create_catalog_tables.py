"""create catalog tables

Revision ID: 5c1d0e7a9b21
Revises:
Create Date: 2026-10-16 09:12:07.418233

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c1d0e7a9b21"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("landmark", sa.String(length=255), nullable=True),
        sa.Column("photo_urls", sa.JSON(), nullable=True),
        sa.Column("vendor_type", sa.String(length=20), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_vendors_id"), "vendors", ["id"], unique=False)

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("vendor_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("visibility", sa.Boolean(), nullable=False),
        sa.Column("photo_url", sa.String(length=1000), nullable=True),
        sa.Column("deletion_started_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["vendor_id"], ["vendors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_categories_id"), "categories", ["id"], unique=False)
    op.create_index(op.f("ix_categories_vendor_id"), "categories", ["vendor_id"], unique=False)
    op.create_index(
        op.f("ix_categories_deletion_started_at"),
        "categories",
        ["deletion_started_at"],
        unique=False,
    )

    op.create_table(
        "food_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("seller_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("photo_urls", sa.JSON(), nullable=False),
        sa.Column("rating", sa.Float(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["seller_id"], ["vendors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_food_items_id"), "food_items", ["id"], unique=False)
    op.create_index(op.f("ix_food_items_seller_id"), "food_items", ["seller_id"], unique=False)

    op.create_table(
        "category_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("food_item_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["food_item_id"], ["food_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("category_id", "food_item_id", name="uq_category_items_placement"),
    )
    op.create_index(op.f("ix_category_items_id"), "category_items", ["id"], unique=False)
    op.create_index(
        op.f("ix_category_items_category_id"), "category_items", ["category_id"], unique=False
    )
    op.create_index(
        op.f("ix_category_items_food_item_id"), "category_items", ["food_item_id"], unique=False
    )


def downgrade() -> None:
    op.drop_table("category_items")
    op.drop_table("food_items")
    op.drop_table("categories")
    op.drop_table("vendors")
