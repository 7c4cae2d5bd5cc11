"""Create catalog and stock ledger tables.

Revision ID: a3f9c1d2e4b5
Revises:
Create Date: 2025-06-02 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision = "a3f9c1d2e4b5"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    insp = inspect(bind)
    return bool(insp.has_table(table_name))


def upgrade() -> None:
    if not _table_exists("products"):
        op.create_table(
            "products",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_products_id", "products", ["id"])
        op.create_index("ix_products_name", "products", ["name"], unique=True)

    if not _table_exists("product_variants"):
        op.create_table(
            "product_variants",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
            sa.Column("size", sa.String(length=32), nullable=False),
            sa.Column("color", sa.String(length=64), nullable=False),
            sa.Column("unique_sku", sa.String(length=64), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.UniqueConstraint("unique_sku", name="uq_product_variant_sku"),
        )
        op.create_index("ix_product_variants_id", "product_variants", ["id"])
        op.create_index("ix_product_variants_product", "product_variants", ["product_id"])

    if not _table_exists("locations"):
        op.create_table(
            "locations",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.UniqueConstraint("name", name="uq_location_name"),
        )
        op.create_index("ix_locations_id", "locations", ["id"])

    if not _table_exists("stock_levels"):
        op.create_table(
            "stock_levels",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "product_variant_id",
                sa.Integer(),
                sa.ForeignKey("product_variants.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="CASCADE"), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.UniqueConstraint("product_variant_id", "location_id", name="uq_stock_level_variant_location"),
        )
        op.create_index("ix_stock_levels_id", "stock_levels", ["id"])
        op.create_index("ix_stock_levels_product_variant_id", "stock_levels", ["product_variant_id"])
        op.create_index("ix_stock_levels_location", "stock_levels", ["location_id"])

    if not _table_exists("stock_movements"):
        op.create_table(
            "stock_movements",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "product_variant_id",
                sa.Integer(),
                sa.ForeignKey("product_variants.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="CASCADE"), nullable=False),
            sa.Column("quantity_change", sa.Integer(), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint("quantity_change <> 0", name="ck_stock_movement_nonzero"),
        )
        op.create_index("ix_stock_movements_id", "stock_movements", ["id"])
        op.create_index("ix_stock_movements_key", "stock_movements", ["product_variant_id", "location_id"])
        op.create_index("ix_stock_movements_created", "stock_movements", ["created_at"])


def downgrade() -> None:
    for table_name in ("stock_movements", "stock_levels", "locations", "product_variants", "products"):
        if _table_exists(table_name):
            op.drop_table(table_name)
