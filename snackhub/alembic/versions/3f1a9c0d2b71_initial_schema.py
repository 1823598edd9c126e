"""initial schema: reference data, tenants, catalog, ordering

Revision ID: 3f1a9c0d2b71
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1a9c0d2b71"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.String(26)

FEE_TYPE = sa.Enum("STANDARD", "REMOTE_ISLAND", "JEJU", name="fee_type")
ROLE = sa.Enum("ROOT_ADMIN", "ADMIN", "MEMBER", name="role")
ORDER_REQUEST_STATUS = sa.Enum("PENDING", "APPROVED", "REJECTED", name="order_request_status")
ORDER_STATUS = sa.Enum("PENDING", "PROCESSING", "COMPLETED", "CANCELLED", "REFUNDED", name="order_status")


def _timestamps(*, updated: bool = False) -> list[sa.Column]:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return cols


def upgrade() -> None:
    op.create_table(
        "zipcodes",
        sa.Column("id", ID, primary_key=True),
        sa.Column("postal_code", sa.String(10), nullable=False),
        sa.Column("fee_type", FEE_TYPE, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.UniqueConstraint("postal_code", "address", name="uq_zipcode_postal_address"),
    )
    op.create_index("ix_zipcodes_postal_code", "zipcodes", ["postal_code"])

    op.create_table(
        "companies",
        sa.Column("id", ID, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("business_number", sa.String(32)),
        *_timestamps(),
    )

    op.create_table(
        "company_addresses",
        sa.Column("id", ID, primary_key=True),
        sa.Column("company_id", ID, sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("postal_code", sa.String(10), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("zipcode_id", ID, sa.ForeignKey("zipcodes.id", ondelete="SET NULL")),
    )
    op.create_index("ix_company_addresses_company_id", "company_addresses", ["company_id"])

    op.create_table(
        "categories",
        sa.Column("id", ID, primary_key=True),
        sa.Column("company_id", ID, sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("parent_id", ID, sa.ForeignKey("categories.id", ondelete="CASCADE")),
        sa.Column("name", sa.String(100), nullable=False),
        sa.UniqueConstraint("company_id", "parent_id", "name", name="uq_category_company_parent_name"),
    )
    op.create_index(
        "uq_category_company_root_name",
        "categories",
        ["company_id", "name"],
        unique=True,
        postgresql_where=sa.text("parent_id IS NULL"),
        sqlite_where=sa.text("parent_id IS NULL"),
    )

    op.create_table(
        "products",
        sa.Column("id", ID, primary_key=True),
        sa.Column("company_id", ID, sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("category_id", ID, sa.ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.BigInteger(), nullable=False),
        sa.Column("image_url", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="ck_product_price_nonneg"),
    )
    op.create_index("ix_products_category_id", "products", ["category_id"])

    op.create_table(
        "users",
        sa.Column("id", ID, primary_key=True),
        sa.Column("company_id", ID, sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("password", sa.String(255), nullable=False),
        sa.Column("role", ROLE, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "carts",
        sa.Column("id", ID, primary_key=True),
        sa.Column("user_id", ID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        *_timestamps(updated=True),
    )

    op.create_table(
        "order_requests",
        sa.Column("id", ID, primary_key=True),
        sa.Column("company_id", ID, sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("requester_id", ID, sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", ORDER_REQUEST_STATUS, nullable=False),
        sa.Column("total_amount", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("resolver_id", ID, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
        sa.Column("notes", sa.Text()),
        *_timestamps(updated=True),
        sa.CheckConstraint("total_amount >= 0", name="ck_order_request_total_nonneg"),
    )
    op.create_index("ix_order_requests_requester_id", "order_requests", ["requester_id"])

    op.create_table(
        "order_request_items",
        sa.Column("id", ID, primary_key=True),
        sa.Column(
            "order_request_id",
            ID,
            sa.ForeignKey("order_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", ID, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("price", sa.BigInteger(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("order_request_id", "product_id", name="uq_order_request_item_product"),
        sa.CheckConstraint("quantity > 0", name="ck_order_request_item_qty_pos"),
        sa.CheckConstraint("price >= 0", name="ck_order_request_item_price_nonneg"),
    )

    op.create_table(
        "orders",
        sa.Column("id", ID, primary_key=True),
        sa.Column("company_id", ID, sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("user_id", ID, sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "order_request_id",
            ID,
            sa.ForeignKey("order_requests.id", ondelete="SET NULL"),
            unique=True,
        ),
        sa.Column("status", ORDER_STATUS, nullable=False),
        sa.Column("total_amount", sa.BigInteger(), nullable=False, server_default="0"),
        *_timestamps(updated=True),
        sa.CheckConstraint("total_amount >= 0", name="ck_order_total_nonneg"),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_company_status", "orders", ["company_id", "status"])

    op.create_table(
        "order_items",
        sa.Column("id", ID, primary_key=True),
        sa.Column("order_id", ID, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", ID, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("price", sa.BigInteger(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("order_id", "product_id", name="uq_order_item_product"),
        sa.CheckConstraint("quantity > 0", name="ck_order_item_qty_pos"),
        sa.CheckConstraint("price >= 0", name="ck_order_item_price_nonneg"),
    )


def downgrade() -> None:
    for table in (
        "order_items",
        "orders",
        "order_request_items",
        "order_requests",
        "carts",
        "users",
        "products",
        "categories",
        "company_addresses",
        "companies",
        "zipcodes",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (ORDER_STATUS, ORDER_REQUEST_STATUS, ROLE, FEE_TYPE):
        enum.drop(bind, checkfirst=True)
