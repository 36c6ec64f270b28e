"""create_order_tables

Revision ID: 3c1f0a7d92be
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c1f0a7d92be"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "wix_grants",
        sa.Column("instance_id", sa.String(255), primary_key=True),
        sa.Column("refresh_token", sa.Text(), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "states",
        sa.Column("state", sa.String(64), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "addresses",
        sa.Column("address_id", sa.String(36), primary_key=True),
        sa.Column("city", sa.String(255)),
        sa.Column("zip_code", sa.String(64)),
        sa.Column("country", sa.String(64)),
        sa.Column("address_line_1", sa.String(512), nullable=False),
        sa.Column("address_line_2", sa.String(512)),
    )
    op.create_table(
        "orders",
        sa.Column("order_id", sa.String(36), primary_key=True),
        sa.Column("provider_order_id", sa.String(255), nullable=False, unique=True),
        sa.Column("provider_order_number", sa.BigInteger(), nullable=False),
        sa.Column("order_date", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("weight_unit", sa.String(32), nullable=False),
        sa.Column("payment_status", sa.String(64), nullable=False),
        sa.Column("fulfillment_status", sa.String(64), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("weight", sa.Numeric(12, 3), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False),
        sa.Column("buyer_email", sa.String(255)),
        sa.Column("buyer_name", sa.String(255)),
        sa.Column("buyer_phone", sa.String(64)),
        sa.Column(
            "billing_address_id",
            sa.String(36),
            sa.ForeignKey("addresses.address_id"),
            nullable=False,
        ),
        sa.Column(
            "shipping_address_id",
            sa.String(36),
            sa.ForeignKey("addresses.address_id"),
            nullable=False,
        ),
    )
    op.create_table(
        "order_items",
        sa.Column("order_item_id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.order_id"), nullable=False),
        sa.Column("name", sa.String(512), nullable=False),
        sa.Column("sku", sa.String(255)),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])
    op.create_table(
        "ingestion_runs",
        sa.Column("run_id", sa.String(36), primary_key=True),
        sa.Column("instance_id", sa.String(255), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("finished_at", sa.DateTime()),
        sa.Column("pages_fetched", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("orders_seen", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("orders_written", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("orders_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("orders_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error", sa.Text()),
    )
    op.create_index("ix_ingestion_runs_instance_id", "ingestion_runs", ["instance_id"])


def downgrade() -> None:
    op.drop_index("ix_ingestion_runs_instance_id", table_name="ingestion_runs")
    op.drop_table("ingestion_runs")
    op.drop_index("ix_order_items_order_id", table_name="order_items")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("addresses")
    op.drop_table("states")
    op.drop_table("wix_grants")
