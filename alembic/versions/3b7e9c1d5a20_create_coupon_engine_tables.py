"""Create coupons, coupon_products, coupon_usage and customer_discounts

Revision ID: 3b7e9c1d5a20
Revises:
Create Date: 2026-10-18 10:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7e9c1d5a20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

discount_type = sa.Enum("percentage", "fixed_amount", "free_shipping", name="discounttype")
product_inclusion_type = sa.Enum("include", "exclude", name="productinclusiontype")


def upgrade() -> None:
    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", discount_type, nullable=False),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("minimum_order_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("first_time_only", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_product_specific", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("product_inclusion_type", product_inclusion_type, nullable=False, server_default="include"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("usage_count >= 0", name="ck_coupons_usage_count_non_negative"),
        sa.CheckConstraint("usage_limit IS NULL OR usage_count <= usage_limit", name="ck_coupons_usage_within_limit"),
        sa.CheckConstraint("usage_limit IS NULL OR usage_limit > 0", name="ck_coupons_usage_limit_positive"),
        sa.CheckConstraint("discount_value >= 0", name="ck_coupons_discount_value_non_negative"),
        sa.CheckConstraint(
            "discount_type != 'percentage' OR discount_value <= 100",
            name="ck_coupons_percentage_at_most_100",
        ),
        sa.CheckConstraint("minimum_order_amount >= 0", name="ck_coupons_minimum_order_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_coupons_id"), "coupons", ["id"], unique=False)
    op.create_index(op.f("ix_coupons_code"), "coupons", ["code"], unique=True)

    op.create_table(
        "coupon_products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("coupon_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("coupon_id", "product_id", name="uq_coupon_products_coupon_product"),
    )
    op.create_index(op.f("ix_coupon_products_id"), "coupon_products", ["id"], unique=False)
    op.create_index(op.f("ix_coupon_products_coupon_id"), "coupon_products", ["coupon_id"], unique=False)

    op.create_table(
        "coupon_usage",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("coupon_id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("coupon_id", "order_id", name="uq_coupon_usage_coupon_order"),
    )
    op.create_index(op.f("ix_coupon_usage_id"), "coupon_usage", ["id"], unique=False)
    op.create_index(op.f("ix_coupon_usage_coupon_id"), "coupon_usage", ["coupon_id"], unique=False)
    op.create_index(op.f("ix_coupon_usage_order_id"), "coupon_usage", ["order_id"], unique=False)
    op.create_index(op.f("ix_coupon_usage_customer_email"), "coupon_usage", ["customer_email"], unique=False)

    op.create_table(
        "customer_discounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("first_purchase_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("first_purchase_discount_applied", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_customer_discounts_id"), "customer_discounts", ["id"], unique=False)
    op.create_index(op.f("ix_customer_discounts_customer_email"), "customer_discounts", ["customer_email"], unique=True)


def downgrade() -> None:
    op.drop_index(op.f("ix_customer_discounts_customer_email"), table_name="customer_discounts")
    op.drop_index(op.f("ix_customer_discounts_id"), table_name="customer_discounts")
    op.drop_table("customer_discounts")

    op.drop_index(op.f("ix_coupon_usage_customer_email"), table_name="coupon_usage")
    op.drop_index(op.f("ix_coupon_usage_order_id"), table_name="coupon_usage")
    op.drop_index(op.f("ix_coupon_usage_coupon_id"), table_name="coupon_usage")
    op.drop_index(op.f("ix_coupon_usage_id"), table_name="coupon_usage")
    op.drop_table("coupon_usage")

    op.drop_index(op.f("ix_coupon_products_coupon_id"), table_name="coupon_products")
    op.drop_index(op.f("ix_coupon_products_id"), table_name="coupon_products")
    op.drop_table("coupon_products")

    op.drop_index(op.f("ix_coupons_code"), table_name="coupons")
    op.drop_index(op.f("ix_coupons_id"), table_name="coupons")
    op.drop_table("coupons")

    discount_type.drop(op.get_bind(), checkfirst=True)
    product_inclusion_type.drop(op.get_bind(), checkfirst=True)
