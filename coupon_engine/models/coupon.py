from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, Enum, Text, CheckConstraint
from sqlalchemy.orm import relationship, validates
from datetime import datetime, timezone
import enum
from coupon_engine.db.base_class import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"


class ProductInclusionType(str, enum.Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_coupons_usage_count_non_negative"),
        CheckConstraint(
            "usage_limit IS NULL OR usage_count <= usage_limit",
            name="ck_coupons_usage_within_limit",
        ),
        CheckConstraint("usage_limit IS NULL OR usage_limit > 0", name="ck_coupons_usage_limit_positive"),
        CheckConstraint("discount_value >= 0", name="ck_coupons_discount_value_non_negative"),
        CheckConstraint(
            "discount_type != 'percentage' OR discount_value <= 100",
            name="ck_coupons_percentage_at_most_100",
        ),
        CheckConstraint("minimum_order_amount >= 0", name="ck_coupons_minimum_order_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)  # Stored upper-case
    description = Column(Text, nullable=True)

    discount_type = Column(Enum(DiscountType, values_callable=_enum_values), nullable=False)
    discount_value = Column(Numeric(12, 2), nullable=False, default=0)  # Percentage (0-100) or fixed amount

    minimum_order_amount = Column(Numeric(12, 2), default=0, nullable=False)

    usage_limit = Column(Integer, nullable=True)  # Global usage limit
    usage_count = Column(Integer, default=0, nullable=False)

    first_time_only = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    is_product_specific = Column(Boolean, default=False, nullable=False)
    product_inclusion_type = Column(
        Enum(ProductInclusionType, values_callable=_enum_values),
        default=ProductInclusionType.INCLUDE,
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    products = relationship("CouponProduct", back_populates="coupon", cascade="all, delete-orphan")
    usages = relationship("CouponUsage", back_populates="coupon", cascade="all, delete-orphan")

    @validates("code")
    def normalize_code(self, key, value):
        return value.strip().upper() if value else value
