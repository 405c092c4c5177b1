from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from coupon_engine.core.config import settings
from coupon_engine.models.coupon import DiscountType, ProductInclusionType


class CouponRecord(BaseModel):
    """Read-only snapshot of a coupon row handed to the rules engine."""

    id: int
    code: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(default=Decimal("0"), ge=0)
    minimum_order_amount: Decimal = Field(default=Decimal("0"), ge=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    usage_count: int = Field(default=0, ge=0)
    first_time_only: bool = False
    is_active: bool = True
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_product_specific: bool = False
    product_inclusion_type: ProductInclusionType = ProductInclusionType.INCLUDE

    class Config:
        from_attributes = True

    @property
    def discount_label(self) -> str:
        if self.discount_type == DiscountType.PERCENTAGE:
            return f"{self.discount_value.normalize():f}% OFF"
        if self.discount_type == DiscountType.FIXED_AMOUNT:
            return f"{settings.CURRENCY_SYMBOL}{self.discount_value.normalize():f} OFF"
        return "FREE SHIPPING"


class CouponStats(BaseModel):
    total_coupons: int
    used_coupons: int
    product_specific_coupons: int
    total_usage: int
