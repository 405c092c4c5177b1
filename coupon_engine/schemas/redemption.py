from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
import enum

from coupon_engine.models.coupon import DiscountType
from coupon_engine.schemas.order import OrderContext


class RejectionReason(str, enum.Enum):
    CODE_NOT_FOUND = "code_not_found"
    INACTIVE = "inactive"
    NOT_YET_STARTED = "not_yet_started"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    NOT_FIRST_TIME_CUSTOMER = "not_first_time_customer"
    BELOW_MINIMUM_ORDER = "below_minimum_order"
    NO_ELIGIBLE_PRODUCTS = "no_eligible_products"
    ALL_PRODUCTS_EXCLUDED = "all_products_excluded"
    ORDER_ALREADY_REDEEMED = "order_already_redeemed"
    STORE_UNAVAILABLE = "store_unavailable"


REASON_MESSAGES = {
    RejectionReason.CODE_NOT_FOUND: "Invalid coupon code",
    RejectionReason.INACTIVE: "This coupon is not active",
    RejectionReason.NOT_YET_STARTED: "This coupon is not valid yet",
    RejectionReason.EXPIRED: "Coupon has expired",
    RejectionReason.USAGE_LIMIT_REACHED: "Coupon usage limit exceeded",
    RejectionReason.NOT_FIRST_TIME_CUSTOMER: "This coupon is only valid on your first purchase",
    RejectionReason.BELOW_MINIMUM_ORDER: "Order total is below the minimum required for this coupon",
    RejectionReason.NO_ELIGIBLE_PRODUCTS: "This coupon does not apply to any product in your order",
    RejectionReason.ALL_PRODUCTS_EXCLUDED: "All products in your order are excluded from this coupon",
    RejectionReason.ORDER_ALREADY_REDEEMED: "This coupon was already used on this order by another customer",
    RejectionReason.STORE_UNAVAILABLE: "Coupons are temporarily unavailable, please try again",
}


class EligibilityResult(BaseModel):
    eligible: bool
    reason: Optional[RejectionReason] = None

    @classmethod
    def ok(cls) -> "EligibilityResult":
        return cls(eligible=True)

    @classmethod
    def fail(cls, reason: RejectionReason) -> "EligibilityResult":
        return cls(eligible=False, reason=reason)


class RedemptionStatus(str, enum.Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    UNAVAILABLE = "unavailable"  # Store failure; safe to retry


class RedemptionResult(BaseModel):
    status: RedemptionStatus
    code: str
    discount_amount: Decimal = Decimal("0.00")
    discount_type: Optional[DiscountType] = None
    reason: Optional[RejectionReason] = None
    message: str
    applicable_products: List[str] = Field(default_factory=list)
    replayed: bool = False  # Earlier redemption for the same order returned as-is

    @property
    def applied(self) -> bool:
        return self.status == RedemptionStatus.APPLIED

    @classmethod
    def applied_with(
        cls,
        code: str,
        amount: Decimal,
        discount_type: DiscountType,
        applicable_products: Optional[List[str]] = None,
        replayed: bool = False,
    ) -> "RedemptionResult":
        return cls(
            status=RedemptionStatus.APPLIED,
            code=code,
            discount_amount=amount,
            discount_type=discount_type,
            message="Coupon applied successfully",
            applicable_products=applicable_products or [],
            replayed=replayed,
        )

    @classmethod
    def rejected(cls, code: str, reason: RejectionReason) -> "RedemptionResult":
        status = (
            RedemptionStatus.UNAVAILABLE
            if reason == RejectionReason.STORE_UNAVAILABLE
            else RedemptionStatus.REJECTED
        )
        return cls(status=status, code=code, reason=reason, message=REASON_MESSAGES[reason])


class ApplyCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    order: OrderContext


class ApplicableCouponsRequest(BaseModel):
    order: OrderContext


class ApplicableCoupon(BaseModel):
    code: str
    description: Optional[str]
    discount_type: DiscountType
    discount_label: str
    discount_amount: Decimal
