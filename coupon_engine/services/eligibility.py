"""
Coupon eligibility rules.

Checks run in a fixed order and the first failure decides the reason:

  1. Coupon is active
  2. Validity window (starts_at inclusive, expires_at exclusive)
  3. Global usage limit
  4. First-time-customer restriction
  5. Minimum order amount
  6. Product scope (include / exclude)

Everything here is pure: no store access, the clock is passed in.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from coupon_engine.models.coupon import ProductInclusionType
from coupon_engine.schemas.coupon import CouponRecord
from coupon_engine.schemas.order import OrderContext
from coupon_engine.schemas.redemption import EligibilityResult, RejectionReason


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class EligibilityEvaluator:

    @staticmethod
    def evaluate(
        coupon: CouponRecord,
        order: OrderContext,
        scope_product_ids: Iterable[str] = (),
        has_prior_purchase: bool = False,
        now: Optional[datetime] = None,
    ) -> EligibilityResult:
        now = as_utc(now) or datetime.now(timezone.utc)

        if not coupon.is_active:
            return EligibilityResult.fail(RejectionReason.INACTIVE)

        starts_at = as_utc(coupon.starts_at)
        if starts_at and now < starts_at:
            return EligibilityResult.fail(RejectionReason.NOT_YET_STARTED)
        expires_at = as_utc(coupon.expires_at)
        if expires_at and now >= expires_at:
            return EligibilityResult.fail(RejectionReason.EXPIRED)

        if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
            return EligibilityResult.fail(RejectionReason.USAGE_LIMIT_REACHED)

        if coupon.first_time_only and has_prior_purchase:
            return EligibilityResult.fail(RejectionReason.NOT_FIRST_TIME_CUSTOMER)

        if order.subtotal < coupon.minimum_order_amount:
            return EligibilityResult.fail(RejectionReason.BELOW_MINIMUM_ORDER)

        if coupon.is_product_specific:
            scope = set(scope_product_ids)
            if coupon.product_inclusion_type == ProductInclusionType.INCLUDE:
                # An empty include set matches nothing
                if not any(product_id in scope for product_id in order.product_ids):
                    return EligibilityResult.fail(RejectionReason.NO_ELIGIBLE_PRODUCTS)
            elif all(product_id in scope for product_id in order.product_ids):
                return EligibilityResult.fail(RejectionReason.ALL_PRODUCTS_EXCLUDED)

        return EligibilityResult.ok()
