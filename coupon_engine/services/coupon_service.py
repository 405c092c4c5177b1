from typing import List

import structlog

from coupon_engine.schemas.coupon import CouponStats
from coupon_engine.schemas.order import OrderContext
from coupon_engine.schemas.redemption import ApplicableCoupon
from coupon_engine.services.redemption_service import RedemptionCoordinator
from coupon_engine.services.discount_calculator import DiscountCalculator
from coupon_engine.services.eligibility import EligibilityEvaluator, as_utc

logger = structlog.get_logger()


class CouponService:
    """Read-side helpers for checkout: which coupons fit a cart, and usage totals."""

    def __init__(self, coordinator: RedemptionCoordinator):
        self.coordinator = coordinator
        self.store = coordinator.store

    def applicable_coupons(self, order: OrderContext) -> List[ApplicableCoupon]:
        """Active coupons the order currently qualifies for, best discount first.

        Ties go to the coupon expiring soonest, then to the smaller code.
        Raises StoreUnavailable.
        """
        now = self.coordinator.clock()
        candidates = []
        for coupon in self.store.list_active_coupons():
            scope, prior_purchase = self.coordinator.gather_context(coupon, order)
            verdict = EligibilityEvaluator.evaluate(coupon, order, scope, prior_purchase, now)
            if not verdict.eligible:
                continue
            amount = DiscountCalculator.calculate(coupon, order, scope)
            candidates.append((coupon, amount))

        candidates.sort(
            key=lambda pair: (
                -pair[1],
                pair[0].expires_at is None,
                as_utc(pair[0].expires_at).timestamp() if pair[0].expires_at else 0,
                pair[0].code,
            )
        )
        logger.debug("applicable_coupons_listed", order_id=order.order_id, count=len(candidates))
        return [
            ApplicableCoupon(
                code=coupon.code,
                description=coupon.description,
                discount_type=coupon.discount_type,
                discount_label=coupon.discount_label,
                discount_amount=amount,
            )
            for coupon, amount in candidates
        ]

    def stats(self) -> CouponStats:
        """Raises StoreUnavailable."""
        return self.store.usage_stats()
