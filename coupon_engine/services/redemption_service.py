from datetime import datetime, timezone
from typing import Callable, Optional, Set, Tuple

import structlog

from coupon_engine.core.exceptions import DuplicateRedemption, StoreUnavailable, UsageLimitConflict
from coupon_engine.schemas.coupon import CouponRecord
from coupon_engine.schemas.order import OrderContext
from coupon_engine.schemas.redemption import RedemptionResult, RejectionReason
from coupon_engine.services.coupon_store import CouponStore, normalize_code
from coupon_engine.services.discount_calculator import DiscountCalculator
from coupon_engine.services.eligibility import EligibilityEvaluator

logger = structlog.get_logger()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RedemptionCoordinator:
    """Applies a coupon to an order: evaluate, calculate, then commit atomically.

    Every outcome comes back as a RedemptionResult; store failures become
    ``unavailable`` results instead of propagating.
    """

    def __init__(self, store: CouponStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def gather_context(self, coupon: CouponRecord, order: OrderContext) -> Tuple[Set[str], bool]:
        scope = self.store.get_scope(coupon.id) if coupon.is_product_specific else set()
        prior_purchase = bool(order.has_prior_completed_purchase)
        if coupon.first_time_only and not prior_purchase:
            prior_purchase = self.store.has_prior_completed_purchase(order.customer_email)
        return scope, prior_purchase

    def _replay(self, coupon: CouponRecord, order: OrderContext) -> Optional[RedemptionResult]:
        usage = self.store.find_usage(coupon.id, order.order_id)
        if usage is None:
            return None
        if usage.customer_email != order.customer_email:
            logger.warning("coupon_replay_customer_mismatch", code=coupon.code, order_id=order.order_id)
            return self._reject(coupon.code, order, RejectionReason.ORDER_ALREADY_REDEEMED)

        scope = self.store.get_scope(coupon.id) if coupon.is_product_specific else set()
        logger.info(
            "coupon_redemption_replayed",
            code=coupon.code,
            order_id=order.order_id,
            discount_amount=str(usage.discount_amount),
        )
        return RedemptionResult.applied_with(
            coupon.code,
            usage.discount_amount,
            coupon.discount_type,
            applicable_products=DiscountCalculator.applicable_products(coupon, order, scope),
            replayed=True,
        )

    def _reject(self, code: str, order: OrderContext, reason: RejectionReason) -> RedemptionResult:
        logger.info("coupon_rejected", code=code, order_id=order.order_id, reason=reason.value)
        return RedemptionResult.rejected(code, reason)

    def preview(self, code: str, order: OrderContext) -> RedemptionResult:
        """Run every check and compute the discount without recording anything."""
        code = normalize_code(code)
        try:
            coupon = self.store.find_by_code(code)
            if coupon is None:
                return RedemptionResult.rejected(code, RejectionReason.CODE_NOT_FOUND)

            scope, prior_purchase = self.gather_context(coupon, order)
        except StoreUnavailable:
            return RedemptionResult.rejected(code, RejectionReason.STORE_UNAVAILABLE)

        verdict = EligibilityEvaluator.evaluate(coupon, order, scope, prior_purchase, self.clock())
        if not verdict.eligible:
            return RedemptionResult.rejected(code, verdict.reason)

        amount = DiscountCalculator.calculate(coupon, order, scope)
        return RedemptionResult.applied_with(
            coupon.code,
            amount,
            coupon.discount_type,
            applicable_products=DiscountCalculator.applicable_products(coupon, order, scope),
        )

    def apply(self, code: str, order: OrderContext) -> RedemptionResult:
        code = normalize_code(code)
        try:
            coupon = self.store.find_by_code(code)
            if coupon is None:
                return self._reject(code, order, RejectionReason.CODE_NOT_FOUND)

            replay = self._replay(coupon, order)
            if replay is not None:
                return replay

            scope, prior_purchase = self.gather_context(coupon, order)

            verdict = EligibilityEvaluator.evaluate(coupon, order, scope, prior_purchase, self.clock())
            if not verdict.eligible:
                return self._reject(code, order, verdict.reason)

            amount = DiscountCalculator.calculate(coupon, order, scope)

            try:
                self.store.record_usage(
                    coupon.id,
                    order.order_id,
                    order.customer_email,
                    amount,
                    first_purchase_discount=coupon.first_time_only,
                )
            except UsageLimitConflict:
                logger.warning("coupon_usage_conflict", code=code, order_id=order.order_id)
                return self._reject(code, order, RejectionReason.USAGE_LIMIT_REACHED)
            except DuplicateRedemption:
                replay = self._replay(coupon, order)
                if replay is not None:
                    return replay
                raise StoreUnavailable("apply", "duplicate redemption vanished before replay")
        except StoreUnavailable as exc:
            logger.error("coupon_store_unavailable", code=code, order_id=order.order_id, detail=str(exc))
            return RedemptionResult.rejected(code, RejectionReason.STORE_UNAVAILABLE)

        logger.info(
            "coupon_applied",
            code=code,
            order_id=order.order_id,
            discount_amount=str(amount),
        )
        return RedemptionResult.applied_with(
            coupon.code,
            amount,
            coupon.discount_type,
            applicable_products=DiscountCalculator.applicable_products(coupon, order, scope),
        )
