from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List

from coupon_engine.models.coupon import DiscountType, ProductInclusionType
from coupon_engine.schemas.coupon import CouponRecord
from coupon_engine.schemas.order import OrderContext

CENT = Decimal("0.01")
ZERO = Decimal("0")


class DiscountCalculator:

    @staticmethod
    def applicable_products(coupon: CouponRecord, order: OrderContext, scope_product_ids: Iterable[str] = ()) -> List[str]:
        """Order products the coupon covers, in order-line order."""
        if not coupon.is_product_specific:
            return list(order.product_ids)
        scope = set(scope_product_ids)
        if coupon.product_inclusion_type == ProductInclusionType.INCLUDE:
            return [product_id for product_id in order.product_ids if product_id in scope]
        return [product_id for product_id in order.product_ids if product_id not in scope]

    @staticmethod
    def eligible_subtotal(coupon: CouponRecord, order: OrderContext, scope_product_ids: Iterable[str] = ()) -> Decimal:
        """Discount base: in-scope line totals for include-mode coupons, else the order subtotal.

        Exclude mode only gates eligibility; the full subtotal is discounted.
        The base never exceeds the order subtotal.
        """
        if coupon.is_product_specific and coupon.product_inclusion_type == ProductInclusionType.INCLUDE:
            scope = set(scope_product_ids)
            in_scope = sum((line.line_total for line in order.lines if line.product_id in scope), ZERO)
            return min(in_scope, order.subtotal)
        return order.subtotal

    @staticmethod
    def calculate(coupon: CouponRecord, order: OrderContext, scope_product_ids: Iterable[str] = ()) -> Decimal:
        """Discount amount, rounded half-up to cents at the last step. Never negative."""
        base = max(DiscountCalculator.eligible_subtotal(coupon, order, scope_product_ids), ZERO)

        if coupon.discount_type == DiscountType.PERCENTAGE:
            amount = base * coupon.discount_value / Decimal(100)
        elif coupon.discount_type == DiscountType.FIXED_AMOUNT:
            amount = min(coupon.discount_value, base)
        else:
            # Free shipping: the caller zeroes its own shipping line
            amount = ZERO

        return max(amount, ZERO).quantize(CENT, rounding=ROUND_HALF_UP)
