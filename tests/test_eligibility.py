from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from coupon_engine.models.coupon import DiscountType, ProductInclusionType
from coupon_engine.schemas.coupon import CouponRecord
from coupon_engine.schemas.order import OrderContext, OrderLine
from coupon_engine.schemas.redemption import RejectionReason
from coupon_engine.services.eligibility import EligibilityEvaluator

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _coupon(**overrides) -> CouponRecord:
    values = {
        "id": 1,
        "code": "SAVE10",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("10"),
    }
    values.update(overrides)
    return CouponRecord(**values)


def _order(subtotal: str = "100.00", product_ids=("P1",), **overrides) -> OrderContext:
    lines = [OrderLine(product_id=pid, quantity=1, unit_price=Decimal(subtotal) / len(product_ids)) for pid in product_ids]
    values = {
        "order_id": "ORD-1",
        "customer_email": "shopper@example.com",
        "subtotal": Decimal(subtotal),
        "lines": lines,
    }
    values.update(overrides)
    return OrderContext(**values)


def _evaluate(coupon, order=None, scope=(), prior=False, now=NOW):
    return EligibilityEvaluator.evaluate(coupon, order or _order(), scope, prior, now)


def test_plain_coupon_is_eligible():
    result = _evaluate(_coupon())
    assert result.eligible is True
    assert result.reason is None


def test_inactive_coupon_rejected():
    assert _evaluate(_coupon(is_active=False)).reason == RejectionReason.INACTIVE


def test_not_yet_started():
    coupon = _coupon(starts_at=NOW + timedelta(minutes=1))
    assert _evaluate(coupon).reason == RejectionReason.NOT_YET_STARTED


def test_start_boundary_is_inclusive():
    assert _evaluate(_coupon(starts_at=NOW)).eligible is True


def test_expired():
    coupon = _coupon(expires_at=NOW - timedelta(seconds=1))
    assert _evaluate(coupon).reason == RejectionReason.EXPIRED


def test_expiry_moment_counts_as_expired():
    assert _evaluate(_coupon(expires_at=NOW)).reason == RejectionReason.EXPIRED


def test_naive_datetimes_are_read_as_utc():
    coupon = _coupon(expires_at=datetime(2026, 6, 1, 11, 59))
    assert _evaluate(coupon).reason == RejectionReason.EXPIRED


def test_usage_limit_reached():
    coupon = _coupon(usage_limit=1, usage_count=1)
    assert _evaluate(coupon).reason == RejectionReason.USAGE_LIMIT_REACHED


def test_usage_below_limit_is_eligible():
    assert _evaluate(_coupon(usage_limit=5, usage_count=4)).eligible is True


def test_first_time_only_with_prior_purchase():
    coupon = _coupon(first_time_only=True)
    assert _evaluate(coupon, prior=True).reason == RejectionReason.NOT_FIRST_TIME_CUSTOMER
    assert _evaluate(coupon, prior=False).eligible is True


def test_prior_purchase_ignored_without_first_time_restriction():
    assert _evaluate(_coupon(), prior=True).eligible is True


def test_below_minimum_order():
    coupon = _coupon(minimum_order_amount=Decimal("150"))
    assert _evaluate(coupon).reason == RejectionReason.BELOW_MINIMUM_ORDER


def test_minimum_order_met_exactly():
    assert _evaluate(_coupon(minimum_order_amount=Decimal("100.00"))).eligible is True


def test_include_scope_without_matching_product():
    coupon = _coupon(is_product_specific=True)
    order = _order(product_ids=("P2", "P3"))
    assert _evaluate(coupon, order, scope={"P1"}).reason == RejectionReason.NO_ELIGIBLE_PRODUCTS


def test_include_scope_with_one_matching_product():
    coupon = _coupon(is_product_specific=True)
    order = _order(product_ids=("P1", "P3"))
    assert _evaluate(coupon, order, scope={"P1"}).eligible is True


def test_empty_include_scope_applies_to_nothing():
    coupon = _coupon(is_product_specific=True)
    assert _evaluate(coupon, scope=set()).reason == RejectionReason.NO_ELIGIBLE_PRODUCTS


def test_exclude_scope_with_every_product_excluded():
    coupon = _coupon(is_product_specific=True, product_inclusion_type=ProductInclusionType.EXCLUDE)
    order = _order(product_ids=("P1", "P2"))
    assert _evaluate(coupon, order, scope={"P1", "P2"}).reason == RejectionReason.ALL_PRODUCTS_EXCLUDED


def test_exclude_scope_with_one_product_left():
    coupon = _coupon(is_product_specific=True, product_inclusion_type=ProductInclusionType.EXCLUDE)
    order = _order(product_ids=("P1", "P2"))
    assert _evaluate(coupon, order, scope={"P1"}).eligible is True


def test_scope_ignored_when_not_product_specific():
    order = _order(product_ids=("P2",))
    assert _evaluate(_coupon(), order, scope={"P1"}).eligible is True


def test_first_failing_check_wins():
    coupon = _coupon(
        is_active=False,
        expires_at=NOW - timedelta(days=1),
        usage_limit=1,
        usage_count=1,
        minimum_order_amount=Decimal("500"),
    )
    assert _evaluate(coupon).reason == RejectionReason.INACTIVE
    assert _evaluate(coupon.model_copy(update={"is_active": True})).reason == RejectionReason.EXPIRED


def test_evaluation_is_repeatable():
    coupon = _coupon(usage_limit=3, usage_count=2, first_time_only=True)
    order = _order()
    verdicts = {(_evaluate(coupon, order).eligible, _evaluate(coupon, order).reason) for _ in range(5)}
    assert len(verdicts) == 1


@pytest.mark.parametrize(
    "broken, fixed, reason",
    [
        ({"is_active": False}, {"is_active": True}, RejectionReason.INACTIVE),
        ({"starts_at": NOW + timedelta(days=1)}, {"starts_at": None}, RejectionReason.NOT_YET_STARTED),
        ({"expires_at": NOW - timedelta(days=1)}, {"expires_at": None}, RejectionReason.EXPIRED),
        ({"usage_limit": 2, "usage_count": 2}, {"usage_count": 1}, RejectionReason.USAGE_LIMIT_REACHED),
        ({"minimum_order_amount": Decimal("101")}, {"minimum_order_amount": Decimal("0")}, RejectionReason.BELOW_MINIMUM_ORDER),
    ],
)
def test_fixing_the_violated_precondition_restores_eligibility(broken, fixed, reason):
    coupon = _coupon(**broken)
    assert _evaluate(coupon).reason == reason
    assert _evaluate(coupon.model_copy(update=fixed)).eligible is True


def test_fixing_one_precondition_exposes_the_next():
    coupon = _coupon(first_time_only=True, minimum_order_amount=Decimal("200"))
    assert _evaluate(coupon, prior=True).reason == RejectionReason.NOT_FIRST_TIME_CUSTOMER
    assert _evaluate(coupon, prior=False).reason == RejectionReason.BELOW_MINIMUM_ORDER
