from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from coupon_engine.core.exceptions import DuplicateRedemption, StoreUnavailable, UsageLimitConflict
from coupon_engine.models.coupon import Coupon, DiscountType
from coupon_engine.models.coupon_usage import CouponUsage
from coupon_engine.models.customer_discount import CustomerDiscount
from coupon_engine.services.coupon_store import CouponStore


def _usage_rows(db: Session, coupon_id: int) -> list[CouponUsage]:
    return db.query(CouponUsage).filter(CouponUsage.coupon_id == coupon_id).all()


def test_find_by_code_is_case_insensitive(db_session: Session, create_coupon):
    create_coupon("save10")
    store = CouponStore(db_session)

    record = store.find_by_code("  Save10 ")
    assert record is not None
    assert record.code == "SAVE10"
    assert record.discount_value == Decimal("10")


def test_find_by_code_missing(db_session: Session):
    store = CouponStore(db_session)
    assert store.find_by_code("NOPE") is None
    assert store.find_by_code("   ") is None


def test_get_scope_returns_product_ids(db_session: Session, create_coupon):
    coupon = create_coupon("SCOPED", product_ids=["P1", "P2"])
    assert CouponStore(db_session).get_scope(coupon.id) == {"P1", "P2"}


def test_get_scope_empty_when_not_product_specific(db_session: Session, create_coupon):
    coupon = create_coupon("LOOSE", product_ids=["P1"], is_product_specific=False)
    assert CouponStore(db_session).get_scope(coupon.id) == set()


def test_record_usage_increments_and_inserts(db_session: Session, create_coupon):
    coupon = create_coupon(usage_limit=2)
    store = CouponStore(db_session)

    usage = store.record_usage(coupon.id, "ORD-1", "Shopper@Example.com", Decimal("10.00"))

    db_session.refresh(coupon)
    assert coupon.usage_count == 1
    assert usage.customer_email == "shopper@example.com"
    assert usage.discount_amount == Decimal("10.00")
    assert usage.used_at is not None
    assert store.find_usage(coupon.id, "ORD-1").id == usage.id


def test_record_usage_rechecks_limit_at_commit(db_session: Session, create_coupon):
    coupon = create_coupon(usage_limit=1, usage_count=1)
    store = CouponStore(db_session)

    with pytest.raises(UsageLimitConflict):
        store.record_usage(coupon.id, "ORD-2", "late@example.com", Decimal("10.00"))

    db_session.refresh(coupon)
    assert coupon.usage_count == 1
    assert _usage_rows(db_session, coupon.id) == []


def test_record_usage_rejects_second_redemption_for_order(db_session: Session, create_coupon):
    coupon = create_coupon()
    store = CouponStore(db_session)
    store.record_usage(coupon.id, "ORD-1", "shopper@example.com", Decimal("10.00"))

    with pytest.raises(DuplicateRedemption):
        store.record_usage(coupon.id, "ORD-1", "shopper@example.com", Decimal("10.00"))

    # The second increment was rolled back with the failed insert
    db_session.refresh(coupon)
    assert coupon.usage_count == 1
    assert len(_usage_rows(db_session, coupon.id)) == 1


def test_record_usage_flags_first_purchase_discount(db_session: Session, create_coupon):
    coupon = create_coupon("WELCOME", first_time_only=True)
    CouponStore(db_session).record_usage(
        coupon.id, "ORD-1", "new@example.com", Decimal("10.00"), first_purchase_discount=True
    )

    profile = db_session.query(CustomerDiscount).filter_by(customer_email="new@example.com").one()
    assert profile.first_purchase_discount_applied is True
    assert profile.first_purchase_completed is False


def test_mark_purchase_completed_upserts_profile(db_session: Session):
    store = CouponStore(db_session)
    assert store.has_prior_completed_purchase("repeat@example.com") is False

    store.mark_purchase_completed("Repeat@Example.com")
    store.mark_purchase_completed("repeat@example.com")

    assert store.has_prior_completed_purchase("REPEAT@example.com") is True
    assert db_session.query(CustomerDiscount).count() == 1


def test_list_active_coupons_skips_inactive(db_session: Session, create_coupon):
    create_coupon("ON")
    create_coupon("OFF", is_active=False)
    codes = [record.code for record in CouponStore(db_session).list_active_coupons()]
    assert codes == ["ON"]


def test_usage_stats(db_session: Session, create_coupon):
    used = create_coupon("USED")
    create_coupon("SCOPED", product_ids=["P1"])
    create_coupon("SHIPFREE", discount_type=DiscountType.FREE_SHIPPING, discount_value=Decimal("0"))
    store = CouponStore(db_session)
    store.record_usage(used.id, "ORD-1", "a@example.com", Decimal("1.00"))
    store.record_usage(used.id, "ORD-2", "b@example.com", Decimal("1.00"))

    stats = store.usage_stats()
    assert stats.total_coupons == 3
    assert stats.used_coupons == 1
    assert stats.product_specific_coupons == 1
    assert stats.total_usage == 2


def test_database_errors_become_store_unavailable(db_session: Session, monkeypatch):
    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db_session, "query", broken_query)

    with pytest.raises(StoreUnavailable) as exc_info:
        CouponStore(db_session).find_by_code("SAVE10")
    assert exc_info.value.operation == "find_by_code"


def test_coupon_code_is_stored_upper_case(db_session: Session, create_coupon):
    create_coupon(" mixedCase ")
    assert db_session.query(Coupon).filter(Coupon.code == "MIXEDCASE").count() == 1
