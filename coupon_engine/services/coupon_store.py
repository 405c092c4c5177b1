from contextlib import contextmanager
from decimal import Decimal
from typing import List, Optional, Set

import structlog
from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from coupon_engine.core.exceptions import DuplicateRedemption, StoreUnavailable, UsageLimitConflict
from coupon_engine.models.coupon import Coupon
from coupon_engine.models.coupon_product import CouponProduct
from coupon_engine.models.coupon_usage import CouponUsage
from coupon_engine.models.customer_discount import CustomerDiscount
from coupon_engine.schemas.coupon import CouponRecord, CouponStats

logger = structlog.get_logger()


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class CouponStore:
    """Persistence boundary for the coupon engine.

    Reads may return stale data. ``record_usage`` is the only writer of
    ``usage_count`` and ``coupon_usage`` and re-checks the usage limit inside
    its own transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("coupon_store_unavailable", operation=operation)
            raise StoreUnavailable(operation, str(exc)) from exc

    def find_by_code(self, code: str) -> Optional[CouponRecord]:
        normalized = normalize_code(code)
        if not normalized:
            return None
        with self._guard("find_by_code"):
            coupon = self.db.query(Coupon).filter(Coupon.code == normalized).first()
            return CouponRecord.model_validate(coupon) if coupon else None

    def get_scope(self, coupon_id: int) -> Set[str]:
        with self._guard("get_scope"):
            rows = (
                self.db.query(CouponProduct.product_id)
                .join(Coupon, Coupon.id == CouponProduct.coupon_id)
                .filter(CouponProduct.coupon_id == coupon_id, Coupon.is_product_specific == True)
                .all()
            )
        return {product_id for (product_id,) in rows}

    def has_prior_completed_purchase(self, customer_email: str) -> bool:
        with self._guard("has_prior_completed_purchase"):
            profile = (
                self.db.query(CustomerDiscount)
                .filter(CustomerDiscount.customer_email == normalize_email(customer_email))
                .first()
            )
        return bool(profile and profile.first_purchase_completed)

    def find_usage(self, coupon_id: int, order_id: str) -> Optional[CouponUsage]:
        with self._guard("find_usage"):
            return (
                self.db.query(CouponUsage)
                .filter(CouponUsage.coupon_id == coupon_id, CouponUsage.order_id == order_id)
                .first()
            )

    def record_usage(
        self,
        coupon_id: int,
        order_id: str,
        customer_email: str,
        discount_amount: Decimal,
        first_purchase_discount: bool = False,
    ) -> CouponUsage:
        """Increment the counter and insert the usage row as one transaction.

        Raises UsageLimitConflict when the guarded increment matches no row,
        DuplicateRedemption when the order already holds a redemption of this
        coupon, and StoreUnavailable on any other database failure. Nothing is
        committed unless both writes succeed.
        """
        customer_email = normalize_email(customer_email)
        try:
            result = self.db.execute(
                update(Coupon)
                .where(
                    Coupon.id == coupon_id,
                    or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
                )
                .values(usage_count=Coupon.usage_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise UsageLimitConflict(coupon_id)

            usage = CouponUsage(
                coupon_id=coupon_id,
                order_id=order_id,
                customer_email=customer_email,
                discount_amount=discount_amount,
            )
            self.db.add(usage)
            try:
                self.db.flush()
            except IntegrityError as exc:
                self.db.rollback()
                raise DuplicateRedemption(coupon_id, order_id) from exc

            if first_purchase_discount:
                self._flag_first_purchase_discount(customer_email)

            self.db.commit()
            self.db.refresh(usage)
            return usage
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("coupon_store_unavailable", operation="record_usage", coupon_id=coupon_id)
            raise StoreUnavailable("record_usage", str(exc)) from exc

    def _flag_first_purchase_discount(self, customer_email: str) -> None:
        profile = (
            self.db.query(CustomerDiscount)
            .filter(CustomerDiscount.customer_email == customer_email)
            .first()
        )
        if profile:
            profile.first_purchase_discount_applied = True
        else:
            self.db.add(CustomerDiscount(customer_email=customer_email, first_purchase_discount_applied=True))
        self.db.flush()

    def mark_purchase_completed(self, customer_email: str) -> None:
        """Called by the order subsystem once a customer's order completes."""
        customer_email = normalize_email(customer_email)
        with self._guard("mark_purchase_completed"):
            profile = (
                self.db.query(CustomerDiscount)
                .filter(CustomerDiscount.customer_email == customer_email)
                .first()
            )
            if profile:
                profile.first_purchase_completed = True
            else:
                self.db.add(CustomerDiscount(customer_email=customer_email, first_purchase_completed=True))
            self.db.commit()

    def list_active_coupons(self) -> List[CouponRecord]:
        with self._guard("list_active_coupons"):
            coupons = (
                self.db.query(Coupon)
                .filter(Coupon.is_active == True)
                .order_by(Coupon.created_at.desc())
                .all()
            )
            return [CouponRecord.model_validate(coupon) for coupon in coupons]

    def usage_stats(self) -> CouponStats:
        with self._guard("usage_stats"):
            total, used, product_specific, total_usage = self.db.query(
                func.count(Coupon.id),
                func.count(Coupon.id).filter(Coupon.usage_count > 0),
                func.count(Coupon.id).filter(Coupon.is_product_specific == True),
                func.coalesce(func.sum(Coupon.usage_count), 0),
            ).one()
        return CouponStats(
            total_coupons=total,
            used_coupons=used,
            product_specific_coupons=product_specific,
            total_usage=int(total_usage),
        )
