from fastapi import Depends
from sqlalchemy.orm import Session

from coupon_engine.db.session import get_db
from coupon_engine.services.coupon_service import CouponService
from coupon_engine.services.coupon_store import CouponStore
from coupon_engine.services.redemption_service import RedemptionCoordinator


def get_coupon_store(db: Session = Depends(get_db)) -> CouponStore:
    return CouponStore(db)


def get_coordinator(store: CouponStore = Depends(get_coupon_store)) -> RedemptionCoordinator:
    return RedemptionCoordinator(store)


def get_coupon_service(coordinator: RedemptionCoordinator = Depends(get_coordinator)) -> CouponService:
    return CouponService(coordinator)
