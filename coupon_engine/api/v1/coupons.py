from fastapi import APIRouter, Depends, Request, status

from coupon_engine.api.deps import get_coordinator, get_coupon_service
from coupon_engine.core.config import settings
from coupon_engine.core.exceptions import APIError, StoreUnavailable
from coupon_engine.core.rate_limiter import limiter
from coupon_engine.schemas.redemption import (
    REASON_MESSAGES,
    ApplicableCouponsRequest,
    ApplyCouponRequest,
    RedemptionResult,
    RedemptionStatus,
    RejectionReason,
)
from coupon_engine.services.coupon_service import CouponService
from coupon_engine.services.redemption_service import RedemptionCoordinator
from coupon_engine.utils.response import success, error

router = APIRouter()


def _respond(result: RedemptionResult):
    if result.status == RedemptionStatus.APPLIED:
        return success(data=result.model_dump(), message=result.message)

    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if result.status == RedemptionStatus.UNAVAILABLE
        else status.HTTP_400_BAD_REQUEST
    )
    return error(
        message=result.message,
        errors={"reason": result.reason.value},
        status_code=status_code,
        data=result.model_dump(),
    )


def _unavailable() -> APIError:
    return APIError(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message=REASON_MESSAGES[RejectionReason.STORE_UNAVAILABLE],
        errors={"reason": RejectionReason.STORE_UNAVAILABLE.value},
    )


@router.post("/apply", response_model=dict)
@limiter.limit(settings.APPLY_RATE_LIMIT)
def apply_coupon(
    request: Request,
    payload: ApplyCouponRequest,
    coordinator: RedemptionCoordinator = Depends(get_coordinator),
):
    """Apply a coupon to an order and record the redemption."""
    return _respond(coordinator.apply(payload.code, payload.order))


@router.post("/validate", response_model=dict)
@limiter.limit(settings.APPLY_RATE_LIMIT)
def validate_coupon(
    request: Request,
    payload: ApplyCouponRequest,
    coordinator: RedemptionCoordinator = Depends(get_coordinator),
):
    """Preview a coupon's discount for an order without recording usage."""
    return _respond(coordinator.preview(payload.code, payload.order))


@router.post("/applicable", response_model=dict)
def applicable_coupons(
    payload: ApplicableCouponsRequest,
    service: CouponService = Depends(get_coupon_service),
):
    try:
        coupons = service.applicable_coupons(payload.order)
    except StoreUnavailable as exc:
        raise _unavailable() from exc
    return success(data=[c.model_dump() for c in coupons], message="Applicable coupons retrieved successfully")


@router.get("/stats", response_model=dict)
def coupon_stats(service: CouponService = Depends(get_coupon_service)):
    try:
        stats = service.stats()
    except StoreUnavailable as exc:
        raise _unavailable() from exc
    return success(data=stats.model_dump(), message="Coupon statistics retrieved successfully")
