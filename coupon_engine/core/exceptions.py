from typing import Any, Optional


class CouponStoreError(Exception):
    """Base class for failures raised by the coupon store."""


class StoreUnavailable(CouponStoreError):
    """Transport or storage failure; the only outcome worth retrying."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Coupon store unavailable during {operation}: {detail}")


class UsageLimitConflict(CouponStoreError):
    """A concurrent redemption consumed the last allowed use before this commit."""

    def __init__(self, coupon_id: int):
        self.coupon_id = coupon_id
        super().__init__(f"Usage limit reached for coupon {coupon_id} at commit time")


class DuplicateRedemption(CouponStoreError):
    """The coupon was already redeemed for this order."""

    def __init__(self, coupon_id: int, order_id: str):
        self.coupon_id = coupon_id
        self.order_id = order_id
        super().__init__(f"Coupon {coupon_id} already redeemed for order {order_id}")


class APIError(Exception):
    """Raised by routes to return the standard error envelope with a given status."""

    def __init__(self, status_code: int, message: str, errors: Optional[Any] = None):
        self.status_code = status_code
        self.message = message
        self.errors = errors or []
