from sqlalchemy import Column, Integer, String, Boolean, DateTime
from datetime import datetime, timezone
from coupon_engine.db.base_class import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CustomerDiscount(Base):
    """Per-customer purchase history flags used by first-time-only coupons."""
    __tablename__ = "customer_discounts"

    id = Column(Integer, primary_key=True, index=True)
    customer_email = Column(String(255), unique=True, nullable=False, index=True)  # Lower-case

    first_purchase_completed = Column(Boolean, default=False, nullable=False)
    first_purchase_discount_applied = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
