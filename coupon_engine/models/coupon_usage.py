from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from coupon_engine.db.base_class import Base


class CouponUsage(Base):
    __tablename__ = "coupon_usage"
    __table_args__ = (
        # One redemption per coupon per order
        UniqueConstraint("coupon_id", "order_id", name="uq_coupon_usage_coupon_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(String(64), nullable=False, index=True)
    customer_email = Column(String(255), nullable=False, index=True)
    discount_amount = Column(Numeric(12, 2), nullable=False)

    used_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    coupon = relationship("Coupon", back_populates="usages")
