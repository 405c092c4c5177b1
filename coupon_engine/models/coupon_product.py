from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from coupon_engine.db.base_class import Base


class CouponProduct(Base):
    """Include/exclude scope row for a product-specific coupon."""
    __tablename__ = "coupon_products"
    __table_args__ = (
        UniqueConstraint("coupon_id", "product_id", name="uq_coupon_products_coupon_product"),
    )

    id = Column(Integer, primary_key=True, index=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(64), nullable=False)  # Owned by the catalog service

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    coupon = relationship("Coupon", back_populates="products")
