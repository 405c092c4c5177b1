from coupon_engine.db.base_class import Base


# IMPORT ALL MODELS HERE (THIS REGISTERS THEM WITH Base.metadata)
from coupon_engine.models.coupon import Coupon
from coupon_engine.models.coupon_product import CouponProduct
from coupon_engine.models.coupon_usage import CouponUsage
from coupon_engine.models.customer_discount import CustomerDiscount
