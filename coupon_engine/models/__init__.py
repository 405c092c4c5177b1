from coupon_engine.models.coupon import Coupon, DiscountType, ProductInclusionType
from coupon_engine.models.coupon_product import CouponProduct
from coupon_engine.models.coupon_usage import CouponUsage
from coupon_engine.models.customer_discount import CustomerDiscount
