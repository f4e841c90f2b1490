"""Coupon evaluator: validates a coupon code against a subtotal.

The coupon is looked up by its upper-cased code within the agency. Expiry is
checked first and exactly once per evaluation: an expired coupon fails with
CouponExpired whether or not it is still flagged active, and the caller is
expected to persist the deactivation (see ``DeactivateExpiredCoupon``).
Only then is the active flag consulted, followed by the subtotal bounds.

The discount applies to the subtotal alone. Fixed discounts are clamped to
the subtotal so the discounted amount never goes negative.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from protean.utils.globals import current_domain

from fulfillment.coupon.coupon import Coupon, DiscountType, normalize_code
from fulfillment.errors import CouponAboveMaximum, CouponBelowMinimum, CouponExpired, CouponInvalid
from fulfillment.money import round2, to_decimal


@dataclass(frozen=True)
class Discount:
    discount: float
    code: str
    coupon_id: str
    discount_type: str
    discount_value: float


class CouponEvaluator:
    def __init__(self, coupons=None):
        self._coupons = coupons

    @property
    def coupons(self):
        if self._coupons is not None:
            return self._coupons
        return current_domain.repository_for(Coupon)

    def apply(self, code, agency_id, subtotal, now: datetime | None = None) -> Discount:
        now = now or datetime.now(UTC)

        coupon = self.coupons.by_code(normalize_code(code), agency_id=agency_id)
        if coupon is None:
            raise CouponInvalid()

        if coupon.is_expired(now):
            raise CouponExpired(coupon_id=str(coupon.id))

        if not coupon.is_active:
            raise CouponInvalid(coupon_id=str(coupon.id))

        if subtotal < (coupon.min_amount or 0):
            raise CouponBelowMinimum(coupon.min_amount, coupon_id=str(coupon.id))

        if coupon.max_amount is not None and subtotal > coupon.max_amount:
            raise CouponAboveMaximum(coupon.max_amount, coupon_id=str(coupon.id))

        if coupon.discount_type == DiscountType.PERCENTAGE.value:
            discount = to_decimal(subtotal) * to_decimal(coupon.discount_value) / 100
        else:
            discount = to_decimal(coupon.discount_value)
        discount = min(discount, to_decimal(subtotal))

        return Discount(
            discount=round2(discount),
            code=coupon.code,
            coupon_id=str(coupon.id),
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
        )
