"""Domain events for the Coupon aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="Coupon")
class CouponCreated:
    __version__ = 1

    coupon_id = Identifier(required=True)
    agency_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    discount_value = Float(required=True)
    expires_at = DateTime(required=True)


@fulfillment.event(part_of="Coupon")
class CouponToggled:
    __version__ = 1

    coupon_id = Identifier(required=True)
    is_active = Boolean()
    toggled_at = DateTime(required=True)


@fulfillment.event(part_of="Coupon")
class CouponDeactivated:
    """A coupon was switched off because it was evaluated past its expiry."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    reason = String(required=True)
    deactivated_at = DateTime(required=True)
