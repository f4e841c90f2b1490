"""Error taxonomy for the fulfillment engine.

Every business rejection is a Protean ``ValidationError`` carrying a
``{field: [message]}`` dict, so it rolls back the command's unit of work and
reaches callers in the same shape as field-level validation failures.
Subclasses add the structured context callers need to act on the failure.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError

__all__ = [
    "ActorNotPermitted",
    "AgencyInUse",
    "AgencyUnavailable",
    "ChargeError",
    "ConcurrentModification",
    "CouponAboveMaximum",
    "CouponBelowMinimum",
    "CouponError",
    "CouponExpired",
    "CouponInvalid",
    "GateError",
    "InsufficientStock",
    "InvalidOrExpired",
    "InvalidTransition",
    "NotFound",
    "NotIssuable",
    "OutOfRadius",
    "PriceMismatch",
    "ProductUnavailable",
    "UpstreamFailure",
    "ValidationError",
    "VariantNotFound",
]

NotFound = ObjectNotFoundError


def _fmt(value) -> str:
    """Render a number without trailing zeros (7.30 -> "7.3", 5.0 -> "5")."""
    return f"{float(value):g}"


class FulfillmentError(ValidationError):
    field = "order"

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        super().__init__({field or self.field: [message]})

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Pricing and stock
# ---------------------------------------------------------------------------
class PriceMismatch(FulfillmentError):
    field = "items"

    def __init__(self, product_name, variant_label, expected, claimed):
        self.expected = expected
        self.claimed = claimed
        label = f" ({variant_label})" if variant_label else ""
        super().__init__(
            f"Invalid price for {product_name}{label}. Expected: {expected:.2f}, Got: {claimed:.2f}"
        )


class InsufficientStock(FulfillmentError):
    field = "items"

    def __init__(self, product_name, variant_label, available, requested):
        self.available = available
        self.requested = requested
        what = f"variant {variant_label} of {product_name}" if variant_label else product_name
        super().__init__(f"Insufficient stock for {what}. Available: {available}, Requested: {requested}")


class VariantNotFound(FulfillmentError):
    field = "items"

    def __init__(self, product_name, variant_label):
        self.variant_label = variant_label
        super().__init__(f"Variant {variant_label} not found for {product_name}")


class ProductUnavailable(FulfillmentError):
    field = "items"

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is not available from this agency")


class AgencyUnavailable(FulfillmentError):
    field = "agency_id"


class AgencyInUse(FulfillmentError):
    field = "agency_id"


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CouponError(FulfillmentError):
    field = "coupon_code"

    def __init__(self, message, coupon_id=None):
        self.coupon_id = coupon_id
        super().__init__(message)


class CouponInvalid(CouponError):
    def __init__(self, coupon_id=None):
        super().__init__("Invalid or inactive coupon code", coupon_id)


class CouponExpired(CouponError):
    def __init__(self, coupon_id=None):
        super().__init__("Coupon has expired", coupon_id)


class CouponBelowMinimum(CouponError):
    def __init__(self, min_amount, coupon_id=None):
        self.min_amount = min_amount
        super().__init__(f"Minimum amount required for this coupon is {_fmt(min_amount)}", coupon_id)


class CouponAboveMaximum(CouponError):
    def __init__(self, max_amount, coupon_id=None):
        self.max_amount = max_amount
        super().__init__(f"Maximum amount allowed for this coupon is {_fmt(max_amount)}", coupon_id)


# ---------------------------------------------------------------------------
# Delivery charge
# ---------------------------------------------------------------------------
class ChargeError(FulfillmentError):
    field = "customer_address"


class OutOfRadius(ChargeError):
    def __init__(self, distance_km, radius_km):
        self.distance_km = distance_km
        self.radius_km = radius_km
        super().__init__(
            f"Delivery not available. Customer location is {_fmt(distance_km)} km away, "
            f"but delivery is only available within {_fmt(radius_km)} km radius."
        )


class UpstreamFailure(ChargeError):
    def __init__(self, kind, cause=None):
        self.kind = kind
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Unable to calculate delivery distance ({kind}){detail}")


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------
class InvalidTransition(FulfillmentError):
    field = "status"

    def __init__(self, current, requested, reason=None):
        self.current = current
        self.requested = requested
        message = f"Cannot transition order from {current} to {requested}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ActorNotPermitted(FulfillmentError):
    field = "actor"


class GateError(FulfillmentError):
    field = "delivery_code"


class NotIssuable(GateError):
    pass


class InvalidOrExpired(GateError):
    def __init__(self):
        super().__init__("Invalid or expired OTP")


class ConcurrentModification(FulfillmentError):
    """Raised after optimistic-concurrency retries are exhausted. Safe to retry."""

    field = "_entity"
