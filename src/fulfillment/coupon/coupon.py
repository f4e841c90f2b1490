"""Coupon aggregate (CQRS): agency-scoped discount rule.

Codes are stored upper-cased and are unique platform-wide. Expiry is the
combination of ``expiry_date`` and the ``expiry_time`` time-of-day string,
read as UTC. A coupon evaluated past that moment is deactivated once.
"""

from datetime import UTC, datetime, time
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Date, DateTime, Float, Identifier, String

from fulfillment.coupon.events import CouponCreated, CouponDeactivated, CouponToggled
from fulfillment.domain import fulfillment


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


@fulfillment.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    agency_id = Identifier(required=True)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    min_amount = Float(default=0.0, min_value=0.0)
    max_amount = Float(min_value=0.0)
    expiry_date = Date(required=True)
    expiry_time = String(required=True, max_length=8)
    is_active = Boolean(default=True)
    created_at = DateTime()

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.discount_value > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})

    @invariant.post
    def maximum_not_below_minimum(self):
        if self.max_amount is not None and self.max_amount < (self.min_amount or 0):
            raise ValidationError({"max_amount": ["Maximum amount must be greater than or equal to minimum amount"]})

    @invariant.post
    def expiry_time_is_a_time_of_day(self):
        try:
            time.fromisoformat(self.expiry_time)
        except (TypeError, ValueError):
            raise ValidationError({"expiry_time": ["Expiry time must be HH:MM or HH:MM:SS"]}) from None

    @classmethod
    def create(
        cls,
        code,
        agency_id,
        discount_type,
        discount_value,
        expiry_date,
        expiry_time,
        min_amount=0.0,
        max_amount=None,
    ):
        coupon = cls(
            code=normalize_code(code),
            agency_id=agency_id,
            discount_type=discount_type,
            discount_value=discount_value,
            min_amount=min_amount or 0.0,
            max_amount=max_amount,
            expiry_date=expiry_date,
            expiry_time=expiry_time,
            is_active=True,
            created_at=datetime.now(UTC),
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                agency_id=str(agency_id),
                code=coupon.code,
                discount_type=coupon.discount_type,
                discount_value=coupon.discount_value,
                expires_at=coupon.expires_at,
            )
        )
        return coupon

    @property
    def expires_at(self) -> datetime:
        return datetime.combine(self.expiry_date, time.fromisoformat(self.expiry_time), tzinfo=UTC)

    def is_expired(self, now: datetime) -> bool:
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return now > self.expires_at

    def toggle(self):
        now = datetime.now(UTC)
        self.is_active = not self.is_active
        self.raise_(CouponToggled(coupon_id=str(self.id), is_active=self.is_active, toggled_at=now))

    def expire(self, now: datetime | None = None) -> bool:
        """Deactivate after expiry. Returns True only on the call that flips the flag."""
        now = now or datetime.now(UTC)
        if not self.is_active or not self.is_expired(now):
            return False

        self.is_active = False
        self.raise_(
            CouponDeactivated(
                coupon_id=str(self.id),
                code=self.code,
                reason="expired",
                deactivated_at=now,
            )
        )
        return True


@fulfillment.repository(part_of=Coupon)
class CouponRepository:
    def by_code(self, code, agency_id=None) -> Coupon | None:
        filters = {"code": normalize_code(code)}
        if agency_id is not None:
            filters["agency_id"] = str(agency_id)
        results = self._dao.query.filter(**filters).all().items
        return results[0] if results else None

    def for_agency(self, agency_id, active_only=False) -> list[Coupon]:
        filters = {"agency_id": str(agency_id)}
        if active_only:
            filters["is_active"] = True
        return self._dao.query.filter(**filters).all().items
