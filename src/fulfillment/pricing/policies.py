"""Pricing policy aggregates: tax, platform charge and delivery charge.

Tax and platform charge are platform-wide singletons (at most one active
record of each); delivery charge is configured per agency (at most one record
per agency). The pricing calculator only ever reads them.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, String

from fulfillment.domain import fulfillment


class TaxType(Enum):
    NONE = "none"
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class DeliveryChargeType(Enum):
    FIXED = "fixed"
    PER_KM = "per_km"


class PolicyStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@fulfillment.aggregate
class TaxConfig:
    percentage = Float(min_value=0.0, max_value=100.0)
    fixed_amount = Float(min_value=0.0)
    is_active = Boolean(default=True)
    created_at = DateTime()

    @invariant.post
    def exactly_one_of_percentage_or_fixed(self):
        has_percentage = self.percentage is not None
        has_fixed = self.fixed_amount is not None
        if has_percentage == has_fixed:
            raise ValidationError({"tax": ["Set either a percentage or a fixed amount, not both"]})

    @property
    def tax_type(self) -> TaxType:
        return TaxType.PERCENTAGE if self.percentage is not None else TaxType.FIXED

    @property
    def value(self) -> float:
        return self.percentage if self.percentage is not None else self.fixed_amount

    def deactivate(self):
        self.is_active = False


@fulfillment.aggregate
class PlatformChargeConfig:
    amount = Float(required=True, min_value=0.0)
    is_active = Boolean(default=True)
    created_at = DateTime()

    def deactivate(self):
        self.is_active = False


@fulfillment.aggregate
class DeliveryChargeConfig:
    agency_id = Identifier(required=True, unique=True)
    charge_type = String(required=True, choices=DeliveryChargeType)
    fixed_amount = Float(min_value=0.0)
    rate_per_km = Float(min_value=0.0)
    delivery_radius = Float(default=60.0, min_value=1.0)
    status = String(choices=PolicyStatus, default=PolicyStatus.ACTIVE.value)
    updated_at = DateTime()

    @invariant.post
    def amount_matches_charge_type(self):
        if self.charge_type == DeliveryChargeType.FIXED.value and self.fixed_amount is None:
            raise ValidationError({"fixed_amount": ["Fixed amount is required for fixed delivery charges"]})
        if self.charge_type == DeliveryChargeType.PER_KM.value and self.rate_per_km is None:
            raise ValidationError({"rate_per_km": ["Rate per km is required for per-km delivery charges"]})

    @property
    def is_active(self) -> bool:
        return self.status == PolicyStatus.ACTIVE.value

    def reconfigure(self, charge_type, fixed_amount=None, rate_per_km=None, delivery_radius=None):
        new_type = DeliveryChargeType(charge_type)

        # Post-invariants run per assignment: fill amounts before switching type, clear after
        if fixed_amount is not None:
            self.fixed_amount = fixed_amount
        if rate_per_km is not None:
            self.rate_per_km = rate_per_km
        self.charge_type = new_type.value
        if fixed_amount is None:
            self.fixed_amount = None
        if rate_per_km is None:
            self.rate_per_km = None

        if delivery_radius is not None:
            self.delivery_radius = delivery_radius
        self.status = PolicyStatus.ACTIVE.value
        self.updated_at = datetime.now(UTC)

    def deactivate(self):
        self.status = PolicyStatus.INACTIVE.value
        self.updated_at = datetime.now(UTC)


@fulfillment.repository(part_of=TaxConfig)
class TaxConfigRepository:
    def active(self) -> TaxConfig | None:
        results = self._dao.query.filter(is_active=True).all().items
        return results[0] if results else None

    def all_active(self) -> list[TaxConfig]:
        return self._dao.query.filter(is_active=True).all().items


@fulfillment.repository(part_of=PlatformChargeConfig)
class PlatformChargeConfigRepository:
    def active(self) -> PlatformChargeConfig | None:
        results = self._dao.query.filter(is_active=True).all().items
        return results[0] if results else None

    def all_active(self) -> list[PlatformChargeConfig]:
        return self._dao.query.filter(is_active=True).all().items


@fulfillment.repository(part_of=DeliveryChargeConfig)
class DeliveryChargeConfigRepository:
    def for_agency(self, agency_id) -> DeliveryChargeConfig | None:
        results = self._dao.query.filter(agency_id=str(agency_id)).all().items
        return results[0] if results else None
