"""Delivery charge evaluator.

Decides whether an agency delivers to an address and what it charges:

* no active DeliveryChargeConfig: delivery is free and allowed (``not_configured``)
* distance above ``delivery_radius``: OutOfRadius (a distance equal to the radius is accepted)
* ``fixed``: the configured amount, floored to a whole currency unit
* ``per_km``: distance x rate, floored to a whole currency unit

A failed distance lookup is always a rejection, never a free delivery.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from fulfillment.errors import OutOfRadius, UpstreamFailure
from fulfillment.geo.port import DistanceCapability, DistanceLookupError
from fulfillment.money import floor_amount, to_decimal
from fulfillment.pricing.policies import DeliveryChargeConfig, DeliveryChargeType

logger = structlog.get_logger(__name__)

NOT_CONFIGURED = "not_configured"


@dataclass(frozen=True)
class ChargeQuote:
    charge: float
    charge_type: str
    distance_km: float | None = None
    duration_minutes: int | None = None
    delivery_radius: float | None = None

    @classmethod
    def free(cls) -> "ChargeQuote":
        return cls(charge=0.0, charge_type=NOT_CONFIGURED)


class DeliveryChargeEvaluator:
    def __init__(self, distance: DistanceCapability, configs=None):
        self.distance = distance
        self._configs = configs

    @property
    def configs(self):
        if self._configs is not None:
            return self._configs
        return current_domain.repository_for(DeliveryChargeConfig)

    def evaluate(self, agency, customer_address: str) -> ChargeQuote:
        config = self.configs.for_agency(agency.id)
        if config is None or not config.is_active:
            return ChargeQuote.free()

        try:
            result = self.distance.distance(agency.full_address, customer_address)
        except DistanceLookupError as exc:
            raise UpstreamFailure(exc.kind.value, exc.detail) from exc

        if result.distance_km > config.delivery_radius:
            logger.info(
                "Delivery rejected, outside radius",
                agency_id=str(agency.id),
                distance_km=result.distance_km,
                delivery_radius=config.delivery_radius,
            )
            raise OutOfRadius(result.distance_km, config.delivery_radius)

        if config.charge_type == DeliveryChargeType.FIXED.value:
            charge = floor_amount(config.fixed_amount)
        else:
            charge = floor_amount(to_decimal(result.distance_km) * to_decimal(config.rate_per_km))

        return ChargeQuote(
            charge=float(charge),
            charge_type=config.charge_type,
            distance_km=result.distance_km,
            duration_minutes=result.duration_minutes,
            delivery_radius=config.delivery_radius,
        )
