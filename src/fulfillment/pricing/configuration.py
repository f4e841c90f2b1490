"""Pricing policy configuration: commands and handlers.

Configuring a new tax or platform charge retires whatever was active before,
so at most one of each is ever active.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from fulfillment.agency.agency import Agency
from fulfillment.domain import fulfillment
from fulfillment.pricing.policies import DeliveryChargeConfig, PlatformChargeConfig, TaxConfig

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="TaxConfig")
class ConfigureTax:
    percentage = Float(min_value=0.0, max_value=100.0)
    fixed_amount = Float(min_value=0.0)


@fulfillment.command(part_of="TaxConfig")
class DisableTax:
    reason = String(max_length=255)


@fulfillment.command(part_of="PlatformChargeConfig")
class ConfigurePlatformCharge:
    amount = Float(required=True, min_value=0.0)


@fulfillment.command(part_of="PlatformChargeConfig")
class DisablePlatformCharge:
    reason = String(max_length=255)


@fulfillment.command(part_of="DeliveryChargeConfig")
class ConfigureDeliveryCharge:
    agency_id = Identifier(required=True)
    charge_type = String(required=True, max_length=10)
    fixed_amount = Float(min_value=0.0)
    rate_per_km = Float(min_value=0.0)
    delivery_radius = Float(min_value=1.0)


@fulfillment.command(part_of="DeliveryChargeConfig")
class DeactivateDeliveryCharge:
    agency_id = Identifier(required=True)


@fulfillment.command_handler(part_of=TaxConfig)
class TaxConfigHandler:
    @handle(ConfigureTax)
    def configure_tax(self, command):
        repo = current_domain.repository_for(TaxConfig)
        for previous in repo.all_active():
            previous.deactivate()
            repo.add(previous)

        config = TaxConfig(
            percentage=command.percentage,
            fixed_amount=command.fixed_amount,
            is_active=True,
            created_at=datetime.now(UTC),
        )
        repo.add(config)
        logger.info("Tax configured", tax_type=config.tax_type.value, value=config.value)
        return str(config.id)

    @handle(DisableTax)
    def disable_tax(self, command):
        repo = current_domain.repository_for(TaxConfig)
        for previous in repo.all_active():
            previous.deactivate()
            repo.add(previous)
        logger.info("Tax disabled", reason=command.reason)


@fulfillment.command_handler(part_of=PlatformChargeConfig)
class PlatformChargeConfigHandler:
    @handle(ConfigurePlatformCharge)
    def configure_platform_charge(self, command):
        repo = current_domain.repository_for(PlatformChargeConfig)
        for previous in repo.all_active():
            previous.deactivate()
            repo.add(previous)

        config = PlatformChargeConfig(amount=command.amount, is_active=True, created_at=datetime.now(UTC))
        repo.add(config)
        logger.info("Platform charge configured", amount=command.amount)
        return str(config.id)

    @handle(DisablePlatformCharge)
    def disable_platform_charge(self, command):
        repo = current_domain.repository_for(PlatformChargeConfig)
        for previous in repo.all_active():
            previous.deactivate()
            repo.add(previous)
        logger.info("Platform charge disabled", reason=command.reason)


@fulfillment.command_handler(part_of=DeliveryChargeConfig)
class DeliveryChargeConfigHandler:
    @handle(ConfigureDeliveryCharge)
    def configure_delivery_charge(self, command):
        current_domain.repository_for(Agency).get(command.agency_id)

        repo = current_domain.repository_for(DeliveryChargeConfig)
        config = repo.for_agency(command.agency_id)
        if config is None:
            config = DeliveryChargeConfig(
                agency_id=command.agency_id,
                charge_type=command.charge_type,
                fixed_amount=command.fixed_amount,
                rate_per_km=command.rate_per_km,
                delivery_radius=command.delivery_radius or 60.0,
            )
        else:
            config.reconfigure(
                command.charge_type,
                fixed_amount=command.fixed_amount,
                rate_per_km=command.rate_per_km,
                delivery_radius=command.delivery_radius,
            )
        repo.add(config)
        logger.info(
            "Delivery charge configured",
            agency_id=str(command.agency_id),
            charge_type=config.charge_type,
            delivery_radius=config.delivery_radius,
        )
        return str(config.id)

    @handle(DeactivateDeliveryCharge)
    def deactivate_delivery_charge(self, command):
        repo = current_domain.repository_for(DeliveryChargeConfig)
        config = repo.for_agency(command.agency_id)
        if config is None:
            raise ObjectNotFoundError(f"No delivery charge configured for agency {command.agency_id}")
        config.deactivate()
        repo.add(config)
