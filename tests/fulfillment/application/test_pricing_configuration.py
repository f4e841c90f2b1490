"""Application tests for tax, platform charge and delivery charge configuration."""

import pytest
from fulfillment.pricing.configuration import (
    ConfigureDeliveryCharge,
    ConfigurePlatformCharge,
    ConfigureTax,
    DeactivateDeliveryCharge,
    DisablePlatformCharge,
    DisableTax,
)
from fulfillment.pricing.policies import DeliveryChargeConfig, PlatformChargeConfig, TaxConfig, TaxType
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


class TestTaxConfiguration:
    def test_configure_percentage_tax(self):
        current_domain.process(ConfigureTax(percentage=5.0), asynchronous=False)
        tax = current_domain.repository_for(TaxConfig).active()
        assert tax.tax_type == TaxType.PERCENTAGE
        assert tax.value == 5.0

    def test_new_tax_retires_the_previous_one(self):
        current_domain.process(ConfigureTax(percentage=5.0), asynchronous=False)
        current_domain.process(ConfigureTax(fixed_amount=20.0), asynchronous=False)

        active = current_domain.repository_for(TaxConfig).all_active()
        assert len(active) == 1
        assert active[0].tax_type == TaxType.FIXED

    def test_percentage_and_fixed_are_exclusive(self):
        with pytest.raises(ValidationError):
            current_domain.process(ConfigureTax(percentage=5.0, fixed_amount=20.0), asynchronous=False)

    def test_disable_tax(self):
        current_domain.process(ConfigureTax(percentage=5.0), asynchronous=False)
        current_domain.process(DisableTax(reason="GST waiver"), asynchronous=False)
        assert current_domain.repository_for(TaxConfig).active() is None


class TestPlatformCharge:
    def test_only_one_platform_charge_is_active(self):
        current_domain.process(ConfigurePlatformCharge(amount=10.0), asynchronous=False)
        current_domain.process(ConfigurePlatformCharge(amount=15.0), asynchronous=False)

        active = current_domain.repository_for(PlatformChargeConfig).all_active()
        assert [config.amount for config in active] == [15.0]

    def test_disable_platform_charge(self):
        current_domain.process(ConfigurePlatformCharge(amount=10.0), asynchronous=False)
        current_domain.process(DisablePlatformCharge(), asynchronous=False)
        assert current_domain.repository_for(PlatformChargeConfig).active() is None


class TestDeliveryCharge:
    def test_configure_fixed_charge(self, agency_id):
        current_domain.process(
            ConfigureDeliveryCharge(agency_id=agency_id, charge_type="fixed", fixed_amount=40.0),
            asynchronous=False,
        )
        config = current_domain.repository_for(DeliveryChargeConfig).for_agency(agency_id)
        assert config.charge_type == "fixed"
        assert config.delivery_radius == 60.0
        assert config.is_active

    def test_reconfiguring_updates_the_same_record(self, agency_id):
        first = current_domain.process(
            ConfigureDeliveryCharge(agency_id=agency_id, charge_type="fixed", fixed_amount=40.0),
            asynchronous=False,
        )
        second = current_domain.process(
            ConfigureDeliveryCharge(agency_id=agency_id, charge_type="per_km", rate_per_km=8.0, delivery_radius=15.0),
            asynchronous=False,
        )

        config = current_domain.repository_for(DeliveryChargeConfig).for_agency(agency_id)
        assert first == second
        assert config.charge_type == "per_km"
        assert config.rate_per_km == 8.0
        assert config.fixed_amount is None
        assert config.delivery_radius == 15.0

    def test_per_km_needs_a_rate(self, agency_id):
        with pytest.raises(ValidationError):
            current_domain.process(
                ConfigureDeliveryCharge(agency_id=agency_id, charge_type="per_km"),
                asynchronous=False,
            )

    def test_deactivate(self, agency_id):
        current_domain.process(
            ConfigureDeliveryCharge(agency_id=agency_id, charge_type="fixed", fixed_amount=40.0),
            asynchronous=False,
        )
        current_domain.process(DeactivateDeliveryCharge(agency_id=agency_id), asynchronous=False)
        assert not current_domain.repository_for(DeliveryChargeConfig).for_agency(agency_id).is_active

    def test_deactivate_without_configuration(self, agency_id):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(DeactivateDeliveryCharge(agency_id=agency_id), asynchronous=False)
