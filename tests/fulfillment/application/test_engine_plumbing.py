"""Application tests for engine retries, notification isolation and read-only previews."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from fulfillment.coupon.coupon import Coupon
from fulfillment.coupon.management import CreateCoupon
from fulfillment.engine import FulfillmentEngine, OrderAction
from fulfillment.errors import ConcurrentModification, CouponExpired, OutOfRadius
from fulfillment.notify.log_adapter import LogNotifier
from fulfillment.order.order import OrderStatus
from fulfillment.pricing.configuration import ConfigureDeliveryCharge
from fulfillment.pricing.delivery import NOT_CONFIGURED
from fulfillment.settings import EngineSettings
from protean import current_domain
from protean.exceptions import ExpectedVersionError, ValidationError

CART = {
    "customer": {"name": "Asha Rao", "email": "asha@example.com", "phone": "9876543210"},
    "delivery_mode": "pickup",
    "items": [{"product_id": "lpg-cylinder", "variant_label": "14.2kg", "quantity": 1, "price": 300.0}],
}


def _flaky_domain(failures):
    """A stand-in for current_domain whose first ``failures`` process calls lose a version race."""
    domain = MagicMock()
    domain.repository_for.side_effect = current_domain.repository_for

    def process(command, asynchronous=True):
        if domain.process.call_count <= failures:
            raise ExpectedVersionError(f"{type(command).__name__} saw a stale version")
        return current_domain.process(command, asynchronous=asynchronous)

    domain.process.side_effect = process
    return domain


class TestOptimisticRetries:
    def test_checkout_is_retried_after_a_version_conflict(self, engine, agency_id, inventory_id):
        domain = _flaky_domain(failures=1)
        with patch("fulfillment.engine.current_domain", domain):
            order = engine.checkout({**CART, "agency_id": agency_id})

        assert domain.process.call_count == 2
        assert order.status == OrderStatus.PENDING.value

    def test_gives_up_after_configured_attempts(self, distance, notifier, admin, agency_id, inventory_id):
        engine = FulfillmentEngine(distance=distance, notifier=notifier, settings=EngineSettings(checkout_retries=2))
        order = engine.checkout({**CART, "agency_id": agency_id})

        domain = _flaky_domain(failures=5)
        with patch("fulfillment.engine.current_domain", domain), pytest.raises(ConcurrentModification):
            engine.transition(order.id, OrderAction.CONFIRM, admin)

        assert domain.process.call_count == 2
        assert current_domain.repository_for(type(order)).get(order.id).status == OrderStatus.PENDING.value


class TestNotifications:
    def test_notifier_failure_does_not_fail_a_transition(self, engine, notifier, admin, agency_id, inventory_id):
        order = engine.checkout({**CART, "agency_id": agency_id})
        notifier.should_fail = True

        confirmed = engine.transition(order.id, OrderAction.CONFIRM, admin)

        assert confirmed.status == OrderStatus.CONFIRMED.value
        assert notifier.hooks()[-1] == "order_status_changed"

    def test_log_notifier_accepts_every_hook(self, distance, agency_id, inventory_id):
        engine = FulfillmentEngine(distance=distance, notifier=LogNotifier())
        order = engine.checkout(
            {
                **CART,
                "agency_id": agency_id,
                "items": [{"product_id": "lpg-cylinder", "variant_label": "19kg", "quantity": 4, "price": 700.0}],
            }
        )
        assert order.total_amount == 2800.0


class TestDeliveryChargePreview:
    def test_not_configured(self, engine, agency_id):
        quote = engine.evaluate_delivery_charge(agency_id, "12 MG Road, Bengaluru")
        assert quote.charge == 0.0
        assert quote.charge_type == NOT_CONFIGURED

    def test_quote_for_configured_agency(self, engine, distance, agency_id):
        current_domain.process(
            ConfigureDeliveryCharge(agency_id=agency_id, charge_type="per_km", rate_per_km=10.0, delivery_radius=8.0),
            asynchronous=False,
        )
        distance.set_distance("12 MG Road, Bengaluru", 4.25)

        quote = engine.evaluate_delivery_charge(agency_id, "12 MG Road, Bengaluru")
        assert quote.charge == 42.0
        assert quote.distance_km == 4.25
        assert quote.duration_minutes == 8

    def test_out_of_radius(self, engine, distance, agency_id):
        current_domain.process(
            ConfigureDeliveryCharge(agency_id=agency_id, charge_type="fixed", fixed_amount=30.0, delivery_radius=5.0),
            asynchronous=False,
        )
        distance.set_distance("Far away", 12.0)
        with pytest.raises(OutOfRadius):
            engine.evaluate_delivery_charge(agency_id, "Far away")

    def test_address_is_required(self, engine, agency_id):
        with pytest.raises(ValidationError):
            engine.evaluate_delivery_charge(agency_id, "   ")


class TestCouponPreview:
    def _create(self, agency_id, expiry_date):
        return current_domain.process(
            CreateCoupon(
                code="SAVE20",
                agency_id=agency_id,
                discount_type="fixed",
                discount_value=20.0,
                expiry_date=expiry_date,
                expiry_time="23:59",
            ),
            asynchronous=False,
        )

    def test_valid_coupon(self, engine, agency_id):
        self._create(agency_id, datetime.now(UTC).date() + timedelta(days=7))
        discount = engine.apply_coupon("save20", agency_id, 500.0)
        assert discount.discount == 20.0
        assert discount.code == "SAVE20"

    def test_expired_coupon_is_deactivated_and_announced(self, engine, notifier, agency_id):
        coupon_id = self._create(agency_id, datetime.now(UTC).date() - timedelta(days=1))

        with pytest.raises(CouponExpired):
            engine.apply_coupon("SAVE20", agency_id, 500.0)

        assert current_domain.repository_for(Coupon).get(coupon_id).is_active is False
        assert notifier.calls == [("coupon_expired", {"coupon_id": coupon_id, "code": "SAVE20"})]

    def test_code_is_required(self, engine, agency_id):
        with pytest.raises(ValidationError):
            engine.apply_coupon("", agency_id, 500.0)

    def test_subtotal_cannot_be_negative(self, engine, agency_id):
        with pytest.raises(ValidationError):
            engine.apply_coupon("SAVE20", agency_id, -1)
